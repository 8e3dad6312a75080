"""
Integration Tests for the ROTEM API

Uses async httpx against the ASGI app.
"""
import pytest
import httpx

from rotem_assist.main import app


@pytest.fixture
async def async_client():
    """Create async test client."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


def _actions(data):
    return [a["action"] for a in data["evaluation"]["prioritizedActions"]]


@pytest.mark.asyncio
class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_root_endpoint(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["protocol"] == "PRO_T3_V3"
        assert "version" in data

    async def test_health_endpoint(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
class TestThresholdsEndpoint:
    """Tests for the reference data export."""

    async def test_thresholds(self, async_client):
        response = await async_client.get("/api/v1/rotem/thresholds")
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["protocol"] == "PRO_T3_V3"
        assert data["thresholds"]["thrombin_generation"]["ct_extem"]["value"] == 80
        assert data["phases"]["ANHEPATIC"] == "ANHEPATICA"
        assert data["phaseClasses"]["VIA_BILIAR"] == "post_reperfusion"
        assert data["earlyPhases"] == ["ESTADO_BASAL", "INDUCCION"]


@pytest.mark.asyncio
class TestRecommendationsEndpoint:
    """Tests for panel evaluation."""

    async def test_hyperfibrinolysis(self, async_client):
        response = await async_client.post(
            "/api/v1/rotem/recommendations",
            json={"phase": "ANHEPATICA_INICIAL", "cli60": 80},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        evaluation = data["evaluation"]
        assert evaluation["phase"] == "ANHEPATICA"
        assert evaluation["phaseClass"] == "pre_anhepatic"
        assert evaluation["evaluations"]["fibrinolysisTreatment"]["indicated"] is True
        assert evaluation["urgentActionRequired"] is True
        assert _actions(data) == ["ADMINISTER_TXA_THERAPEUTIC"]
        assert "timestamp" in evaluation

    async def test_fibrinogen_with_context(self, async_client):
        response = await async_client.post("/api/v1/rotem/recommendations", json={
            "phase": "DISECCION",
            "a5Extem": 18,
            "a5Fibtem": 6,
            "clinicalContext": {"weight": 80, "hasActiveBleeding": True},
        })
        assert response.status_code == 200

        fibrinogen = response.json()["evaluation"]["evaluations"]["fibrinogen"]
        assert fibrinogen["indicated"] is True
        assert fibrinogen["severity"] == "moderate"
        assert fibrinogen["doseGrams"] == 2.0
        assert fibrinogen["recommendations"][0]["dose"] == "25 mg/kg = 2.0 g fibrinogen"

    async def test_fibrinogen_gated_without_bleeding(self, async_client):
        response = await async_client.post("/api/v1/rotem/recommendations", json={
            "phase": "DISECCION", "a5Extem": 18, "a5Fibtem": 6,
            "clinicalContext": {"weight": 80},
        })
        fibrinogen = response.json()["evaluation"]["evaluations"]["fibrinogen"]

        assert fibrinogen["indicated"] is False
        assert fibrinogen["status"] == "safety_gated"
        assert fibrinogen["warning"]["type"] == "PROTHROMBOTIC_RISK"

    async def test_default_weight_and_legacy_keys(self, async_client):
        response = await async_client.post("/api/v1/rotem/recommendations", json={
            "phase": "DISECCION", "rotemCtExtem": 90, "rotemA5Fibtem": 12,
        })
        assert response.status_code == 200

        data = response.json()
        assert data["evaluation"]["clinicalContext"]["weight"] == 70
        pcc = data["evaluation"]["evaluations"]["coagulationFactors"]["recommendations"][0]
        assert pcc["action"] == "ADMINISTER_PCC"
        assert pcc["doseRange"]["low"] == 1050
        assert pcc["doseRange"]["high"] == 1750

    async def test_contraindications(self, async_client):
        response = await async_client.post("/api/v1/rotem/recommendations", json={
            "phase": "ESTADO_BASAL", "a5Extem": 20,
            "clinicalContext": {"contraindications": {"hepaticMalignancy": True}},
        })
        prophylaxis = response.json()["evaluation"]["evaluations"]["fibrinolysisProphylaxis"]
        assert prophylaxis["status"] == "contraindicated"

    async def test_unknown_phase(self, async_client):
        response = await async_client.post(
            "/api/v1/rotem/recommendations",
            json={"phase": "REPERFUSION", "cli30": 40},
        )
        assert response.status_code == 400

        data = response.json()
        assert data["success"] is False
        assert data["error"]["error"] == "INVALID_INPUT"
        assert data["error"]["details"]["field"] == "phase"

    async def test_missing_phase(self, async_client):
        response = await async_client.post("/api/v1/rotem/recommendations", json={"cli30": 40})
        assert response.status_code == 422

    @pytest.mark.parametrize("body", [
        {"phase": "CIERRE", "a5Fibtem": 150},
        {"phase": "CIERRE", "ctExtem": -1},
        {"phase": "CIERRE", "cli30": 101},
        {"phase": "CIERRE", "clinicalContext": {"weight": 10}},
        {"phase": "CIERRE", "clinicalContext": {"pH": 9}},
    ])
    async def test_out_of_range(self, async_client, body):
        response = await async_client.post("/api/v1/rotem/recommendations", json=body)
        assert response.status_code == 422
