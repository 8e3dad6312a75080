"""
Unit Tests for Clot Firmness Rules (fibrinogen and platelets)
"""
import pytest

from rotem_assist.core.coagulation import ClinicalContext, ResultStatus, RotemPanel, RotemTest
from rotem_assist.core.coagulation.base import DeficitSeverity
from rotem_assist.core.coagulation.rules_firmness import evaluate_fibrinogen, evaluate_platelets


class TestFibrinogen:
    """Tests for fibrinogen replacement."""

    def test_moderate_deficit_with_bleeding(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=6)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds)

        assert result.status is ResultStatus.INDICATED
        assert result.severity is DeficitSeverity.MODERATE
        assert result.dose_mg_per_kg == 25
        assert result.dose_g == pytest.approx(2.0)
        # (10 - 6) x 80 / 160
        assert result.calculated_dose_g == pytest.approx(2.0)
        rec = result.recommendation
        assert rec.action == "ADMINISTER_FIBRINOGEN"
        assert rec.priority == 1
        assert rec.dose.text == "25 mg/kg = 2.0 g fibrinogen"
        assert rec.supplementary_dose == "10 units of cryoprecipitate (≈400 mL)"

    def test_severe_deficit(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=12, a5_fibtem=3)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds)

        assert result.severity is DeficitSeverity.SEVERE
        assert result.dose_mg_per_kg == 50
        assert result.dose_g == pytest.approx(4.0)

    def test_gated_without_bleeding(self, thresholds, quiet_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=6)
        result = evaluate_fibrinogen(panel, quiet_context, thresholds)

        assert result.status is ResultStatus.SAFETY_GATED
        assert not result.indicated
        assert result.warning.type == "PROTHROMBOTIC_RISK"
        assert result.recommendations == ()
        assert result.dose_g is None

    def test_extem_floor_depends_on_bleeding(self, thresholds):
        # A5 EXTEM 22: low with bleeding (< 25), adequate without (>= 20)
        panel = RotemPanel(phase="DISECCION", a5_extem=22, a5_fibtem=6)
        bleeding = evaluate_fibrinogen(panel, ClinicalContext(active_bleeding=True), thresholds)
        quiet = evaluate_fibrinogen(panel, ClinicalContext(), thresholds)

        assert bleeding.indicated
        assert quiet.status is ResultStatus.NOT_INDICATED

    def test_adequate_channel(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=11)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds)

        assert result.status is ResultStatus.NOT_INDICATED
        assert result.fibrinogen_adequate is True

    def test_post_reperfusion_floor(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="POST_REPERFUSION", a5_extem=20, a5_fibtem=11)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds)

        assert result.indicated
        # Channel is above the general floor, so downstream steps still see it as adequate
        assert result.fibrinogen_adequate is True
        # Target is raised to the post-reperfusion floor: (13 - 11) x 80 / 160
        assert result.calculated_dose_g == pytest.approx(1.0)
        assert result.recommendation.target == "A5 FIBTEM >= 13 mm"

    def test_insufficient_data(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds)

        assert result.status is ResultStatus.INSUFFICIENT_DATA
        assert result.missing_fields == ("a5Fibtem",)
        assert result.fibrinogen_adequate is None

    def test_aptem_used_with_hyperfibrinolysis(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=6, a5_aptem=10)

        plain = evaluate_fibrinogen(panel, bleeding_context, thresholds)
        lysis = evaluate_fibrinogen(panel, bleeding_context, thresholds, hyperfibrinolysis_active=True)

        assert plain.channel is RotemTest.FIBTEM
        assert plain.channel_value == 6
        assert lysis.channel is RotemTest.APTEM
        assert lysis.channel_value == 10
        assert lysis.status is ResultStatus.NOT_INDICATED

    def test_target_names_the_channel_used(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=9, a5_aptem=6)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds, hyperfibrinolysis_active=True)

        assert result.channel is RotemTest.APTEM
        assert result.indicated
        assert result.recommendation.target == "A5 APTEM >= 10 mm"

    def test_fibtem_fallback_without_aptem(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=6)
        result = evaluate_fibrinogen(panel, bleeding_context, thresholds, hyperfibrinolysis_active=True)

        assert result.channel is RotemTest.FIBTEM
        assert result.indicated
        assert any("hyperfibrinolysis" in n for n in result.notes)

    def test_to_dict(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=6)
        data = evaluate_fibrinogen(panel, bleeding_context, thresholds).to_dict()

        assert data["fibrinogenChannel"] == "FIBTEM"
        assert data["severity"] == "moderate"
        assert data["doseGrams"] == 2.0
        assert data["recommendations"][0]["doseRange"] == {"text": "25 mg/kg = 2.0 g fibrinogen",
                                                          "low": 2.0, "high": 2.0, "unit": "g"}


class TestPlatelets:
    """Tests for platelet transfusion."""

    def test_low_extem_with_adequate_fibrinogen(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=20)
        result = evaluate_platelets(panel, bleeding_context, thresholds, fibrinogen_adequate=True)

        assert result.indicated
        rec = result.recommendation
        assert rec.action == "ADMINISTER_PLATELETS"
        assert rec.priority == 1
        # ceil(80 / 10) x 1.5 = 12
        assert rec.dose.low == 12
        assert "lung injury" in rec.warning

    def test_priority_two_without_bleeding(self, thresholds, quiet_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=15)
        result = evaluate_platelets(panel, quiet_context, thresholds, fibrinogen_adequate=True)
        assert result.recommendation.priority == 2

    def test_low_fibrinogen_owns_the_finding(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18)
        result = evaluate_platelets(panel, bleeding_context, thresholds, fibrinogen_adequate=False)

        assert result.status is ResultStatus.NOT_INDICATED
        assert "fibrinogen" in result.reason

    def test_unknown_fibrinogen(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=18)
        result = evaluate_platelets(panel, bleeding_context, thresholds)

        assert result.status is ResultStatus.INSUFFICIENT_DATA
        assert result.missing_fields == ("a5Fibtem",)

    def test_suspected_dysfunction_alone(self, thresholds):
        ctx = ClinicalContext(weight_kg=70, suspected_platelet_dysfunction=True)
        result = evaluate_platelets(RotemPanel(phase="CIERRE"), ctx, thresholds)

        assert result.indicated
        # ceil(70 / 10) x 1.5 = 10.5, rounded half up
        assert result.recommendation.dose.low == 11

    def test_cryoprecipitate_note(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=4)
        result = evaluate_platelets(panel, bleeding_context, thresholds, fibrinogen_adequate=True)
        assert any("cryoprecipitate" in n for n in result.notes)

    def test_adequate_extem(self, thresholds, bleeding_context):
        panel = RotemPanel(phase="DISECCION", a5_extem=40)
        result = evaluate_platelets(panel, bleeding_context, thresholds, fibrinogen_adequate=True)
        assert result.status is ResultStatus.NOT_INDICATED
