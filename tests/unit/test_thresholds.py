"""
Unit Tests for Threshold Tables
"""
import dataclasses

import pytest

from rotem_assist.core.coagulation.thresholds import (
    DEFAULT_PROTOCOL,
    PRO_T3_V3,
    PROTOCOLS,
    WERFEN_A5_2018,
    Bound,
    Operator,
    export_reference_data,
    get_threshold_table,
)
from rotem_assist.utils import ThresholdConfigError


class TestBound:
    """Tests for single bounds."""

    def test_minimum_triggers_below(self):
        bound = Bound(25.0, "mm", Operator.MINIMUM)
        assert bound.triggered_by(24.9)
        assert not bound.triggered_by(25.0)

    def test_maximum_triggers_above(self):
        bound = Bound(80.0, "s", Operator.MAXIMUM)
        assert bound.triggered_by(81)
        assert not bound.triggered_by(80)

    def test_describe(self):
        assert PRO_T3_V3.fibrinogen.a5_extem_bleeding.describe() == "< 25 mm"
        assert PRO_T3_V3.fibrinolysis_treatment.cli60_pre_anhepatic.describe() == "< 85%"
        assert PRO_T3_V3.heparin_effect.heptem_intem_ratio.describe() == "< 0.75"
        assert PRO_T3_V3.thrombin_generation.ct_extem.describe() == "> 80 s"

    def test_rejects_bad_operator(self):
        with pytest.raises(ThresholdConfigError):
            Bound(1.0, "mm", "minimum")

    def test_rejects_non_finite_value(self):
        with pytest.raises(ThresholdConfigError):
            Bound(float("nan"), "mm", Operator.MINIMUM)

    def test_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            PRO_T3_V3.fibrinogen.a5_fibtem.value = 1


class TestProtocolVersions:
    """Tests for the shipped protocol tables."""

    def test_default_values(self):
        t = PRO_T3_V3
        assert t.preconditions.ph.value == 7.20
        assert t.preconditions.temperature.value == 35
        assert t.preconditions.ionized_calcium.value == 1.15
        assert t.preconditions.hemoglobin.value == 6
        assert t.fibrinolysis_prophylaxis.ct_fibtem.value == 600
        assert t.fibrinolysis_prophylaxis.ct_cft_extem_sum.value == 280
        assert t.fibrinolysis_contraindications.mcf_extem.value == 60
        assert t.fibrinogen.a5_fibtem_post_reperfusion.value == 13
        assert t.thrombin_generation.ct_extem.value == 80
        assert t.thrombin_generation.ct_intem.value == 240

    def test_vendor_variant(self):
        assert WERFEN_A5_2018.thrombin_generation.ct_extem.value == 75
        assert WERFEN_A5_2018.thrombin_generation.ct_intem.value == 280
        assert WERFEN_A5_2018.fibrinogen == PRO_T3_V3.fibrinogen

    def test_lookup(self):
        assert get_threshold_table() is PRO_T3_V3
        assert get_threshold_table("werfen_a5_2018") is WERFEN_A5_2018
        assert DEFAULT_PROTOCOL in PROTOCOLS

    def test_unknown_version(self):
        with pytest.raises(ThresholdConfigError) as exc_info:
            get_threshold_table("PRO_T3_V1")
        assert exc_info.value.code == "THRESHOLD_CONFIG_ERROR"

    def test_protocols_read_only(self):
        with pytest.raises(TypeError):
            PROTOCOLS["X"] = PRO_T3_V3


class TestReferenceExport:
    """Tests for the read-only reference export."""

    def test_export(self):
        data = export_reference_data(PRO_T3_V3)
        assert data["protocol"] == "PRO_T3_V3"
        assert set(data["thresholds"]) == {
            "preconditions", "fibrinolysis_prophylaxis", "fibrinolysis_treatment",
            "fibrinolysis_contraindications", "fibrinogen", "platelets",
            "thrombin_generation", "heparin_effect",
        }
        assert data["thresholds"]["fibrinogen"]["a5_fibtem"] == {
            "value": 8.0, "unit": "mm", "operator": "minimum",
            "description": "Fibrinogen channel floor",
        }
        assert "phases" in data and "phaseClasses" in data
