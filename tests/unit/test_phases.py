"""
Unit Tests for Surgical Phase Classification
"""
import pytest

from rotem_assist.core.coagulation.phases import (
    EARLY_PHASES,
    PHASE_CLASSES,
    PhaseClass,
    SurgicalPhase,
    classify_phase,
    is_early_phase,
    phase_reference,
)
from rotem_assist.utils import InvalidInputError


class TestSurgicalPhaseParse:
    """Tests for resolving wire values into phases."""

    @pytest.mark.parametrize("value", [p.value for p in SurgicalPhase])
    def test_wire_values(self, value):
        assert SurgicalPhase.parse(value).value == value

    def test_member_passes_through(self):
        assert SurgicalPhase.parse(SurgicalPhase.CLOSURE) is SurgicalPhase.CLOSURE

    def test_whitespace_and_case(self):
        assert SurgicalPhase.parse("  diseccion ") is SurgicalPhase.DISSECTION
        assert SurgicalPhase.parse("cierre") is SurgicalPhase.CLOSURE

    @pytest.mark.parametrize("legacy, expected", [
        ("ANHEPATICA_INICIAL", SurgicalPhase.ANHEPATIC),
        ("POST_REPERFUSION_INICIAL", SurgicalPhase.POST_REPERFUSION),
        ("FIN_VIA_BILIAR", SurgicalPhase.BILIARY),
    ])
    def test_legacy_names(self, legacy, expected):
        assert SurgicalPhase.parse(legacy) is expected

    @pytest.mark.parametrize("value", ["", "REPERFUSION", "ANHEPATIC", None, 3])
    def test_unknown_phase_rejected(self, value):
        with pytest.raises(InvalidInputError) as exc_info:
            SurgicalPhase.parse(value)
        assert exc_info.value.field == "phase"
        assert exc_info.value.code == "INVALID_INPUT"


class TestPhaseClasses:
    """Tests for the phase → phase-class table."""

    def test_every_phase_mapped(self):
        assert set(PHASE_CLASSES) == set(SurgicalPhase)

    def test_pre_anhepatic(self):
        for phase in ("ESTADO_BASAL", "INDUCCION", "DISECCION", "ANHEPATICA", "ANHEPATICA_INICIAL"):
            assert classify_phase(phase) is PhaseClass.PRE_ANHEPATIC

    def test_anhepatic_reperfusion(self):
        assert classify_phase("PRE_REPERFUSION") is PhaseClass.ANHEPATIC_REPERFUSION

    def test_post_reperfusion(self):
        for phase in ("POST_REPERFUSION", "VIA_BILIAR", "CIERRE", "SALIDA_BQ"):
            assert classify_phase(phase) is PhaseClass.POST_REPERFUSION

    def test_early_phases(self):
        assert EARLY_PHASES == {SurgicalPhase.BASELINE, SurgicalPhase.INDUCTION}
        assert is_early_phase("INDUCCION")
        assert not is_early_phase("DISECCION")


class TestPhaseReference:
    """Tests for the exported phase enumeration."""

    def test_shape(self):
        ref = phase_reference()
        assert len(ref["phases"]) == 9
        assert ref["phases"]["BASELINE"] == "ESTADO_BASAL"
        assert ref["phaseClasses"]["PRE_REPERFUSION"] == "anhepatic_reperfusion"
        assert ref["earlyPhases"] == ["ESTADO_BASAL", "INDUCCION"]
