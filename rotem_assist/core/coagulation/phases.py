"""
Surgical Phase Classification

Liver-transplant surgery is recorded in nine phases. The decision rules only
care about three phase-classes:

    PRE_ANHEPATIC          baseline → dissection → anhepatic
    ANHEPATIC_REPERFUSION  pre-reperfusion
    POST_REPERFUSION       reperfusion → biliary reconstruction → closure → exit

Every phase maps to exactly one class through an explicit lookup table; a
missing entry fails at import time rather than falling through silently.
"""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping

from rotem_assist.utils.exceptions import InvalidInputError


class SurgicalPhase(str, Enum):
    """Intra-operative phase as recorded on the anaesthesia chart."""
    BASELINE         = "ESTADO_BASAL"
    INDUCTION        = "INDUCCION"
    DISSECTION       = "DISECCION"
    ANHEPATIC        = "ANHEPATICA"
    PRE_REPERFUSION  = "PRE_REPERFUSION"
    POST_REPERFUSION = "POST_REPERFUSION"
    BILIARY          = "VIA_BILIAR"
    CLOSURE          = "CIERRE"
    EXIT             = "SALIDA_BQ"

    @classmethod
    def parse(cls, value: Any) -> "SurgicalPhase":
        """
        Resolve a phase from its enum member, wire value or legacy record name.

        Raises:
            InvalidInputError: for anything that is not one of the nine phases.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            key = _LEGACY_PHASE_NAMES.get(key, key)
            try:
                return cls(key)
            except ValueError:
                pass
        raise InvalidInputError(
            f"Unknown surgical phase: {value!r}. Valid: {[p.value for p in cls]}",
            field="phase",
        )


class PhaseClass(str, Enum):
    """Grouping of phases used for threshold and parameter selection."""
    PRE_ANHEPATIC         = "pre_anhepatic"
    ANHEPATIC_REPERFUSION = "anhepatic_reperfusion"
    POST_REPERFUSION      = "post_reperfusion"


# Older intra-operative records used these names for the same phases
_LEGACY_PHASE_NAMES: Dict[str, str] = {
    "ANHEPATICA_INICIAL":       SurgicalPhase.ANHEPATIC.value,
    "POST_REPERFUSION_INICIAL": SurgicalPhase.POST_REPERFUSION.value,
    "FIN_VIA_BILIAR":           SurgicalPhase.BILIARY.value,
}

PHASE_CLASSES: Mapping[SurgicalPhase, PhaseClass] = MappingProxyType({
    SurgicalPhase.BASELINE:         PhaseClass.PRE_ANHEPATIC,
    SurgicalPhase.INDUCTION:        PhaseClass.PRE_ANHEPATIC,
    SurgicalPhase.DISSECTION:       PhaseClass.PRE_ANHEPATIC,
    SurgicalPhase.ANHEPATIC:        PhaseClass.PRE_ANHEPATIC,
    SurgicalPhase.PRE_REPERFUSION:  PhaseClass.ANHEPATIC_REPERFUSION,
    SurgicalPhase.POST_REPERFUSION: PhaseClass.POST_REPERFUSION,
    SurgicalPhase.BILIARY:          PhaseClass.POST_REPERFUSION,
    SurgicalPhase.CLOSURE:          PhaseClass.POST_REPERFUSION,
    SurgicalPhase.EXIT:             PhaseClass.POST_REPERFUSION,
})

# Antifibrinolytic prophylaxis is only decided on the opening sample
EARLY_PHASES: FrozenSet[SurgicalPhase] = frozenset({
    SurgicalPhase.BASELINE,
    SurgicalPhase.INDUCTION,
})

_unmapped = [p.value for p in SurgicalPhase if p not in PHASE_CLASSES]
if _unmapped:
    raise RuntimeError(f"Surgical phases without a phase-class: {_unmapped}")


def classify_phase(phase: SurgicalPhase) -> PhaseClass:
    """Return the phase-class that gates thresholds for ``phase``."""
    return PHASE_CLASSES[SurgicalPhase.parse(phase)]


def is_early_phase(phase: SurgicalPhase) -> bool:
    return SurgicalPhase.parse(phase) in EARLY_PHASES


def phase_reference() -> Dict[str, Any]:
    """Phase enumeration and phase-class mapping for client-side display."""
    return {
        "phases": {p.name: p.value for p in SurgicalPhase},
        "phaseClasses": {p.value: PHASE_CLASSES[p].value for p in SurgicalPhase},
        "earlyPhases": [p.value for p in SurgicalPhase if p in EARLY_PHASES],
    }
