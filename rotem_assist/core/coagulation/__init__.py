"""
Coagulation Decision Layer

Turns one ROTEM panel and the bedside clinical context into ranked
hemostatic recommendations.

Usage:
    from rotem_assist.core.coagulation import RotemDecisionEngine, RotemPanel, ClinicalContext

    engine = RotemDecisionEngine()
    report = engine.evaluate(
        RotemPanel(phase="DISECCION", a5_extem=18, a5_fibtem=6),
        ClinicalContext(weight_kg=80, active_bleeding=True),
    )
    report.to_dict()
"""
from .engine import RotemDecisionEngine, prioritize
from .base import (
    ClinicalContext,
    Contraindications,
    Domain,
    EvaluationReport,
    EvaluationResult,
    PrioritizedAction,
    Recommendation,
    ResultStatus,
    RotemPanel,
    RotemTest,
)
from .phases import PhaseClass, SurgicalPhase, classify_phase
from .thresholds import (
    DEFAULT_PROTOCOL,
    PRO_T3_V3,
    PROTOCOLS,
    WERFEN_A5_2018,
    ThresholdTable,
    get_threshold_table,
)

__all__ = [
    "RotemDecisionEngine",
    "prioritize",
    "ClinicalContext",
    "Contraindications",
    "Domain",
    "EvaluationReport",
    "EvaluationResult",
    "PrioritizedAction",
    "Recommendation",
    "ResultStatus",
    "RotemPanel",
    "RotemTest",
    "PhaseClass",
    "SurgicalPhase",
    "classify_phase",
    "DEFAULT_PROTOCOL",
    "PRO_T3_V3",
    "PROTOCOLS",
    "WERFEN_A5_2018",
    "ThresholdTable",
    "get_threshold_table",
]
