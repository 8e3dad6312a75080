"""
Hemostasis Preconditions

Acidosis, hypothermia, hypocalcaemia and severe anaemia all blunt the response
to blood products, so they are corrected first. The four checks are
independent of each other and of the surgical phase. A missing lab value is
skipped, not treated as a violation.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from rotem_assist.utils import get_logger
from .base import (
    ClinicalContext,
    Criterion,
    Domain,
    Dose,
    IssueSeverity,
    PreconditionIssue,
    PreconditionResult,
    Recommendation,
    ResultStatus,
)
from .thresholds import Bound, ThresholdTable

logger = get_logger(__name__)

_EVIDENCE = "De Robertis E et al. Minerva Anestesiol 2015;81(1):65-75"


def _check(
    parameter: str,
    value: Optional[float],
    bound: Bound,
    severity: IssueSeverity,
    message: str,
    recommendation: Recommendation,
) -> Tuple[Criterion, Optional[PreconditionIssue], Optional[Recommendation]]:
    criterion = Criterion.against(parameter, value, bound)
    if not criterion.met:
        return criterion, None, None
    issue = PreconditionIssue(
        parameter=parameter,
        value=value,
        threshold=f">= {bound.value:g}{' ' + bound.unit if bound.unit else ''}",
        severity=severity,
        message=message.format(value=value),
    )
    return criterion, issue, recommendation


def evaluate_preconditions(context: ClinicalContext, thresholds: ThresholdTable) -> PreconditionResult:
    """
    Check pH, temperature, ionized calcium and hemoglobin against their minimums.

    Returns:
        PreconditionResult with one issue and one correction per violated
        minimum. ``all_met`` is True when nothing needs correcting.
    """
    t = thresholds.preconditions
    checks = [
        _check(
            "pH", context.ph, t.ph, IssueSeverity.CRITICAL,
            "Acidosis detected (pH {value}). Acidosis impairs thrombin generation.",
            Recommendation(
                action="CORRECT_ACIDOSIS",
                priority=1,
                description="Correct acidosis before giving blood products",
                details="Acidosis inhibits coagulation factor and platelet function.",
                evidence=_EVIDENCE,
            ),
        ),
        _check(
            "temperature", context.temperature_c, t.temperature, IssueSeverity.CRITICAL,
            "Hypothermia detected ({value} °C). Hypothermia slows the enzymatic steps of coagulation.",
            Recommendation(
                action="CORRECT_HYPOTHERMIA",
                priority=1,
                description="Restore normothermia",
                details="Use fluid warmers and forced-air blankets.",
                evidence=_EVIDENCE,
            ),
        ),
        _check(
            "ionizedCalcium", context.ionized_calcium, t.ionized_calcium, IssueSeverity.CRITICAL,
            "Hypocalcaemia detected (Ca++ {value} mmol/L). Calcium is an essential coagulation cofactor.",
            Recommendation(
                action="ADMINISTER_CALCIUM",
                priority=1,
                description="Administer calcium",
                dose=Dose("Calcium gluconate 10% 10-20 mL IV or calcium chloride 10% 5-10 mL IV"),
                details="Ionized calcium is required at several steps of the coagulation cascade.",
                evidence=_EVIDENCE,
            ),
        ),
        _check(
            "hemoglobin", context.hemoglobin, t.hemoglobin, IssueSeverity.WARNING,
            "Severe anaemia (Hb {value} g/dL) may impair primary hemostasis.",
            Recommendation(
                action="CONSIDER_RBC_TRANSFUSION",
                priority=2,
                description="Consider red blood cell transfusion",
                details="Red cells contribute to hemostasis through platelet margination.",
                evidence="PRO/T 3 protocol, section 5.4.1",
            ),
        ),
    ]

    criteria: List[Criterion] = []
    issues: List[PreconditionIssue] = []
    recommendations: List[Recommendation] = []
    for criterion, issue, recommendation in checks:
        criteria.append(criterion)
        if issue is not None:
            issues.append(issue)
            recommendations.append(recommendation)

    if issues:
        logger.debug(f"Preconditions: {len(issues)} correction(s): " + ", ".join(i.parameter for i in issues))

    return PreconditionResult(
        domain=Domain.PRECONDITIONS,
        status=ResultStatus.INDICATED if issues else ResultStatus.NOT_INDICATED,
        criteria=tuple(criteria),
        recommendations=tuple(recommendations),
        issues=tuple(issues),
        reason=None if issues else "All measured hemostasis preconditions are within range",
    )
