"""
Recombinant Factor VIIa — last-resort salvage

Only for massive diffuse bleeding refractory to every other measure, once
all hemostasis preconditions have been corrected. Off-label; no evidence of
prophylactic benefit and a higher thromboembolic event rate.
"""
from __future__ import annotations

from rotem_assist.utils import get_logger
from .base import (
    ClinicalContext,
    Domain,
    Dose,
    PreconditionResult,
    Recommendation,
    ResultStatus,
    SalvageResult,
)

logger = get_logger(__name__)

RFVIIA_UG_PER_KG = 90
RFVIIA_IU_PER_KG = 4500


def evaluate_salvage(context: ClinicalContext, preconditions: PreconditionResult) -> SalvageResult:
    """
    Args:
        preconditions: the full precondition result of the same run; its
            open issues are surfaced as pending corrections.
    """
    if not context.refractory_bleeding:
        return SalvageResult(
            domain=Domain.SALVAGE,
            status=ResultStatus.NOT_INDICATED,
            reason="No bleeding refractory to other measures",
        )

    if not preconditions.all_met:
        return SalvageResult(
            domain=Domain.SALVAGE,
            status=ResultStatus.NOT_INDICATED,
            reason="Preconditions not corrected - correct them before considering factor VIIa",
            pending_corrections=preconditions.issues,
        )

    weight = context.weight_kg
    micrograms = RFVIIA_UG_PER_KG * weight
    if context.pcc_available:
        pcc_note = "PCC is available and should be used before factor VIIa."
    else:
        pcc_note = "PCC reported unavailable; it remains the preferred factor concentrate once obtainable."

    logger.warning(f"Factor VIIa salvage indicated (refractory bleeding, {weight:g} kg)")

    return SalvageResult(
        domain=Domain.SALVAGE,
        status=ResultStatus.INDICATED,
        last_resort=True,
        notes=(pcc_note,),
        recommendations=(
            Recommendation(
                action="CONSIDER_FACTOR_VIIA",
                priority=3,
                description="Recombinant factor VIIa - LAST RESORT (off-label)",
                dose=Dose(
                    f"{RFVIIA_UG_PER_KG} µg/kg = {micrograms:.0f} µg ({micrograms / 1000:.1f} mg)",
                    low=round(micrograms), high=round(micrograms), unit="µg",
                ),
                alternative_dose=f"{RFVIIA_IU_PER_KG} IU/kg = {RFVIIA_IU_PER_KG * weight:.0f} IU",
                details=(
                    "Only for massive active diffuse bleeding refractory to all hemostatic measures "
                    "with normalised parameters."
                ),
                evidence="Lau P et al. Transfus Med Hemother 2012",
                warning="No evidence of prophylactic benefit; may increase thromboembolic events.",
                warning_evidence="Simpson E et al. Cochrane Database Syst Rev 2012; Pandit TN et al. Am J Hematol 2012",
            ),
        ),
    )
