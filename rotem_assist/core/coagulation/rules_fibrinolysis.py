"""
Fibrinolysis Rules — prophylaxis and treatment

Prophylaxis is decided once, on the opening sample: patients with poor
baseline clot firmness have a high chance of hyperfibrinolysis in the
anhepatic phase. Contraindications are checked first and override any
indication.

Treatment reads one lysis index, chosen by phase-class:
    PRE_ANHEPATIC                          CLI60 < 85 %
    ANHEPATIC_REPERFUSION/POST_REPERFUSION CLI30 < 50 %

A positive treatment result is the source of the hyperfibrinolysis flag that
the fibrinogen evaluator receives as an argument.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from rotem_assist.utils import get_logger
from .base import (
    INSUFFICIENT_DATA_REASON,
    ClinicalContext,
    Criterion,
    Domain,
    Dose,
    EvaluationResult,
    FibrinolysisTreatmentResult,
    Recommendation,
    ResultStatus,
    RotemPanel,
)
from .phases import PhaseClass, is_early_phase
from .thresholds import Bound, ThresholdTable

logger = get_logger(__name__)

_CONTRAINDICATION_LABELS = {
    "prior_thrombosis": "previous thrombosis",
    "hepatic_malignancy": "hepatic malignancy",
    "chronic_biliary_inflammation": "chronic biliary inflammation",
}


# ── Prophylaxis ───────────────────────────────────────────────────────────────

def evaluate_fibrinolysis_prophylaxis(
    panel: RotemPanel,
    context: ClinicalContext,
    thresholds: ThresholdTable,
) -> Optional[EvaluationResult]:
    """
    Decide on prophylactic tranexamic acid.

    Returns:
        None outside the baseline/induction phases (not applicable).
    """
    if not is_early_phase(panel.phase):
        return None

    # Contraindications (hypercoagulable baseline counts as one)
    mcf = Criterion.against("mcfExtem", panel.mcf_extem, thresholds.fibrinolysis_contraindications.mcf_extem)
    reasons = [_CONTRAINDICATION_LABELS[name] for name in context.contraindications.present()]
    if mcf.met:
        reasons.append(f"hypercoagulable baseline (MCF EXTEM {panel.mcf_extem:g} mm)")

    if reasons:
        logger.debug(f"Prophylaxis contraindicated: {reasons}")
        return EvaluationResult(
            domain=Domain.FIBRINOLYSIS_PROPHYLAXIS,
            status=ResultStatus.CONTRAINDICATED,
            criteria=(mcf,),
            reason="Contraindication to prophylactic antifibrinolytics: " + ", ".join(reasons),
            notes=("Pihusch R et al. J Hepatol 2002; Segal H et al. Hepatology 1997",),
        )

    t = thresholds.fibrinolysis_prophylaxis
    ct_cft_sum = None
    if panel.ct_extem is not None and panel.cft_extem is not None:
        ct_cft_sum = panel.ct_extem + panel.cft_extem

    criteria = (
        Criterion.against("a5Extem", panel.a5_extem, t.a5_extem),
        Criterion.against("ctFibtem", panel.ct_fibtem, t.ct_fibtem),
        Criterion.against("ctExtem+cftExtem", ct_cft_sum, t.ct_cft_extem_sum),
    )
    missing = panel.missing("a5_extem", "ct_fibtem", "ct_extem", "cft_extem")

    if any(c.met for c in criteria):
        return EvaluationResult(
            domain=Domain.FIBRINOLYSIS_PROPHYLAXIS,
            status=ResultStatus.INDICATED,
            criteria=criteria,
            missing_fields=missing,
            recommendations=(
                Recommendation(
                    action="ADMINISTER_TXA_PROPHYLACTIC",
                    priority=2,
                    description="Administer prophylactic tranexamic acid",
                    dose=Dose("30 mg/kg single bolus over 15 min. May be repeated up to a maximum of 60 mg/kg."),
                    details=(
                        "Patients with markedly reduced clot firmness at baseline have about a 90% "
                        "probability of developing hyperfibrinolysis in the anhepatic phase."
                    ),
                    evidence="Steib A et al. Br J Anaesth 1994; Kim EH et al. Transplant Proc 2015",
                ),
            ),
        )

    # A criterion that could not be checked is never reported as within range
    if missing:
        return EvaluationResult(
            domain=Domain.FIBRINOLYSIS_PROPHYLAXIS,
            status=ResultStatus.INSUFFICIENT_DATA,
            criteria=criteria,
            missing_fields=missing,
            reason=INSUFFICIENT_DATA_REASON,
        )

    return EvaluationResult(
        domain=Domain.FIBRINOLYSIS_PROPHYLAXIS,
        status=ResultStatus.NOT_INDICATED,
        criteria=criteria,
        missing_fields=missing,
        reason="Criteria for antifibrinolytic prophylaxis not met",
    )


# ── Treatment ─────────────────────────────────────────────────────────────────

def _lysis_selection(
    phase_class: PhaseClass,
    thresholds: ThresholdTable,
) -> Tuple[str, str, Bound]:
    t = thresholds.fibrinolysis_treatment
    if phase_class is PhaseClass.PRE_ANHEPATIC:
        return "cli60", "cli60_extem", t.cli60_pre_anhepatic
    return "cli30", "cli30_extem", t.cli30_anhepatic


def evaluate_fibrinolysis_treatment(
    panel: RotemPanel,
    context: ClinicalContext,
    thresholds: ThresholdTable,
) -> FibrinolysisTreatmentResult:
    """
    Detect hyperfibrinolysis needing therapeutic tranexamic acid.

    Exactly one lysis index is read, selected by phase-class. ``fulminant``
    is set whenever CLI30 is under its fulminant floor, whatever the phase.
    """
    phase_class = panel.phase_class
    label, attr, bound = _lysis_selection(phase_class, thresholds)
    value = getattr(panel, attr)
    criterion = Criterion.against(label, value, bound)

    fulminant = (
        panel.cli30_extem is not None
        and thresholds.fibrinolysis_treatment.cli30_fulminant.triggered_by(panel.cli30_extem)
    )

    if value is None:
        return FibrinolysisTreatmentResult(
            domain=Domain.FIBRINOLYSIS_TREATMENT,
            status=ResultStatus.INSUFFICIENT_DATA,
            criteria=(criterion,),
            missing_fields=(label,),
            reason=INSUFFICIENT_DATA_REASON,
            fulminant=fulminant,
            lysis_parameter=label,
        )

    if not criterion.met:
        return FibrinolysisTreatmentResult(
            domain=Domain.FIBRINOLYSIS_TREATMENT,
            status=ResultStatus.NOT_INDICATED,
            criteria=(criterion,),
            reason="No significant hyperfibrinolysis detected",
            fulminant=fulminant,
            lysis_parameter=label,
        )

    notes: List[str] = []
    # Advisory only: the recommendation stands either way
    if phase_class is PhaseClass.POST_REPERFUSION and not context.active_bleeding:
        notes.append(
            "After reperfusion with good graft function (haemodynamic improvement, bile "
            "production) hyperfibrinolysis may be self-limiting. Consider watchful waiting."
        )

    logger.debug(f"Hyperfibrinolysis: {label}={value:g} ({bound.describe()}), fulminant={fulminant}")

    return FibrinolysisTreatmentResult(
        domain=Domain.FIBRINOLYSIS_TREATMENT,
        status=ResultStatus.INDICATED,
        criteria=(criterion,),
        notes=tuple(notes),
        fulminant=fulminant,
        lysis_parameter=label,
        recommendations=(
            Recommendation(
                action="ADMINISTER_TXA_THERAPEUTIC",
                priority=1,
                description=(
                    "FULMINANT HYPERFIBRINOLYSIS - administer tranexamic acid urgently"
                    if fulminant else
                    "Administer therapeutic tranexamic acid"
                ),
                dose=Dose(
                    "30 mg/kg bolus over 15 min. If lysis persists, infuse 10 mg/kg/h "
                    "until the graft is fully perfused."
                ),
                details=(
                    "CLI30 below 50% indicates fulminant hyperfibrinolysis and needs immediate treatment."
                    if fulminant else
                    "Detected hyperfibrinolysis needs treatment to prevent progression."
                ),
                evidence="Schochl H et al. J Trauma 2009; Chapman MP et al. J Trauma Acute Care Surg 2013",
                follow_up="Repeat ROTEM until ML reaches 15%",
            ),
        ),
    )
