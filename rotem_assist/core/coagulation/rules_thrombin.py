"""
Thrombin Generation Rules — coagulation factors and heparin effect

Two readings of a prolonged clotting time compete here:

  CT EXTEM > ceiling     factor deficit (II, VII, IX, X) → PCC
                         unless the fibrinogen channel is low, in which case
                         the prolongation is secondary and PCC is deferred
  CT INTEM > ceiling     HEPTEM also prolonged → factor deficit (V, VIII, XI) → FFP
                         HEPTEM normal, low ratio → endogenous heparinoids → protamine

HEPTEM below its ceiling is the discriminator, so at most one of FFP or
protamine can fire for a given INTEM/HEPTEM pair. Whichever reading loses
still reports why.
"""
from __future__ import annotations

from typing import List, Optional

from rotem_assist.utils import get_logger
from .base import (
    INSUFFICIENT_DATA_REASON,
    ClinicalContext,
    ClinicalWarning,
    CoagulationFactorResult,
    Criterion,
    Domain,
    Dose,
    HeparinEffectResult,
    Recommendation,
    ResultStatus,
    RotemPanel,
)
from .thresholds import ThresholdTable

logger = get_logger(__name__)

PCC_IU_PER_KG = (15, 25)
FFP_ML_PER_KG = (10, 15)

_FACTOR_DEFICIT_ALTERNATIVE = "Consider deficiency of factors V, VIII or XI"


def _range_dose(per_kg, weight_kg: float, unit: str, per_kg_unit: str) -> Dose:
    low, high = (round(p * weight_kg) for p in per_kg)
    return Dose(
        f"{per_kg[0]}-{per_kg[1]} {per_kg_unit} = {low}-{high} {unit}",
        low=low, high=high, unit=unit,
    )


def heptem_normal(panel: RotemPanel, thresholds: ThresholdTable) -> bool:
    """CT HEPTEM measured and strictly below the intrinsic ceiling."""
    return panel.ct_heptem is not None and panel.ct_heptem < thresholds.thrombin_generation.ct_heptem.value


def heptem_intem_ratio(panel: RotemPanel) -> Optional[float]:
    if panel.ct_intem is None or panel.ct_heptem is None or panel.ct_intem <= 0:
        return None
    return panel.ct_heptem / panel.ct_intem


def heparin_pattern(panel: RotemPanel, thresholds: ThresholdTable) -> bool:
    """
    CT INTEM prolonged, CT HEPTEM normal and a low HEPTEM/INTEM ratio.

    Both thrombin evaluators read this one predicate, so they never name each
    other as the explanation for the same INTEM/HEPTEM pair.
    """
    h = thresholds.heparin_effect
    ratio = heptem_intem_ratio(panel)
    return (
        panel.ct_intem is not None
        and h.ct_intem.triggered_by(panel.ct_intem)
        and heptem_normal(panel, thresholds)
        and ratio is not None
        and h.heptem_intem_ratio.triggered_by(ratio)
    )


def evaluate_coagulation_factors(
    panel: RotemPanel,
    context: ClinicalContext,
    thresholds: ThresholdTable,
    fibrinogen_adequate: Optional[bool] = None,
) -> CoagulationFactorResult:
    """
    Extrinsic (PCC) and intrinsic (FFP) sub-checks, evaluated independently.

    Args:
        fibrinogen_adequate: output of the fibrinogen step. ``False`` means
            a prolonged CT EXTEM is explained by fibrinogen deficit and PCC is
            replaced by a re-evaluation instruction.
    """
    t = thresholds.thrombin_generation
    priority = 1 if context.active_bleeding else 2

    ct_extem = Criterion.against("ctExtem", panel.ct_extem, t.ct_extem)
    ct_intem = Criterion.against("ctIntem", panel.ct_intem, t.ct_intem)
    ct_heptem = Criterion.against("ctHeptem", panel.ct_heptem, t.ct_heptem)
    criteria = (ct_extem, ct_intem, ct_heptem)

    recommendations: List[Recommendation] = []
    notes: List[str] = []
    alternative = None
    extrinsic = intrinsic = deferred = False

    # ── Extrinsic pathway ─────────────────────────────────────────────────
    if ct_extem.met:
        if fibrinogen_adequate is False:
            deferred = True
            recommendations.append(Recommendation(
                action="REEVALUATE_CT_AFTER_FIBRINOGEN",
                priority=3,
                description="Re-evaluate CT EXTEM after correcting fibrinogen",
                details=(
                    "Prolonged CT EXTEM with a low fibrinogen channel is due to hypofibrinogenaemia, "
                    "not to a coagulation factor deficit. CT normalises once fibrinogen is corrected. "
                    "Do not give PCC before re-evaluating."
                ),
                evidence="Görlinger K et al. Best Pract Res Clin Anaesthesiol 2013; A5 liver algorithm",
                follow_up="Repeat ROTEM 15-20 min after fibrinogen / cryoprecipitate",
            ))
        else:
            extrinsic = True
            if fibrinogen_adequate is None:
                notes.append("Fibrinogen channel not measured: confirm with FIBTEM that CT EXTEM is not secondary to fibrinogen deficit.")
            if not context.pcc_available:
                notes.append("PCC reported unavailable: plasma or rFVIIa salvage are the alternatives.")
            recommendations.append(Recommendation(
                action="ADMINISTER_PCC",
                priority=priority,
                description="Administer prothrombin complex concentrate (PCC)",
                dose=_range_dose(PCC_IU_PER_KG, context.weight_kg, "IU", "IU/kg"),
                target="Raise prothrombin time by 20%",
                details=(
                    "Prolonged CT EXTEM with adequate fibrinogen indicates deficit of vitamin-K dependent "
                    "factors (II, VII, IX, X). Four-factor PCC contains them in balance."
                ),
                evidence="Kirchner C et al. Transfusion 2014; Inaba K et al. J Trauma Acute Care Surg 2015",
            ))

    # ── Intrinsic pathway ─────────────────────────────────────────────────
    if ct_intem.met:
        if ct_heptem.met:
            intrinsic = True
            recommendations.append(Recommendation(
                action="ADMINISTER_FFP",
                priority=priority,
                description="Administer fresh frozen plasma (FFP)",
                dose=_range_dose(FFP_ML_PER_KG, context.weight_kg, "mL", "mL/kg"),
                details=(
                    "CT INTEM and CT HEPTEM both prolonged suggest deficit of factors V, VIII or XI, "
                    "which are not vitamin-K dependent. PCC does not contain factor VIII."
                ),
                evidence="PRO/T 3 protocol, section 5.4.4",
                warning="Large plasma volumes may cause volume overload in portal hypertension.",
            ))
        elif panel.ct_heptem is None:
            notes.append("CT INTEM prolonged but HEPTEM not run: factor deficit and heparin effect cannot be told apart.")
        elif heparin_pattern(panel, thresholds):
            alternative = "CT HEPTEM normal: prolonged CT INTEM points to heparin effect, see heparinEffect"
        elif heptem_normal(panel, thresholds):
            notes.append(
                "CT INTEM prolonged with normal CT HEPTEM but no reduced HEPTEM/INTEM ratio: "
                "neither factor deficit nor heparin effect is confirmed. Repeat ROTEM."
            )
        else:
            notes.append(
                f"CT HEPTEM at the {t.ct_heptem.value:g} s ceiling: borderline factor deficit, "
                "plasma not indicated yet. Repeat ROTEM."
            )

    missing = panel.missing("ct_extem", "ct_intem", "ct_heptem")
    # HEPTEM is only needed to read a prolonged INTEM
    required_missing = panel.missing("ct_extem", "ct_intem")
    if ct_intem.met and panel.ct_heptem is None:
        required_missing += ("ctHeptem",)
    common = dict(
        domain=Domain.COAGULATION_FACTORS,
        criteria=criteria,
        recommendations=tuple(recommendations),
        notes=tuple(notes),
        missing_fields=missing,
        alternative_interpretation=alternative,
        extrinsic_deficit=extrinsic,
        intrinsic_deficit=intrinsic,
        deferred_to_fibrinogen=deferred,
    )

    if extrinsic or intrinsic:
        logger.debug(f"Coagulation factors: extrinsic={extrinsic}, intrinsic={intrinsic}")
        return CoagulationFactorResult(status=ResultStatus.INDICATED, **common)

    if required_missing:
        return CoagulationFactorResult(status=ResultStatus.INSUFFICIENT_DATA, reason=INSUFFICIENT_DATA_REASON, **common)

    return CoagulationFactorResult(
        status=ResultStatus.NOT_INDICATED,
        reason=(
            "Prolonged CT EXTEM explained by fibrinogen deficit" if deferred else
            "Clotting times within acceptable range"
        ),
        **common,
    )


def evaluate_heparin_effect(
    panel: RotemPanel,
    context: ClinicalContext,
    thresholds: ThresholdTable,
) -> HeparinEffectResult:
    """
    Detect endogenous heparinisation (heparinoids released by the graft).

    Lab pattern: CT INTEM above its floor, CT HEPTEM below the intrinsic
    ceiling, HEPTEM/INTEM ratio below the fixed fraction. Protamine is only
    indicated with active bleeding; the pattern alone is SAFETY_GATED.
    """
    h = thresholds.heparin_effect
    heptem_ceiling = thresholds.thrombin_generation.ct_heptem

    if panel.ct_intem is None or panel.ct_heptem is None:
        return HeparinEffectResult(
            domain=Domain.HEPARIN_EFFECT,
            status=ResultStatus.INSUFFICIENT_DATA,
            criteria=(
                Criterion.against("ctIntem", panel.ct_intem, h.ct_intem),
                Criterion(name="ctHeptem", value=panel.ct_heptem,
                          threshold=f"< {heptem_ceiling.value:g} s", met=False),
            ),
            missing_fields=panel.missing("ct_intem", "ct_heptem"),
            reason=INSUFFICIENT_DATA_REASON,
        )

    intem_prolonged = h.ct_intem.triggered_by(panel.ct_intem)
    heptem_ok = heptem_normal(panel, thresholds)
    ratio = heptem_intem_ratio(panel)
    ratio_low = ratio is not None and h.heptem_intem_ratio.triggered_by(ratio)

    criteria = (
        Criterion.against("ctIntem", panel.ct_intem, h.ct_intem),
        Criterion(name="ctHeptem", value=panel.ct_heptem,
                  threshold=f"< {heptem_ceiling.value:g} s", met=heptem_ok),
        Criterion(name="heptemIntemRatio", value=None if ratio is None else round(ratio, 2),
                  threshold=h.heptem_intem_ratio.describe(), met=ratio_low),
    )
    common = dict(
        domain=Domain.HEPARIN_EFFECT,
        criteria=criteria,
        ratio=None if ratio is None else round(ratio, 2),
    )

    if heparin_pattern(panel, thresholds):
        if not context.active_bleeding:
            return HeparinEffectResult(
                status=ResultStatus.SAFETY_GATED,
                reason="Heparin-like effect WITHOUT active clinical bleeding",
                warning=ClinicalWarning(
                    type="PROTAMINE_OVERTREATMENT_RISK",
                    message=(
                        "Do not give protamine without significant clinical bleeding. Endogenous "
                        "heparinisation is usually self-limiting and excess protamine can itself "
                        "increase bleeding."
                    ),
                    evidence="Gouvea G et al. Pediatr Transplant 2009",
                ),
                **common,
            )
        return HeparinEffectResult(
            status=ResultStatus.INDICATED,
            recommendations=(
                Recommendation(
                    action="CONSIDER_PROTAMINE",
                    priority=2,
                    description="Consider protamine (if bleeding is severe)",
                    dose=Dose("25-50 mg IV over 10 minutes"),
                    details=(
                        "Endogenous heparinisation is common after reperfusion, from heparinoids released "
                        "by the graft endothelium. It is usually self-limiting."
                    ),
                    evidence="Gouvea G et al. Pediatr Transplant 2009; Bayly PJ et al. Br J Anaesth 1994",
                    warning=(
                        "Protamine overtreatment may increase bleeding. Use only with significant "
                        "clinical bleeding."
                    ),
                ),
            ),
            **common,
        )

    if intem_prolonged and not heptem_ok:
        return HeparinEffectResult(
            status=ResultStatus.NOT_INDICATED,
            reason="CT HEPTEM also prolonged - suggests factor deficit, not heparin effect",
            alternative_interpretation=_FACTOR_DEFICIT_ALTERNATIVE,
            **common,
        )

    return HeparinEffectResult(
        status=ResultStatus.NOT_INDICATED,
        reason="No significant heparin effect detected",
        **common,
    )
