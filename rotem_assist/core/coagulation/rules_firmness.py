"""
Clot Firmness Rules — fibrinogen and platelets

Cirrhotic patients have "rebalanced" hemostasis: pro- and anticoagulant
factors are both reduced. Correcting laboratory values without clinical
bleeding can tip the balance towards thrombosis (portal vein, hepatic
artery), so fibrinogen is only ever indicated with confirmed active diffuse
bleeding. Low firmness without bleeding produces a SAFETY_GATED result that
carries the prothrombotic-risk warning.

Fibrinogen channel: A5 FIBTEM, or A5 APTEM when hyperfibrinolysis is active
and APTEM was run (the aprotinin channel removes the lysis artefact).

Dosing:
  step        25 mg/kg (moderate) or 50 mg/kg (A5 FIBTEM < 4 mm, severe)
  continuous  dose_g = (target_A5 − measured_A5) × weight_kg / 160
  platelets   ceil(weight_kg / 10) × 1.5 units, rounded to whole units
"""
from __future__ import annotations

import math
from typing import List, Optional

from rotem_assist.utils import get_logger
from .base import (
    INSUFFICIENT_DATA_REASON,
    ClinicalContext,
    ClinicalWarning,
    Criterion,
    DeficitSeverity,
    Domain,
    Dose,
    EvaluationResult,
    FibrinogenResult,
    Recommendation,
    ResultStatus,
    RotemPanel,
    RotemTest,
)
from .phases import PhaseClass
from .thresholds import ThresholdTable

logger = get_logger(__name__)

FIBRINOGEN_MODERATE_MG_PER_KG = 25
FIBRINOGEN_SEVERE_MG_PER_KG   = 50
RAHE_MEYER_DIVISOR            = 160   # (ΔA5 mm × kg) / 160 = grams
CRYO_UNITS_PER_GRAM           = 5
CRYO_ML_PER_UNIT              = 40    # 5 U ≈ 1 g ≈ 200 mL

PLATELET_UNITS_PER_10_KG      = 1.5


def _fibrinogen_channel(panel: RotemPanel, hyperfibrinolysis_active: bool):
    if hyperfibrinolysis_active and panel.a5_aptem is not None:
        return RotemTest.APTEM, panel.a5_aptem
    return RotemTest.FIBTEM, panel.a5_fibtem


def evaluate_fibrinogen(
    panel: RotemPanel,
    context: ClinicalContext,
    thresholds: ThresholdTable,
    hyperfibrinolysis_active: bool = False,
) -> FibrinogenResult:
    """
    Decide on fibrinogen concentrate / cryoprecipitate.

    Args:
        hyperfibrinolysis_active: output of the fibrinolysis treatment step.

    Returns:
        INDICATED only when A5 EXTEM and the fibrinogen channel are both low
        AND the patient is actively bleeding. Both low without bleeding gives
        SAFETY_GATED with a PROTHROMBOTIC_RISK warning and no dose.
    """
    t = thresholds.fibrinogen
    channel, channel_value = _fibrinogen_channel(panel, hyperfibrinolysis_active)
    post_reperfusion = panel.phase_class is PhaseClass.POST_REPERFUSION

    channel_floor = t.a5_fibtem_post_reperfusion if post_reperfusion else t.a5_fibtem
    extem_floor = t.a5_extem_bleeding if context.active_bleeding else t.a5_extem_no_bleeding
    target = max(t.a5_fibtem_target.value, channel_floor.value)

    adequate = None if channel_value is None else not t.a5_fibtem.triggered_by(channel_value)
    channel_name = f"a5{channel.value.capitalize()}"
    criteria = (
        Criterion.against("a5Extem", panel.a5_extem, extem_floor),
        Criterion.against(channel_name, channel_value, channel_floor),
    )
    common = dict(
        domain=Domain.FIBRINOGEN,
        criteria=criteria,
        channel=channel,
        channel_value=channel_value,
        fibrinogen_adequate=adequate,
    )

    if panel.a5_extem is None or channel_value is None:
        return FibrinogenResult(
            status=ResultStatus.INSUFFICIENT_DATA,
            missing_fields=panel.missing("a5_extem", "a5_fibtem") if channel is RotemTest.FIBTEM
            else panel.missing("a5_extem"),
            reason=INSUFFICIENT_DATA_REASON,
            **common,
        )

    extem_low, channel_low = criteria[0].met, criteria[1].met

    if extem_low and channel_low and not context.active_bleeding:
        logger.debug("Fibrinogen: low firmness without active bleeding, treatment withheld")
        return FibrinogenResult(
            status=ResultStatus.SAFETY_GATED,
            reason=(
                f"Low clot firmness (A5 EXTEM {panel.a5_extem:g} mm, "
                f"A5 {channel.value} {channel_value:g} mm) WITHOUT active diffuse bleeding"
            ),
            warning=ClinicalWarning(
                type="PROTHROMBOTIC_RISK",
                message=(
                    "DO NOT TREAT without active clinical bleeding. Liver disease patients have "
                    "rebalanced hemostasis; giving fibrinogen without bleeding may precipitate "
                    "thrombosis (especially portal vein or hepatic artery)."
                ),
                evidence="Tripodi A, Mannucci PM. N Engl J Med 2011; Lisman T, Porte RJ. Blood 2010",
            ),
            notes=("Monitor clinically. Treat only if active diffuse bleeding develops.",),
            **common,
        )

    if not (extem_low and channel_low):
        return FibrinogenResult(
            status=ResultStatus.NOT_INDICATED,
            reason=(
                "A5 EXTEM adequate - no significant fibrinogen deficit" if channel_low else
                f"A5 {channel.value} adequate - fibrinogen level probably sufficient"
            ),
            **common,
        )

    weight = context.weight_kg
    severe = t.a5_fibtem_severe.triggered_by(channel_value)
    severity = DeficitSeverity.SEVERE if severe else DeficitSeverity.MODERATE
    mg_per_kg = FIBRINOGEN_SEVERE_MG_PER_KG if severe else FIBRINOGEN_MODERATE_MG_PER_KG
    dose_g = round(mg_per_kg * weight / 1000, 2)
    calculated_g = round(max(target - channel_value, 0.0) * weight / RAHE_MEYER_DIVISOR, 2)
    cryo_units = math.ceil(dose_g * CRYO_UNITS_PER_GRAM)

    notes: List[str] = [
        f"Calculated dose to reach A5 {channel.value} >= {target:g} mm: {calculated_g:.1f} g "
        f"(dose (g) = [target A5 - measured A5] x weight (kg) / {RAHE_MEYER_DIVISOR})"
    ]
    if hyperfibrinolysis_active:
        notes.append("Treat hyperfibrinolysis before giving fibrinogen (use maximum doses).")

    logger.debug(f"Fibrinogen indicated: {severity.value}, {dose_g:.1f} g via {channel.value}")

    return FibrinogenResult(
        status=ResultStatus.INDICATED,
        severity=severity,
        dose_mg_per_kg=mg_per_kg,
        dose_g=dose_g,
        calculated_dose_g=calculated_g,
        notes=tuple(notes),
        recommendations=(
            Recommendation(
                action="ADMINISTER_FIBRINOGEN",
                priority=1,
                description="Administer fibrinogen concentrate / cryoprecipitate",
                dose=Dose(
                    f"{mg_per_kg} mg/kg = {dose_g:.1f} g fibrinogen",
                    low=dose_g, high=dose_g, unit="g",
                ),
                supplementary_dose=f"{cryo_units} units of cryoprecipitate (≈{cryo_units * CRYO_ML_PER_UNIT} mL)",
                target=f"A5 {channel.value} >= {target:g} mm",
                details="Cryoprecipitate is first line where available. 5 U cryoprecipitate ≈ 1 g fibrinogen.",
                evidence="Rahe-Meyer N et al. Anesthesiology 2013; Nascimento B et al. Br J Anaesth 2014",
            ),
        ),
        **common,
    )


def evaluate_platelets(
    panel: RotemPanel,
    context: ClinicalContext,
    thresholds: ThresholdTable,
    fibrinogen_adequate: Optional[bool] = None,
) -> EvaluationResult:
    """
    Decide on platelet transfusion.

    Low A5 EXTEM only points at platelets once the fibrinogen channel is
    adequate; otherwise the fibrinogen evaluator owns the finding. Suspected
    platelet dysfunction indicates transfusion on its own.
    """
    t = thresholds.platelets
    extem_floor = t.a5_extem_bleeding if context.active_bleeding else t.a5_extem_no_bleeding
    extem = Criterion.against("a5Extem", panel.a5_extem, extem_floor)
    fibrinogen_ok = Criterion(
        name="fibrinogenAdequate",
        value=None if fibrinogen_adequate is None else float(fibrinogen_adequate),
        threshold=f">= {thresholds.fibrinogen.a5_fibtem.value:g} mm",
        met=bool(fibrinogen_adequate),
    )
    dysfunction = Criterion(
        name="suspectedPlateletDysfunction",
        value=float(context.suspected_platelet_dysfunction),
        threshold="flagged",
        met=context.suspected_platelet_dysfunction,
    )
    criteria = (extem, fibrinogen_ok, dysfunction)

    missing = panel.missing("a5_extem")
    if fibrinogen_adequate is None:
        missing += ("a5Fibtem",)

    indicated = (extem.met and fibrinogen_ok.met) or dysfunction.met

    if not indicated:
        if missing:
            return EvaluationResult(
                domain=Domain.PLATELETS,
                status=ResultStatus.INSUFFICIENT_DATA,
                criteria=criteria,
                missing_fields=missing,
                reason=INSUFFICIENT_DATA_REASON,
            )
        return EvaluationResult(
            domain=Domain.PLATELETS,
            status=ResultStatus.NOT_INDICATED,
            criteria=criteria,
            reason=(
                "A5 EXTEM adequate - no platelet deficit" if not extem.met else
                "Low fibrinogen channel points to a fibrinogen rather than platelet problem"
            ),
        )

    units = int(math.floor(math.ceil(context.weight_kg / 10) * PLATELET_UNITS_PER_10_KG + 0.5))
    notes = []
    if panel.a5_extem is not None and t.a5_extem_cryoprecipitate.triggered_by(panel.a5_extem):
        notes.append("A5 EXTEM < 5 mm: give cryoprecipitate together with platelets.")

    return EvaluationResult(
        domain=Domain.PLATELETS,
        status=ResultStatus.INDICATED,
        criteria=criteria,
        missing_fields=missing,
        notes=tuple(notes),
        recommendations=(
            Recommendation(
                action="ADMINISTER_PLATELETS",
                priority=1 if context.active_bleeding else 2,
                description="Administer platelet concentrate",
                dose=Dose(f"1-2 U/10 kg = {units} units (apheresis or pool)", low=units, high=units, unit="U"),
                details=(
                    "One platelet pool can raise A5 EXTEM by up to 8 mm. "
                    "With A5 EXTEM between 5 and 15 mm consider two pools."
                ),
                evidence="Fayed NA et al. Platelets 2014; Tripodi A et al. Liver Int 2013",
                warning=(
                    "Platelet transfusion in liver transplantation is associated with higher mortality "
                    "from acute lung injury. Use with caution after reperfusion."
                ),
                warning_evidence="Pereboom IT et al. Anesth Analg 2009",
            ),
        ),
    )
