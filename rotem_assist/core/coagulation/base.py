"""
Coagulation Decision Layer — Base Types

Immutable data contracts shared by every evaluator: the measurement panel,
the clinical context, per-domain results and the final report. Everything
here is created per evaluation and never mutated afterwards.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from rotem_assist.utils.exceptions import InvalidInputError
from .phases import PhaseClass, SurgicalPhase, classify_phase
from .thresholds import Bound


class RotemTest(str, Enum):
    EXTEM  = "EXTEM"
    FIBTEM = "FIBTEM"
    INTEM  = "INTEM"
    HEPTEM = "HEPTEM"
    APTEM  = "APTEM"


class Domain(str, Enum):
    """The eight evaluator domains, in pipeline order."""
    PRECONDITIONS            = "preconditions"
    FIBRINOLYSIS_PROPHYLAXIS = "fibrinolysisProphylaxis"
    FIBRINOLYSIS_TREATMENT   = "fibrinolysisTreatment"
    FIBRINOGEN               = "fibrinogen"
    PLATELETS                = "platelets"
    COAGULATION_FACTORS      = "coagulationFactors"
    HEPARIN_EFFECT           = "heparinEffect"
    SALVAGE                  = "factorVIIa"


class ResultStatus(str, Enum):
    """
    Outcome of one evaluator.

    INDICATED          – treatment recommended
    NOT_INDICATED      – values within range, or the finding is better
                         explained elsewhere (see alternative_interpretation)
    INSUFFICIENT_DATA  – required inputs absent; see missing_fields
    CONTRAINDICATED    – indication not evaluated because a contraindication holds
    SAFETY_GATED       – labs are abnormal but treatment is withheld; see warning
    """
    INDICATED         = "indicated"
    NOT_INDICATED     = "not_indicated"
    INSUFFICIENT_DATA = "insufficient_data"
    CONTRAINDICATED   = "contraindicated"
    SAFETY_GATED      = "safety_gated"


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING  = "warning"


class DeficitSeverity(str, Enum):
    MODERATE = "moderate"
    SEVERE   = "severe"


INSUFFICIENT_DATA_REASON = "insufficient data"


# ── Inputs ────────────────────────────────────────────────────────────────────

# attribute -> (test, parameter label, unit, flat wire key)
PANEL_PARAMETERS: Dict[str, Tuple[RotemTest, str, str, str]] = {
    "ct_extem":    (RotemTest.EXTEM,  "CT",    "s",  "ctExtem"),
    "cft_extem":   (RotemTest.EXTEM,  "CFT",   "s",  "cftExtem"),
    "a5_extem":    (RotemTest.EXTEM,  "A5",    "mm", "a5Extem"),
    "a10_extem":   (RotemTest.EXTEM,  "A10",   "mm", "a10Extem"),
    "mcf_extem":   (RotemTest.EXTEM,  "MCF",   "mm", "mcfExtem"),
    "ml_extem":    (RotemTest.EXTEM,  "ML",    "%",  "ml"),
    "cli30_extem": (RotemTest.EXTEM,  "CLI30", "%",  "cli30"),
    "cli60_extem": (RotemTest.EXTEM,  "CLI60", "%",  "cli60"),
    "ct_fibtem":   (RotemTest.FIBTEM, "CT",    "s",  "ctFibtem"),
    "a5_fibtem":   (RotemTest.FIBTEM, "A5",    "mm", "a5Fibtem"),
    "a10_fibtem":  (RotemTest.FIBTEM, "A10",   "mm", "a10Fibtem"),
    "mcf_fibtem":  (RotemTest.FIBTEM, "MCF",   "mm", "mcfFibtem"),
    "ct_intem":    (RotemTest.INTEM,  "CT",    "s",  "ctIntem"),
    "ct_heptem":   (RotemTest.HEPTEM, "CT",    "s",  "ctHeptem"),
    "a5_aptem":    (RotemTest.APTEM,  "A5",    "mm", "a5Aptem"),
}


def _check_measurement(name: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{name} must be a number or None, got {value!r}", field=name)
    if not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"{name} must be a finite non-negative number, got {value!r}", field=name)
    return float(value)


def _check_flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidInputError(f"{name} must be a boolean, got {value!r}", field=name)
    return value


@dataclass(frozen=True)
class RotemPanel:
    """
    One ROTEM measurement snapshot.

    ``None`` means "not measured" and is never read as zero.
    """
    phase: SurgicalPhase
    # EXTEM
    ct_extem: Optional[float] = None      # s
    cft_extem: Optional[float] = None     # s
    a5_extem: Optional[float] = None      # mm
    a10_extem: Optional[float] = None     # mm
    mcf_extem: Optional[float] = None     # mm
    ml_extem: Optional[float] = None      # %
    cli30_extem: Optional[float] = None   # %
    cli60_extem: Optional[float] = None   # %
    # FIBTEM
    ct_fibtem: Optional[float] = None     # s
    a5_fibtem: Optional[float] = None     # mm
    a10_fibtem: Optional[float] = None    # mm
    mcf_fibtem: Optional[float] = None    # mm
    # INTEM / HEPTEM / APTEM
    ct_intem: Optional[float] = None      # s
    ct_heptem: Optional[float] = None     # s
    a5_aptem: Optional[float] = None      # mm

    def __post_init__(self):
        object.__setattr__(self, "phase", SurgicalPhase.parse(self.phase))
        for name in PANEL_PARAMETERS:
            object.__setattr__(self, name, _check_measurement(name, getattr(self, name)))

    @property
    def phase_class(self) -> PhaseClass:
        return classify_phase(self.phase)

    @classmethod
    def from_flat(cls, data: Mapping[str, Any]) -> "RotemPanel":
        """
        Build a panel from flat ``<test><Parameter>`` keys (``ctExtem``,
        ``a5Fibtem``, ``cli30``). Legacy ``rotemCtExtem``-style keys are also
        accepted. Unknown keys are ignored.
        """
        if "phase" not in data:
            raise InvalidInputError("phase is required", field="phase")
        values: Dict[str, Any] = {}
        for attr, (_, _, _, key) in PANEL_PARAMETERS.items():
            legacy = "rotem" + key[0].upper() + key[1:]
            if key in data:
                values[attr] = data[key]
            elif legacy in data:
                values[attr] = data[legacy]
        return cls(phase=data["phase"], **values)

    def missing(self, *attrs: str) -> Tuple[str, ...]:
        """Wire names of the given parameters that were not measured."""
        return tuple(PANEL_PARAMETERS[a][3] for a in attrs if getattr(self, a) is None)

    def to_flat(self) -> Dict[str, Optional[float]]:
        return {key: getattr(self, attr) for attr, (_, _, _, key) in PANEL_PARAMETERS.items()}

    def values_by_test(self) -> Dict[str, Dict[str, Optional[float]]]:
        grouped: Dict[str, Dict[str, Optional[float]]] = {t.value.lower(): {} for t in RotemTest}
        for attr, (test, label, _, _) in PANEL_PARAMETERS.items():
            grouped[test.value.lower()][label.lower()] = getattr(self, attr)
        return grouped


@dataclass(frozen=True)
class Contraindications:
    """Contraindications to antifibrinolytic prophylaxis."""
    prior_thrombosis: bool = False
    hepatic_malignancy: bool = False
    chronic_biliary_inflammation: bool = False

    def __post_init__(self):
        for f in fields(self):
            _check_flag(f.name, getattr(self, f.name))

    def present(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self) if getattr(self, f.name))

    def to_dict(self) -> Dict[str, bool]:
        return {
            "previousThrombosis": self.prior_thrombosis,
            "hepaticMalignancy": self.hepatic_malignancy,
            "chronicBiliaryInflammation": self.chronic_biliary_inflammation,
        }


@dataclass(frozen=True)
class ClinicalContext:
    """
    Patient state at the time of the sample.

    Supplied by the caller and never written to by the engine; flags derived
    during a run (hyperfibrinolysis) travel as explicit evaluator arguments.
    """
    weight_kg: float = 70.0
    active_bleeding: bool = False
    anticipated_bleeding: bool = False
    refractory_bleeding: bool = False
    suspected_platelet_dysfunction: bool = False
    ph: Optional[float] = None
    temperature_c: Optional[float] = None
    ionized_calcium: Optional[float] = None    # mmol/L
    hemoglobin: Optional[float] = None         # g/dL
    contraindications: Contraindications = Contraindications()
    pcc_available: bool = True

    def __post_init__(self):
        weight = self.weight_kg
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) \
                or not math.isfinite(weight) or weight <= 0:
            raise InvalidInputError(f"weight_kg must be a positive number, got {weight!r}", field="weight_kg")
        object.__setattr__(self, "weight_kg", float(weight))

        for name in ("active_bleeding", "anticipated_bleeding", "refractory_bleeding",
                     "suspected_platelet_dysfunction", "pcc_available"):
            _check_flag(name, getattr(self, name))
        for name in ("ph", "temperature_c", "ionized_calcium", "hemoglobin"):
            object.__setattr__(self, name, _check_measurement(name, getattr(self, name)))
        if not isinstance(self.contraindications, Contraindications):
            raise InvalidInputError("contraindications must be a Contraindications instance",
                                    field="contraindications")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weight": self.weight_kg,
            "hasActiveBleeding": self.active_bleeding,
            "anticipatedBleeding": self.anticipated_bleeding,
            "refractoryBleeding": self.refractory_bleeding,
            "suspectedPlateletDysfunction": self.suspected_platelet_dysfunction,
            "pH": self.ph,
            "temperature": self.temperature_c,
            "ionicCalcium": self.ionized_calcium,
            "hemoglobin": self.hemoglobin,
            "contraindications": self.contraindications.to_dict(),
            "ccpAvailable": self.pcc_available,
        }


# ── Evaluation outputs ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Criterion:
    """One threshold comparison: what was measured, against what, and whether it held."""
    name: str
    value: Optional[float]
    threshold: str
    met: bool

    @classmethod
    def against(cls, name: str, value: Optional[float], bound: Bound) -> "Criterion":
        met = value is not None and bound.triggered_by(value)
        return cls(name=name, value=value, threshold=bound.describe(), met=met)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "threshold": self.threshold, "met": self.met}


@dataclass(frozen=True)
class ClinicalWarning:
    type: str
    message: str
    evidence: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message, "evidence": self.evidence}


@dataclass(frozen=True)
class Dose:
    """Dosing instruction; numeric bounds are filled when a formula was evaluated."""
    text: str
    low: Optional[float] = None
    high: Optional[float] = None
    unit: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"text": self.text}
        if self.low is not None:
            data.update({"low": self.low, "high": self.high, "unit": self.unit})
        return data


@dataclass(frozen=True)
class Recommendation:
    """A single hemostatic action."""
    action: str
    priority: int                       # 1 = most urgent
    description: str
    evidence: str
    dose: Optional[Dose] = None
    details: Optional[str] = None
    target: Optional[str] = None
    follow_up: Optional[str] = None
    warning: Optional[str] = None
    warning_evidence: Optional[str] = None
    alternative_dose: Optional[str] = None
    supplementary_dose: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "action": self.action,
            "priority": self.priority,
            "description": self.description,
            "dose": self.dose.text if self.dose else None,
            "evidence": self.evidence,
        }
        if self.dose is not None and self.dose.low is not None:
            data["doseRange"] = self.dose.to_dict()
        optional = {
            "details": self.details,
            "target": self.target,
            "followUp": self.follow_up,
            "warning": self.warning,
            "warningEvidence": self.warning_evidence,
            "alternativeDose": self.alternative_dose,
            "supplementaryDose": self.supplementary_dose,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one evaluator for one panel."""
    domain: Domain
    status: ResultStatus
    criteria: Tuple[Criterion, ...] = ()
    recommendations: Tuple[Recommendation, ...] = ()
    reason: Optional[str] = None
    warning: Optional[ClinicalWarning] = None
    notes: Tuple[str, ...] = ()
    missing_fields: Tuple[str, ...] = ()
    alternative_interpretation: Optional[str] = None

    @property
    def indicated(self) -> bool:
        return self.status is ResultStatus.INDICATED

    @property
    def recommendation(self) -> Optional[Recommendation]:
        return self.recommendations[0] if self.recommendations else None

    def _extra(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "indicated": self.indicated,
            "status": self.status.value,
            "criteria": [c.to_dict() for c in self.criteria],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "reason": self.reason,
            "warning": self.warning.to_dict() if self.warning else None,
            "notes": list(self.notes),
        }
        if self.missing_fields:
            data["dataRequired"] = list(self.missing_fields)
        if self.alternative_interpretation:
            data["alternativeDiagnosis"] = self.alternative_interpretation
        data.update(self._extra())
        return data


@dataclass(frozen=True)
class PreconditionIssue:
    parameter: str
    value: float
    threshold: str
    severity: IssueSeverity
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "value": self.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class PreconditionResult(EvaluationResult):
    issues: Tuple[PreconditionIssue, ...] = ()

    @property
    def all_met(self) -> bool:
        return not self.issues

    def _extra(self) -> Dict[str, Any]:
        return {"allMet": self.all_met, "issues": [i.to_dict() for i in self.issues]}


@dataclass(frozen=True)
class FibrinolysisTreatmentResult(EvaluationResult):
    fulminant: bool = False
    lysis_parameter: Optional[str] = None

    @property
    def hyperfibrinolysis_active(self) -> bool:
        """Derived flag consumed by the fibrinogen evaluator."""
        return self.indicated

    def _extra(self) -> Dict[str, Any]:
        return {
            "fulminant": self.fulminant,
            "lysisParameter": self.lysis_parameter,
            "hyperfibrinolysisActive": self.hyperfibrinolysis_active,
        }


@dataclass(frozen=True)
class FibrinogenResult(EvaluationResult):
    channel: Optional[RotemTest] = None
    channel_value: Optional[float] = None
    fibrinogen_adequate: Optional[bool] = None
    severity: Optional[DeficitSeverity] = None
    dose_mg_per_kg: Optional[float] = None
    dose_g: Optional[float] = None
    calculated_dose_g: Optional[float] = None

    def _extra(self) -> Dict[str, Any]:
        return {
            "fibrinogenChannel": self.channel.value if self.channel else None,
            "fibrinogenChannelValue": self.channel_value,
            "fibrinogenAdequate": self.fibrinogen_adequate,
            "severity": self.severity.value if self.severity else None,
            "doseMgPerKg": self.dose_mg_per_kg,
            "doseGrams": self.dose_g,
            "calculatedDoseGrams": self.calculated_dose_g,
        }


@dataclass(frozen=True)
class CoagulationFactorResult(EvaluationResult):
    extrinsic_deficit: bool = False
    intrinsic_deficit: bool = False
    deferred_to_fibrinogen: bool = False

    def _extra(self) -> Dict[str, Any]:
        return {
            "extrinsicDeficit": self.extrinsic_deficit,
            "intrinsicDeficit": self.intrinsic_deficit,
            "deferredToFibrinogen": self.deferred_to_fibrinogen,
        }


@dataclass(frozen=True)
class HeparinEffectResult(EvaluationResult):
    ratio: Optional[float] = None

    def _extra(self) -> Dict[str, Any]:
        return {"ratio": self.ratio}


@dataclass(frozen=True)
class SalvageResult(EvaluationResult):
    last_resort: bool = False
    pending_corrections: Tuple[PreconditionIssue, ...] = ()

    def _extra(self) -> Dict[str, Any]:
        return {
            "isLastResort": self.last_resort,
            "pendingCorrections": [i.to_dict() for i in self.pending_corrections],
        }


# ── Report ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PrioritizedAction:
    rank: int
    domain: Domain
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        rec = self.recommendation
        return {
            "rank": self.rank,
            "order": self.rank,  # legacy name used by older clients
            "domain": self.domain.value,
            "action": rec.action,
            "description": rec.description,
            "priority": rec.priority,
            "dose": rec.dose.text if rec.dose else None,
        }


@dataclass(frozen=True)
class EvaluationReport:
    """Everything one pipeline run produced."""
    timestamp: datetime
    protocol: str
    panel: RotemPanel
    context: ClinicalContext
    results: Mapping[Domain, Optional[EvaluationResult]]
    actions: Tuple[PrioritizedAction, ...] = ()
    hyperfibrinolysis_active: bool = False

    @property
    def action_required(self) -> bool:
        return bool(self.actions)

    @property
    def urgent_action_required(self) -> bool:
        return any(a.recommendation.priority == 1 for a in self.actions)

    @property
    def recommendations(self) -> Tuple[Recommendation, ...]:
        return tuple(a.recommendation for a in self.actions)

    def result(self, domain: Domain) -> Optional[EvaluationResult]:
        return self.results.get(domain)

    def comparable_dict(self) -> Dict[str, Any]:
        """``to_dict`` without the timestamp, for equality checks."""
        return {
            "protocol": self.protocol,
            "phase": self.panel.phase.value,
            "phaseClass": self.panel.phase_class.value,
            "rotemValues": self.panel.values_by_test(),
            "clinicalContext": self.context.to_dict(),
            "hyperfibrinolysisActive": self.hyperfibrinolysis_active,
            "evaluations": {
                domain.value: (res.to_dict() if res is not None else None)
                for domain, res in self.results.items()
            },
            "prioritizedActions": [a.to_dict() for a in self.actions],
            "actionRequired": self.action_required,
            "urgentActionRequired": self.urgent_action_required,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), **self.comparable_dict()}
