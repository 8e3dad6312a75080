"""
ROTEM Threshold Tables

Clinically derived bounds, grouped by decision domain. Tables are immutable
values handed to the engine at construction, so two protocol versions can be
evaluated side by side against the same panel.

Sources:
  - PRO/T 3 v3 (30/10/2024), institutional liver-transplant coagulation protocol
  - Görlinger & Pérez Ferrer (2018), A5 liver algorithm (vendor variant)

Each Bound carries the clinical operator it is read with:
  MINIMUM  the finding triggers when the measured value falls BELOW the bound
  MAXIMUM  the finding triggers when the measured value rises ABOVE the bound
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from rotem_assist.utils.exceptions import ThresholdConfigError
from .phases import phase_reference


class Operator(str, Enum):
    MINIMUM = "minimum"
    MAXIMUM = "maximum"


@dataclass(frozen=True)
class Bound:
    """One named numeric limit."""
    value: float
    unit: str
    operator: Operator
    description: str = ""

    def __post_init__(self):
        if not isinstance(self.operator, Operator):
            raise ThresholdConfigError(f"Bound operator must be an Operator, got {self.operator!r}")
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)) \
                or not math.isfinite(self.value):
            raise ThresholdConfigError(f"Bound value must be a finite number, got {self.value!r}")

    @property
    def symbol(self) -> str:
        return "<" if self.operator is Operator.MINIMUM else ">"

    def triggered_by(self, measured: float) -> bool:
        """True when ``measured`` lies on the abnormal side of the bound."""
        if self.operator is Operator.MINIMUM:
            return measured < self.value
        return measured > self.value

    def describe(self) -> str:
        unit = f" {self.unit}" if self.unit and self.unit != "%" else self.unit
        return f"{self.symbol} {_fmt(self.value)}{unit}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit,
            "operator": self.operator.value,
            "description": self.description,
        }


def _fmt(value: float) -> str:
    return f"{value:g}"


def _minimum(value: float, unit: str, description: str) -> Bound:
    return Bound(value, unit, Operator.MINIMUM, description)


def _maximum(value: float, unit: str, description: str) -> Bound:
    return Bound(value, unit, Operator.MAXIMUM, description)


class _BoundGroup:
    """Mixin giving every threshold group the same export."""

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {f.name: getattr(self, f.name).to_dict() for f in fields(self)}


# ── Threshold groups ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PreconditionThresholds(_BoundGroup):
    ph: Bound = _minimum(7.20, "", "Acidosis impairs thrombin generation")
    temperature: Bound = _minimum(35.0, "°C", "Normothermia")
    ionized_calcium: Bound = _minimum(1.15, "mmol/L", "Calcium is a coagulation cofactor")
    hemoglobin: Bound = _minimum(6.0, "g/dL", "Red cells support platelet margination")


@dataclass(frozen=True)
class ProphylaxisThresholds(_BoundGroup):
    a5_extem: Bound = _minimum(25.0, "mm", "Reduced baseline clot firmness")
    ct_fibtem: Bound = _maximum(600.0, "s", "Flat-line FIBTEM")
    ct_cft_extem_sum: Bound = _maximum(280.0, "s", "Slow clot initiation and propagation")


@dataclass(frozen=True)
class TreatmentThresholds(_BoundGroup):
    cli60_pre_anhepatic: Bound = _minimum(85.0, "%", "Lysis floor before the anhepatic phase")
    cli30_anhepatic: Bound = _minimum(50.0, "%", "Lysis floor from the anhepatic phase onwards")
    cli30_fulminant: Bound = _minimum(50.0, "%", "Fulminant hyperfibrinolysis, any phase")


@dataclass(frozen=True)
class ContraindicationThresholds(_BoundGroup):
    mcf_extem: Bound = _maximum(60.0, "mm", "Baseline hypercoagulability")


@dataclass(frozen=True)
class FibrinogenThresholds(_BoundGroup):
    a5_extem_bleeding: Bound = _minimum(25.0, "mm", "EXTEM floor with active diffuse bleeding")
    a5_extem_no_bleeding: Bound = _minimum(20.0, "mm", "EXTEM floor when bleeding is only anticipated")
    a5_fibtem: Bound = _minimum(8.0, "mm", "Fibrinogen channel floor")
    a5_fibtem_post_reperfusion: Bound = _minimum(13.0, "mm", "Fibrinogen channel floor after reperfusion")
    a5_fibtem_target: Bound = _minimum(10.0, "mm", "Replacement target")
    a5_fibtem_severe: Bound = _minimum(4.0, "mm", "Severe fibrinogen deficit")


@dataclass(frozen=True)
class PlateletThresholds(_BoundGroup):
    a5_extem_bleeding: Bound = _minimum(25.0, "mm", "EXTEM floor with active diffuse bleeding")
    a5_extem_no_bleeding: Bound = _minimum(20.0, "mm", "EXTEM floor when bleeding is only anticipated")
    a5_extem_cryoprecipitate: Bound = _minimum(5.0, "mm", "Co-administer cryoprecipitate below this")


@dataclass(frozen=True)
class ThrombinGenerationThresholds(_BoundGroup):
    ct_extem: Bound = _maximum(80.0, "s", "Vitamin-K dependent factor deficit")
    ct_intem: Bound = _maximum(240.0, "s", "Intrinsic pathway prolongation")
    ct_heptem: Bound = _maximum(240.0, "s", "Prolongation persisting after heparinase")


@dataclass(frozen=True)
class HeparinEffectThresholds(_BoundGroup):
    ct_intem: Bound = _maximum(240.0, "s", "INTEM prolongation")
    heptem_intem_ratio: Bound = _minimum(0.75, "", "HEPTEM/INTEM ratio suggesting heparinoids")


@dataclass(frozen=True)
class ThresholdTable:
    """A complete, versioned protocol."""
    version: str
    preconditions: PreconditionThresholds = PreconditionThresholds()
    fibrinolysis_prophylaxis: ProphylaxisThresholds = ProphylaxisThresholds()
    fibrinolysis_treatment: TreatmentThresholds = TreatmentThresholds()
    fibrinolysis_contraindications: ContraindicationThresholds = ContraindicationThresholds()
    fibrinogen: FibrinogenThresholds = FibrinogenThresholds()
    platelets: PlateletThresholds = PlateletThresholds()
    thrombin_generation: ThrombinGenerationThresholds = ThrombinGenerationThresholds()
    heparin_effect: HeparinEffectThresholds = HeparinEffectThresholds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name).to_dict()
            for f in fields(self)
            if f.name != "version"
        }


# ── Protocol versions ─────────────────────────────────────────────────────────

PRO_T3_V3 = ThresholdTable(version="PRO_T3_V3")

# Vendor liver algorithm: slightly different clotting-time ceilings
WERFEN_A5_2018 = ThresholdTable(
    version="WERFEN_A5_2018",
    thrombin_generation=replace(
        ThrombinGenerationThresholds(),
        ct_extem=_maximum(75.0, "s", "Vitamin-K dependent factor deficit"),
        ct_intem=_maximum(280.0, "s", "Intrinsic pathway prolongation"),
    ),
)

DEFAULT_PROTOCOL = PRO_T3_V3.version

PROTOCOLS: Mapping[str, ThresholdTable] = MappingProxyType({
    PRO_T3_V3.version: PRO_T3_V3,
    WERFEN_A5_2018.version: WERFEN_A5_2018,
})


def get_threshold_table(version: Optional[str] = None) -> ThresholdTable:
    """
    Look up a protocol by version name.

    Raises:
        ThresholdConfigError: if the version is not shipped.
    """
    key = (version or DEFAULT_PROTOCOL).strip().upper()
    table = PROTOCOLS.get(key)
    if table is None:
        raise ThresholdConfigError(
            f"Unknown ROTEM protocol: {version}. Valid: {list(PROTOCOLS)}",
            protocol=str(version),
        )
    return table


def export_reference_data(table: ThresholdTable) -> Dict[str, Any]:
    """Read-only snapshot of a table plus the phase enumeration, for display."""
    return {
        "protocol": table.version,
        "thresholds": table.to_dict(),
        **phase_reference(),
    }
