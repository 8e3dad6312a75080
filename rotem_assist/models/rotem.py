"""
Pydantic models for the ROTEM recommendation API.

Request bodies use the flat ``<test><Parameter>`` wire names of the bedside
forms (``ctExtem``, ``a5Fibtem``, ``cli30``); the older ``rotemCtExtem`` style
is accepted as well. Ranges reject transcription errors before the engine
sees them.
"""
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from rotem_assist.core.coagulation import ClinicalContext, Contraindications, RotemPanel


def _rotem(key: str, le: float) -> Any:
    legacy = "rotem" + key[0].upper() + key[1:]
    return Field(None, ge=0, le=le, validation_alias=AliasChoices(key, legacy))


_TIME = 3600       # s
_AMPLITUDE = 120   # mm
_LYSIS = 100       # %


class ContraindicationsInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    previous_thrombosis: bool = Field(False, alias="previousThrombosis")
    hepatic_malignancy: bool = Field(False, alias="hepaticMalignancy")
    chronic_biliary_inflammation: bool = Field(False, alias="chronicBiliaryInflammation")

    def to_domain(self) -> Contraindications:
        return Contraindications(
            prior_thrombosis=self.previous_thrombosis,
            hepatic_malignancy=self.hepatic_malignancy,
            chronic_biliary_inflammation=self.chronic_biliary_inflammation,
        )


class ClinicalContextInput(BaseModel):
    """Bedside context. Omitted weight falls back to the configured default."""
    model_config = ConfigDict(populate_by_name=True)

    weight: Optional[float] = Field(None, ge=30, le=300)
    has_active_bleeding: bool = Field(False, alias="hasActiveBleeding")
    anticipated_bleeding: bool = Field(False, alias="anticipatedBleeding")
    refractory_bleeding: bool = Field(False, alias="refractoryBleeding")
    suspected_platelet_dysfunction: bool = Field(False, alias="suspectedPlateletDysfunction")
    ph: Optional[float] = Field(None, ge=6.8, le=8.0, alias="pH")
    temperature: Optional[float] = Field(None, ge=30, le=42)
    ionic_calcium: Optional[float] = Field(None, ge=0.5, le=3.0, alias="ionicCalcium")
    hemoglobin: Optional[float] = Field(None, ge=0, le=25)
    contraindications: ContraindicationsInput = Field(default_factory=ContraindicationsInput)
    ccp_available: bool = Field(True, alias="ccpAvailable")

    def to_domain(self, default_weight_kg: float) -> ClinicalContext:
        return ClinicalContext(
            weight_kg=self.weight if self.weight is not None else default_weight_kg,
            active_bleeding=self.has_active_bleeding,
            anticipated_bleeding=self.anticipated_bleeding,
            refractory_bleeding=self.refractory_bleeding,
            suspected_platelet_dysfunction=self.suspected_platelet_dysfunction,
            ph=self.ph,
            temperature_c=self.temperature,
            ionized_calcium=self.ionic_calcium,
            hemoglobin=self.hemoglobin,
            contraindications=self.contraindications.to_domain(),
            pcc_available=self.ccp_available,
        )


class RecommendationRequest(BaseModel):
    """One ROTEM panel plus clinical context."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {
            "phase": "DISECCION",
            "ctExtem": 72, "a5Extem": 18, "a5Fibtem": 6, "cli60": 92,
            "clinicalContext": {"weight": 80, "hasActiveBleeding": True},
        }},
    )

    phase: str = Field(..., min_length=1)

    ct_extem: Optional[float] = _rotem("ctExtem", _TIME)
    cft_extem: Optional[float] = _rotem("cftExtem", _TIME)
    a5_extem: Optional[float] = _rotem("a5Extem", _AMPLITUDE)
    a10_extem: Optional[float] = _rotem("a10Extem", _AMPLITUDE)
    mcf_extem: Optional[float] = _rotem("mcfExtem", _AMPLITUDE)
    ml_extem: Optional[float] = _rotem("ml", _LYSIS)
    cli30_extem: Optional[float] = _rotem("cli30", _LYSIS)
    cli60_extem: Optional[float] = _rotem("cli60", _LYSIS)

    ct_fibtem: Optional[float] = _rotem("ctFibtem", _TIME)
    a5_fibtem: Optional[float] = _rotem("a5Fibtem", _AMPLITUDE)
    a10_fibtem: Optional[float] = _rotem("a10Fibtem", _AMPLITUDE)
    mcf_fibtem: Optional[float] = _rotem("mcfFibtem", _AMPLITUDE)

    ct_intem: Optional[float] = _rotem("ctIntem", _TIME)
    ct_heptem: Optional[float] = _rotem("ctHeptem", _TIME)
    a5_aptem: Optional[float] = _rotem("a5Aptem", _AMPLITUDE)

    clinical_context: ClinicalContextInput = Field(
        default_factory=ClinicalContextInput, alias="clinicalContext"
    )

    def to_panel(self) -> RotemPanel:
        """Raises InvalidInputError for an unknown phase."""
        values = self.model_dump(exclude={"phase", "clinical_context"})
        return RotemPanel(phase=self.phase, **values)

    def to_context(self, default_weight_kg: float) -> ClinicalContext:
        return self.clinical_context.to_domain(default_weight_kg)


class RecommendationResponse(BaseModel):
    success: bool = True
    evaluation: Dict[str, Any]


class ThresholdsResponse(BaseModel):
    success: bool = True
    protocol: str
    thresholds: Dict[str, Any]
    phases: Dict[str, str]
    phase_classes: Dict[str, str] = Field(alias="phaseClasses")
    early_phases: List[str] = Field(alias="earlyPhases")

    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    status: str
    version: str
    protocol: str
    timestamp: str
