"""
API request/response models.
"""
from .rotem import (
    ClinicalContextInput,
    ContraindicationsInput,
    HealthResponse,
    RecommendationRequest,
    RecommendationResponse,
    ThresholdsResponse,
)

__all__ = [
    "ClinicalContextInput",
    "ContraindicationsInput",
    "HealthResponse",
    "RecommendationRequest",
    "RecommendationResponse",
    "ThresholdsResponse",
]
