"""
Custom Exception Hierarchy

Contract violations and configuration faults. Clinical outcomes such as
"insufficient data" or "do not treat without bleeding" are results, not
exceptions, and never pass through here.
"""
from typing import Optional, Dict, Any


class RotemAssistError(Exception):
    """Base exception for all ROTEM assistance errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class InvalidInputError(RotemAssistError):
    """Panel or clinical context violates the input contract."""

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            details={"field": field, **(details or {})}
        )
        self.field = field


class ThresholdConfigError(RotemAssistError):
    """Threshold table is malformed or the protocol version is unknown."""

    def __init__(
        self,
        message: str,
        protocol: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="THRESHOLD_CONFIG_ERROR",
            details={"protocol": protocol, **(details or {})}
        )
        self.protocol = protocol


class EvaluationError(RotemAssistError):
    """An evaluator failed while running the pipeline."""

    def __init__(
        self,
        message: str,
        domain: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="EVALUATION_ERROR",
            details={"domain": domain, **(details or {})}
        )
        self.domain = domain
