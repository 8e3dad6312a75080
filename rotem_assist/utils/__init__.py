"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    RotemAssistError,
    InvalidInputError,
    ThresholdConfigError,
    EvaluationError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "RotemAssistError",
    "InvalidInputError",
    "ThresholdConfigError",
    "EvaluationError",
]
