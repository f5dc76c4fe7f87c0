from .sms_adapter import SMSAdapter
from .query_analyzer import QueryAnalysis, analyze
from .input_validator import ValidationResult, validate, normalize

__all__ = [
    "SMSAdapter",
    "QueryAnalysis",
    "analyze",
    "ValidationResult",
    "validate",
    "normalize",
]
