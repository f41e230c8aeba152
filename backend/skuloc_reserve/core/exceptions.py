"""
Domain Exceptions — Reserve Calculation

Every failure raised by the calculation core derives from ReserveCalcException so
callers can catch one type and still read a stable error code.
"""
from typing import Any, Dict, Optional


class ReserveCalcException(Exception):
    """Base class for all reserve calculation errors."""

    code = "RESERVE_CALC_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class UnknownFieldError(ReserveCalcException, LookupError):
    code = "UNKNOWN_FIELD"

    def __init__(self, name: Any):
        self.name = name
        super().__init__(f"Unknown field: {name!r}")


class MissingValueError(ReserveCalcException):
    """Raised in strict mode when a field is read before anything wrote it."""

    code = "MISSING_VALUE"

    def __init__(self, field: Any, flow: Optional[Any] = None):
        self.field = field
        self.flow = flow
        scope = f" for flow {getattr(flow, 'value', flow)}" if flow is not None else ""
        super().__init__(f"Field {getattr(field, 'value', field)} read before it was set{scope}")


class CalculationFailure(ReserveCalcException):
    """A step's computation raised; the whole evaluation is aborted."""

    code = "CALCULATION_FAILURE"

    def __init__(self, field: Any, cause: BaseException, flow: Optional[Any] = None):
        self.field = field
        self.cause = cause
        self.flow = flow
        scope = f" (flow {getattr(flow, 'value', flow)})" if flow is not None else ""
        super().__init__(
            f"Calculation of {getattr(field, 'value', field)}{scope} failed: "
            f"{type(cause).__name__}: {cause}"
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["field"] = getattr(self.field, "value", self.field)
        payload["flow"] = getattr(self.flow, "value", self.flow)
        payload["cause"] = type(self.cause).__name__
        return payload


class RegistryError(ReserveCalcException):
    code = "REGISTRY_ERROR"


class ModifierTypeError(ReserveCalcException, TypeError):
    code = "MODIFIER_TYPE"


class InvalidInputError(ReserveCalcException, ValueError):
    code = "INVALID_INPUT"


class EngineCheckError(ReserveCalcException):
    code = "ENGINE_CHECK_FAILED"
