from typing import Any, Callable, List, Optional

INVALID_ARGS_CODE = 9900


class NinjaDispatchError(Exception):
    """Base class for every error raised by ninja_dispatch."""


class InvalidWrapperArgs(NinjaDispatchError):
    code = INVALID_ARGS_CODE


class SchemaValidationError(NinjaDispatchError):
    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class InputValidationError(SchemaValidationError):
    pass


class OutputValidationError(SchemaValidationError):
    pass


class RemoteCallError(NinjaDispatchError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MissingTrackingPrefixError(NinjaDispatchError):
    pass


class WaybillLimitError(NinjaDispatchError):
    pass


class BatchCreationError(NinjaDispatchError):
    """A strict batch did not create every order; `outcome` holds the batch."""

    manual_intervention_required = False

    def __init__(self, message: str, outcome: Any = None):
        super().__init__(message)
        self.outcome = outcome


class CompensationFailedError(BatchCreationError):
    """Orders exist on the carrier side that the caller has no record of."""

    manual_intervention_required = True


class ReconciliationError(NinjaDispatchError):
    UNEXPECTED = "unexpected"
    UNUSED = "unused"
    MISMATCH = "mismatch"

    def __init__(
        self,
        message: str,
        kind: str,
        requested: Optional[str] = None,
        used: Optional[str] = None,
        cancelation: Any = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.requested = requested
        self.used = used
        self.cancelation = cancelation

    @property
    def manual_intervention_required(self) -> bool:
        return self.cancelation is None or not self.cancelation.ok


class LabelRenderingError(NinjaDispatchError):
    """Orders were created but their labels were not; `cancelation` is the rollback."""

    def __init__(self, message: str, outcome: Any = None, cancelation: Any = None):
        super().__init__(message)
        self.outcome = outcome
        self.cancelation = cancelation

    @property
    def manual_intervention_required(self) -> bool:
        return self.cancelation is None or not self.cancelation.ok


# ---------------------------------------------------------------------------
# Remote error translation
#
# Ninja Van answers errors in several JSON shapes. Matchers are tried in order;
# the first one returning a message wins. Shapes overlap (an `error` envelope
# may also carry `data`), so order matters.
# ---------------------------------------------------------------------------

def _join(parts: List[Any]) -> str:
    return " ".join(str(p) for p in parts if p not in (None, "")).strip()


def _match_text(body: Any) -> Optional[str]:
    if isinstance(body, str):
        return body
    return None


def _match_nv_error(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    if "nvErrorCode" not in body and "data" not in body:
        return None
    data = body.get("data")
    messages = body.get("messages") or []
    return _join([
        body.get("description"),
        data.get("message") if isinstance(data, dict) else None,
        *(messages if isinstance(messages, list) else [messages]),
    ])


def _match_error_envelope(body: Any) -> Optional[str]:
    if not isinstance(body, dict) or "error" not in body:
        return None
    error = body["error"]
    if not isinstance(error, dict):
        return _join([error])
    details = error.get("details") or []
    return _join([
        error.get("title"),
        error.get("message"),
        *(d.get("message") for d in details if isinstance(d, dict)),
    ])


def _match_unknown_object(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return "unknown ninja error"
    return None


ERROR_SHAPE_MATCHERS: List[Callable[[Any], Optional[str]]] = [
    _match_text,
    _match_nv_error,
    _match_error_envelope,
    _match_unknown_object,
]


def generate_error(body: Any, status_code: Optional[int] = None) -> RemoteCallError:
    """Builds one normalized RemoteCallError out of whatever the API answered."""
    if isinstance(body, RemoteCallError):
        return body
    for matcher in ERROR_SHAPE_MATCHERS:
        message = matcher(body)
        if message is not None:
            return RemoteCallError(message, status_code=status_code, body=body)
    return RemoteCallError("unknown error", status_code=status_code, body=body)


def error_message(err: BaseException) -> str:
    message = str(err)
    return message if message else type(err).__name__
