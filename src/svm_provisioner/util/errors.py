from __future__ import annotations

from enum import IntEnum
from typing import Dict, Optional, Sequence

from requests.exceptions import RequestException


class ExitCode(IntEnum):
    OK = 0
    PROVISION_FAILED = 1
    CONFIG_ERROR = 2
    SESSION_ERROR = 3
    SELECTION_ERROR = 4
    DEGRADED = 5
    INTERRUPTED = 130


class ProvisionerError(Exception):
    """Base error for the provisioning tool."""


class ConfigurationError(ProvisionerError):
    """Raised for missing or invalid input, always before any remote call."""

    def __init__(
        self,
        message: str,
        *,
        missing_fields: Optional[Sequence[str]] = None,
        invalid_fields: Optional[Dict[str, str]] = None,
    ) -> None:
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = dict(invalid_fields or {})
        details = []
        if self.missing_fields:
            details.append("missing: " + ", ".join(self.missing_fields))
        if self.invalid_fields:
            details.append(
                "invalid: " + "; ".join(f"{k} ({v})" for k, v in self.invalid_fields.items())
            )
        if details:
            message = f"{message} [{' | '.join(details)}]"
        super().__init__(message)


class SelectionError(ProvisionerError):
    """Raised when a live resource cannot be listed or the operator's pick is invalid."""


class SessionError(ProvisionerError):
    """Raised when connecting to or disconnecting from the cluster fails."""


class ControlPlaneError(ProvisionerError):
    """Raised when a control-plane call fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigurationError, ValueError, FileNotFoundError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, SessionError):
        return int(ExitCode.SESSION_ERROR)
    if isinstance(exc, SelectionError):
        return int(ExitCode.SELECTION_ERROR)
    if isinstance(exc, KeyboardInterrupt):
        return int(ExitCode.INTERRUPTED)
    if isinstance(exc, ProvisionerError):
        return int(ExitCode.PROVISION_FAILED)
    return 1


def is_http_error(exc: BaseException) -> bool:
    """
    Return True if the exception comes from the HTTP transport (requests/urllib3).
    """
    if isinstance(exc, RequestException):
        return True
    module = exc.__class__.__module__
    return module.startswith("requests.") or module.startswith("urllib3.")


def _response_detail(exc: BaseException) -> str:
    response = getattr(exc, "response", None)
    if response is None:
        return ""
    try:
        body = response.json()
    except Exception:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return ""


def map_http_error(exc: BaseException, context: str) -> ControlPlaneError | None:
    """
    Wrap transport errors with ControlPlaneError, keeping the ONTAP error message when present.
    """
    if not is_http_error(exc):
        return None
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    detail = _response_detail(exc) or str(exc)
    return ControlPlaneError(f"{context}: {detail}", status_code=status)
