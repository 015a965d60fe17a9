"""Error taxonomy for the Swimlane integration.

Every failure surfaced to callers is a ``SwimlaneError`` carrying an
HTTP-style status code, a machine-readable error code and a human
message. ``to_detail()`` turns it into the structured object the lookup
orchestrator reports per entity.
"""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Serializable error information reported to the render consumer."""

    status_code: int
    error_code: str
    title: str
    detail: str
    username: str | None = None
    body: Any = None


# =========================
# Exception Classes
# =========================


class SwimlaneError(Exception):
    """Base integration error with structured fields."""

    status_code: int = 500
    error_code: str = "INTEGRATION_ERROR"
    title: str = "Integration Error"

    def __init__(
        self,
        detail: str,
        *,
        body: Any = None,
        status_code: int | None = None,
        title: str | None = None,
    ):
        self.detail = detail
        self.body = body
        if status_code is not None:
            self.status_code = status_code
        if title is not None:
            self.title = title
        super().__init__(detail)

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(
            status_code=self.status_code,
            error_code=self.error_code,
            title=self.title,
            detail=self.detail,
            username=getattr(self, "username", None),
            body=self.body,
        )


class TransportError(SwimlaneError):
    """Network or TLS failure before a response was received."""

    status_code = 502
    error_code = "TRANSPORT_ERROR"
    title = "Transport Error"


class AuthenticationError(SwimlaneError):
    """Login failed or did not return a token."""

    status_code = 401
    error_code = "AUTHENTICATION_FAILED"
    title = "Authentication Failed"

    def __init__(self, detail: str, *, username: str, body: Any = None, status_code: int | None = None):
        self.username = username
        super().__init__(detail, body=body, status_code=status_code)


class ProtocolError(SwimlaneError):
    """Endpoint answered with an unexpected HTTP status."""

    title = "Unexpected Response"

    def __init__(self, detail: str, *, status_code: int, body: Any = None, title: str | None = None):
        super().__init__(detail, body=body, status_code=status_code, title=title)
        self.error_code = f"HTTP_{status_code}"


class ConfigurationError(SwimlaneError):
    """Integration options do not match the target instance."""

    status_code = 400
    error_code = "CONFIGURATION_ERROR"
    title = "Configuration Error"


class DirectoryUnavailableError(SwimlaneError):
    """The application directory could not be built."""

    status_code = 503
    error_code = "DIRECTORY_UNAVAILABLE"
    title = "Application Cache Unavailable"


class ParseError(SwimlaneError):
    """Response body was not valid JSON or had an unexpected shape."""

    status_code = 502
    error_code = "PARSE_ERROR"
    title = "Malformed Response"
