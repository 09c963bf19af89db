"""
Exception taxonomy for generation and preview failures.

Render failures inside a compiled preview document are not exceptions here:
they are reported back as ``RenderError`` values (see ``models.RenderError``).
"""

from typing import Optional

from wireframe_react.models import ErrorKind


class GenerationError(Exception):
    """Base class for failures of a generation request."""

    kind: ErrorKind = ErrorKind.TRANSPORT_ERROR
    retryable: bool = False
    default_message = "Code generation failed."

    def __init__(
        self,
        message: Optional[str] = None,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.model = model
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Single human-readable message for the UI."""
        return f"{self.default_message} {self.message}" if self.message != self.default_message else self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, model={self.model!r}, status_code={self.status_code!r})"


class RateLimited(GenerationError):
    kind = ErrorKind.RATE_LIMITED
    retryable = True
    default_message = "The model provider is rate limiting requests."

    def __init__(self, message=None, model=None, status_code=429, retry_after: Optional[float] = None):
        super().__init__(message, model=model, status_code=status_code)
        self.retry_after = retry_after


class BadRequest(GenerationError):
    kind = ErrorKind.BAD_REQUEST
    default_message = "The model provider rejected the request."


class AuthError(GenerationError):
    kind = ErrorKind.AUTH_ERROR
    default_message = "The API key was rejected; check your configuration."


class MalformedResponse(GenerationError):
    kind = ErrorKind.MALFORMED_RESPONSE
    retryable = True
    default_message = "The model returned a response that could not be read."


class EmptyResult(GenerationError):
    kind = ErrorKind.EMPTY_RESULT
    default_message = "The model returned no code. Try again or pick another model."


class TransportError(GenerationError):
    kind = ErrorKind.TRANSPORT_ERROR
    retryable = True
    default_message = "Could not reach the model provider."


class GenerationCancelled(GenerationError):
    kind = ErrorKind.CANCELLED
    default_message = "Generation was cancelled."


class PreviewError(Exception):
    """Base class for preview host failures."""

    kind: ErrorKind = ErrorKind.LOAD_ERROR


class LoadError(PreviewError):
    """The isolated preview surface failed to load a document."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return f"The preview surface failed to load: {self.message}"
