"""
Data models and schemas for the wireframe-to-React generation pipeline.
"""

import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class ViewportMode(str, Enum):
    """Preview viewport modes."""
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


class ViewportConfig(BaseModel):
    """Viewport configuration for a specific preview mode."""
    mode: ViewportMode
    width: int
    height: int

    @classmethod
    def mobile(cls, height: int = 688) -> "ViewportConfig":
        return cls(mode=ViewportMode.MOBILE, width=375, height=height)

    @classmethod
    def tablet(cls, height: int = 1024) -> "ViewportConfig":
        return cls(mode=ViewportMode.TABLET, width=768, height=height)

    @classmethod
    def desktop(cls, height: int = 800) -> "ViewportConfig":
        return cls(mode=ViewportMode.DESKTOP, width=1280, height=height)

    @classmethod
    def for_mode(cls, mode: ViewportMode) -> "ViewportConfig":
        """Get the default viewport for a mode."""
        if mode == ViewportMode.MOBILE:
            return cls.mobile()
        elif mode == ViewportMode.TABLET:
            return cls.tablet()
        elif mode == ViewportMode.DESKTOP:
            return cls.desktop()
        else:
            raise ValueError(f"Unknown viewport mode: {mode}")


class GenerationRequest(BaseModel):
    """One logical "generate code" request. Immutable once submitted."""
    model_id: str
    image_payload: str  # data URI or URL
    description_text: str
    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])

    class Config:
        frozen = True
        protected_namespaces = ()


class ModelCandidates(BaseModel):
    """Ordered model identifiers: the user selection first, then fallbacks."""
    models: List[str]

    @field_validator("models")
    @classmethod
    def dedupe_non_empty(cls, value: List[str]) -> List[str]:
        seen = []
        for model in value:
            model = model.strip()
            if model and model not in seen:
                seen.append(model)
        if not seen:
            raise ValueError("At least one model identifier is required")
        return seen

    @classmethod
    def for_selection(cls, selected: str, fallbacks: Optional[List[str]] = None) -> "ModelCandidates":
        return cls(models=[selected] + list(fallbacks or []))

    @property
    def primary(self) -> str:
        return self.models[0]

    def __len__(self) -> int:
        return len(self.models)


class ErrorKind(str, Enum):
    """Failure taxonomy shared by generation and preview."""
    RATE_LIMITED = "rate_limited"
    BAD_REQUEST = "bad_request"
    AUTH_ERROR = "auth_error"
    MALFORMED_RESPONSE = "malformed_response"
    EMPTY_RESULT = "empty_result"
    TRANSPORT_ERROR = "transport_error"
    RENDER_ERROR = "render_error"
    LOAD_ERROR = "load_error"
    CANCELLED = "cancelled"


class RetryStep(str, Enum):
    """Transitions of the retry state machine."""
    SUCCESS = "SUCCESS"
    SWITCH_MODEL = "SWITCH_MODEL"
    BACKOFF = "BACKOFF"
    RETRY = "RETRY"
    EXHAUSTED = "EXHAUSTED"
    FAIL = "FAIL"


class RetryState(BaseModel):
    """Retry bookkeeping owned by a single generation call."""
    attempt_count: int = 0
    current_model_index: int = 0
    last_error: Optional[ErrorKind] = None
    bad_request_count: int = 0


class RetryDecision(BaseModel):
    """Next step chosen by the retry policy."""
    step: RetryStep
    delay: float = 0.0


class GeneratedComponent(BaseModel):
    """Sanitized component source produced by one generation call."""
    request_id: str
    source: str
    raw_content: str
    css_content: str = ""
    model_name: str
    attempts: int = 1
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    generation_timestamp: datetime = Field(default_factory=datetime.now)
    generation_metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        protected_namespaces = ()


class RenderError(BaseModel):
    """Structured failure reported by the compiled preview document."""
    phase: str = "runtime"  # bootstrap | evaluate | mount | render | runtime
    name: str = "Error"
    message: str = ""
    stack: Optional[str] = None

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.RENDER_ERROR

    def summary(self) -> str:
        return f"{self.name}: {self.message}" if self.message else self.name


class MountByName(BaseModel):
    """Mount the component bound to an exact name."""
    kind: Literal["by_name"] = "by_name"
    name: str = "App"


class MountFirstUppercase(BaseModel):
    """Mount the first capitalised function binding."""
    kind: Literal["first_uppercase_global"] = "first_uppercase_global"
    name: str


class NoComponent(BaseModel):
    """Nothing mountable was found."""
    kind: Literal["none"] = "none"


MountStrategy = Union[MountByName, MountFirstUppercase, NoComponent]


class PreviewStatus(str, Enum):
    """Externally observable states of a preview host."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class RenderedPreview(BaseModel):
    """Screenshots of a preview document at different viewports."""
    request_id: str
    mobile_screenshot: Optional[Path] = None
    tablet_screenshot: Optional[Path] = None
    desktop_screenshot: Optional[Path] = None
    render_errors: List[RenderError] = Field(default_factory=list)
    rendering_timestamp: datetime = Field(default_factory=datetime.now)

    class Config:
        arbitrary_types_allowed = True

    def screenshot_for(self, mode: ViewportMode) -> Optional[Path]:
        return getattr(self, f"{mode.value}_screenshot")


class ProjectRecord(BaseModel):
    """Record exchanged with the project persistence collaborator."""
    id: Optional[str] = None
    title: str = "Untitled Project"
    description: str = ""
    image_url: str = ""
    code: str = ""
    model: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_generation(
        cls,
        generated: GeneratedComponent,
        description: str,
        image_url: str,
        title: Optional[str] = None
    ) -> "ProjectRecord":
        """Build a record from generation output and the uploaded image URL."""
        return cls(
            title=title or "Untitled Project",
            description=description,
            image_url=image_url,
            code=generated.source,
            model=generated.model_name,
        )
