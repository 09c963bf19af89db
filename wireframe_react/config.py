"""
Environment-driven configuration for generation and preview.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

# Models offered by the model picker, in fallback order.
DEFAULT_MODELS = [
    "google/gemini-2.5-pro-exp-03-25:free",
    "meta-llama/llama-3.3-70b-instruct:free",
    "deepseek/deepseek-chat-v3-0324:free",
]

MODEL_LABELS = {
    "google/gemini-2.5-pro-exp-03-25:free": "Gemini Google",
    "meta-llama/llama-3.3-70b-instruct:free": "Llama by Meta",
    "deepseek/deepseek-chat-v3-0324:free": "Deepseek",
}


def _split_models(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [model.strip() for model in value.split(",") if model.strip()]


class GenerationSettings(BaseModel):
    """Settings for talking to the chat-completions endpoint."""
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    default_model: str = DEFAULT_MODELS[-1]
    fallback_models: List[str] = Field(default_factory=lambda: list(DEFAULT_MODELS))
    max_retries: int = 2
    temperature: float = 0.7
    max_tokens: int = 4000
    timeout: float = 120.0
    backoff_cap: float = 30.0
    referer: str = "http://localhost:8501"
    app_title: str = "Wireframe to React"

    @classmethod
    def from_env(cls) -> "GenerationSettings":
        """
        Build settings from environment variables (and a ``.env`` file).

        Returns:
            GenerationSettings populated from the environment.
        """
        load_dotenv()

        fallbacks = _split_models(os.getenv("GENERATION_FALLBACK_MODELS"))
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY") or os.getenv("GENERATION_API_KEY"),
            base_url=os.getenv("GENERATION_BASE_URL", DEFAULT_BASE_URL),
            default_model=os.getenv("GENERATION_MODEL", DEFAULT_MODELS[-1]),
            fallback_models=fallbacks or list(DEFAULT_MODELS),
            max_retries=int(os.getenv("GENERATION_MAX_RETRIES", "2")),
            temperature=float(os.getenv("GENERATION_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("GENERATION_MAX_TOKENS", "4000")),
            timeout=float(os.getenv("GENERATION_TIMEOUT", "120")),
            backoff_cap=float(os.getenv("GENERATION_BACKOFF_CAP", "30")),
            referer=os.getenv("APP_REFERER", "http://localhost:8501"),
            app_title=os.getenv("APP_TITLE", "Wireframe to React"),
        )


class PreviewSettings(BaseModel):
    """Settings for the browser that hosts previews."""
    browser_type: str = "chromium"
    headless: bool = True
    load_timeout_ms: int = 15000

    @classmethod
    def from_env(cls) -> "PreviewSettings":
        load_dotenv()
        return cls(
            browser_type=os.getenv("PREVIEW_BROWSER", "chromium").lower(),
            headless=os.getenv("PREVIEW_HEADLESS", "true").lower() == "true",
            load_timeout_ms=int(os.getenv("PREVIEW_LOAD_TIMEOUT_MS", "15000")),
        )
