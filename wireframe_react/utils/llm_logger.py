"""
LLM Debug Logger for tracking chat-completion calls made by the generation client.

Supports configurable log levels (NONE, INFO, DEBUG, TRACE) and dual output:
- Console: Human-readable formatted output
- File: JSON Lines format for parsing and analysis
"""

import json
import os
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv


class LogLevel(Enum):
    """Logging levels for LLM debug output."""

    NONE = 0
    INFO = 1
    DEBUG = 2
    TRACE = 3


class LLMLogger:
    """Centralized logger for LLM API calls with configurable levels."""

    _instance: Optional["LLMLogger"] = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger with configuration from environment."""
        if self._initialized:
            return

        load_dotenv()

        level_str = os.getenv("LLM_DEBUG_LEVEL", "NONE").upper()
        try:
            self.level = LogLevel[level_str]
        except KeyError:
            self.level = LogLevel.NONE

        self.log_to_file = os.getenv("LLM_LOG_TO_FILE", "true").lower() == "true"
        self.log_dir = Path(os.getenv("LLM_LOG_DIR", "outputs"))

        self._initialized = True

    def configure(
        self,
        level: Optional[LogLevel] = None,
        log_to_file: Optional[bool] = None,
        log_dir: Optional[Path] = None,
    ):
        """Override environment configuration (CLI flags, tests)."""
        if level is not None:
            self.level = level
        if log_to_file is not None:
            self.log_to_file = log_to_file
        if log_dir is not None:
            self.log_dir = Path(log_dir)

    def _should_log(self, min_level: LogLevel) -> bool:
        """Check if we should log at the given level."""
        return self.level.value >= min_level.value

    def _format_timestamp(self) -> str:
        """Get ISO8601 formatted timestamp."""
        return datetime.now().isoformat()

    def _truncate_content(self, content: str, max_len: int = 200) -> str:
        """Truncate content for preview."""
        if len(content) <= max_len:
            return content
        return content[:max_len] + "... [truncated]"

    def _summarize_image_url(self, url: str) -> str:
        """Replace a data URI with a short description of its size."""
        if url.startswith("data:image/") and "base64," in url:
            header, data = url.split("base64,", 1)
            image_type = header[len("data:image/"):].split(";")[0]
            return f"[IMAGE_DATA: {image_type}, base64 encoded, {len(data):,} bytes]"
        return f"[IMAGE_URL: {url[:100]}]"

    def _strip_images(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Copy wire-format messages with image parts replaced by summaries."""
        stripped = []
        for message in messages:
            content = message.get("content")
            if isinstance(content, list):
                parts = []
                for part in content:
                    if isinstance(part, dict) and part.get("type") == "image_url":
                        url = part.get("image_url", {})
                        url_value = url.get("url", "") if isinstance(url, dict) else str(url)
                        parts.append({"type": "text", "text": self._summarize_image_url(url_value)})
                    else:
                        parts.append(part)
                content = parts
            stripped.append({"role": message.get("role"), "content": content})
        return stripped

    def _format_console_info(
        self,
        component: str,
        model: str,
        latency_ms: float,
        token_count: Optional[int] = None,
    ) -> str:
        """Format basic info line for console."""
        parts = [
            f"[{component}]",
            model,
            f"{latency_ms:.1f}ms",
        ]
        if token_count is not None:
            parts.append(f"{token_count} tokens")
        return " | ".join(parts)

    def _format_console_debug(
        self,
        messages: List[Dict[str, Any]],
        response_content: Optional[str] = None,
    ) -> str:
        """Format debug info for console."""
        lines = [f"  Messages: {len(messages)}"]
        for i, message in enumerate(self._strip_images(messages)[:3]):
            content = message["content"]
            if not isinstance(content, str):
                content = json.dumps(content, ensure_ascii=False)
            lines.append(f"    {i+1}. [{message['role']}] {self._truncate_content(content, 150)}")
        if len(messages) > 3:
            lines.append(f"    ... and {len(messages) - 3} more")

        if response_content:
            lines.append(f"  Response: {self._truncate_content(response_content, 200)}")

        return "\n".join(lines)

    def _write_to_file(self, request_id: Optional[str], log_entry: Dict[str, Any]):
        """Write log entry to JSON Lines file."""
        if not self.log_to_file or not request_id or self.level == LogLevel.NONE:
            return

        log_file = self.log_dir / request_id / "logs" / "llm_calls.jsonl"
        log_file.parent.mkdir(parents=True, exist_ok=True)

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + "\n")

    def log_invocation(
        self,
        component: str,
        model: str,
        request_id: Optional[str] = None,
        attempt: int = 1,
    ) -> str:
        """
        Log the start of an LLM invocation.

        Returns:
            Invocation ID (UUID string) for tracking this call
        """
        if not self._should_log(LogLevel.INFO):
            return ""

        invocation_id = str(uuid.uuid4())
        console_msg = f"[{self._format_timestamp()}] 🔵 LLM Call: [{component}] {model} (attempt {attempt})"
        if request_id:
            console_msg += f" | request_id: {request_id}"
        print(console_msg)

        return invocation_id

    def log_request(
        self,
        invocation_id: str,
        component: str,
        model: str,
        payload: Dict[str, Any],
        request_id: Optional[str] = None,
    ):
        """Log the request body sent to the endpoint (images summarized)."""
        if not self._should_log(LogLevel.DEBUG):
            return

        messages = payload.get("messages", [])
        print(self._format_console_debug(messages))

        log_entry = {
            "timestamp": self._format_timestamp(),
            "level": self.level.name,
            "event": "request",
            "component": component,
            "invocation_id": invocation_id,
            "model": model,
            "request_id": request_id,
            "request": {
                "messages": self._strip_images(messages) if self.level == LogLevel.TRACE else [],
                "message_count": len(messages),
                "temperature": payload.get("temperature"),
                "max_tokens": payload.get("max_tokens"),
                "stream": payload.get("stream"),
            },
        }
        self._write_to_file(request_id, log_entry)

    def log_response(
        self,
        invocation_id: str,
        component: str,
        model: str,
        content: str,
        start_time: float,
        end_time: float,
        usage: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        """Log a successful response with timing and token usage."""
        if not self._should_log(LogLevel.INFO):
            return

        latency_ms = (end_time - start_time) * 1000
        total_tokens = (usage or {}).get("total_tokens")

        console_msg = f"[{self._format_timestamp()}] ✅ LLM Response: "
        console_msg += self._format_console_info(component, model, latency_ms, total_tokens)
        print(console_msg)

        if self._should_log(LogLevel.TRACE):
            print(f"  RESPONSE:\n    {self._truncate_content(content, 1000)}")
        elif self._should_log(LogLevel.DEBUG):
            print(f"  Response: {self._truncate_content(content, 200)}")

        log_entry = {
            "timestamp": self._format_timestamp(),
            "level": self.level.name,
            "event": "response",
            "component": component,
            "invocation_id": invocation_id,
            "model": model,
            "request_id": request_id,
            "response": {
                "content": content if self.level == LogLevel.TRACE else None,
                "content_preview": (
                    self._truncate_content(content, 200)
                    if self.level.value >= LogLevel.DEBUG.value
                    else None
                ),
                "content_length": len(content),
            },
            "timing": {
                "latency_ms": latency_ms,
                "start_time": datetime.fromtimestamp(start_time).isoformat(),
                "end_time": datetime.fromtimestamp(end_time).isoformat(),
            },
            "usage": usage or None,
        }
        self._write_to_file(request_id, log_entry)

    def log_error(
        self,
        component: str,
        model: str,
        error: Exception,
        request_id: Optional[str] = None,
    ):
        """Log a failed attempt."""
        if not self._should_log(LogLevel.INFO):
            return

        print(f"[{self._format_timestamp()}] ❌ LLM Error: [{component}] {model} {type(error).__name__}: {error}")
        self._write_to_file(request_id, {
            "timestamp": self._format_timestamp(),
            "level": self.level.name,
            "event": "error",
            "component": component,
            "model": model,
            "request_id": request_id,
            "error": {"type": type(error).__name__, "message": str(error)},
        })

    def log_transition(
        self,
        component: str,
        step: str,
        from_model: str,
        to_model: Optional[str] = None,
        attempt: int = 0,
        delay: float = 0.0,
        reason: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        """Log a retry/fallback transition of the retry state machine."""
        if not self._should_log(LogLevel.INFO):
            return

        console_msg = f"[{self._format_timestamp()}] 🔁 Retry: [{component}] {step} after attempt {attempt} on {from_model}"
        if to_model and to_model != from_model:
            console_msg += f" -> {to_model}"
        if delay:
            console_msg += f" | waiting {delay:.1f}s"
        if reason:
            console_msg += f" | {reason}"
        print(console_msg)

        self._write_to_file(request_id, {
            "timestamp": self._format_timestamp(),
            "level": self.level.name,
            "event": "transition",
            "component": component,
            "step": step,
            "from_model": from_model,
            "to_model": to_model,
            "attempt": attempt,
            "delay": delay,
            "reason": reason,
            "request_id": request_id,
        })

    def log_stream_warning(self, component: str, message: str, line: str = ""):
        """Log a skipped or unreadable stream line."""
        if not self._should_log(LogLevel.INFO):
            return

        console_msg = f"[{self._format_timestamp()}] ⚠️  Stream: [{component}] {message}"
        if line and self._should_log(LogLevel.DEBUG):
            console_msg += f" | {self._truncate_content(line, 120)}"
        print(console_msg)


def get_logger() -> LLMLogger:
    """Get the singleton logger instance."""
    return LLMLogger()
