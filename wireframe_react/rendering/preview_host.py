"""
Live preview host: loads compiled documents into an isolated, sandboxed frame.

The compiled document is only ever assigned to the frame's ``srcdoc``; it is
never evaluated in the host page. The frame's sandbox omits
``allow-same-origin`` so generated code cannot reach host cookies or storage.
"""

import asyncio
import html
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from wireframe_react.config import PreviewSettings
from wireframe_react.errors import LoadError
from wireframe_react.models import (
    PreviewStatus,
    RenderedPreview,
    RenderError,
    ViewportConfig,
    ViewportMode,
)


SANDBOX_PERMISSIONS = "allow-scripts allow-forms allow-modals allow-popups"

SHELL_DOCUMENT = f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8" />
<style>
html, body {{ margin: 0; padding: 0; background: #f3f4f6; }}
#preview-frame {{ display: block; border: 0; background: #ffffff; }}
</style>
</head>
<body>
<iframe id="preview-frame" title="Preview" sandbox="{SANDBOX_PERMISSIONS}"></iframe>
<script>
window.__PREVIEW_MESSAGES__ = [];
window.addEventListener("message", function (event) {{
  window.__PREVIEW_MESSAGES__.push(event.data);
}});
</script>
</body>
</html>
"""

# Host page for embedding a preview in another app (e.g. a Streamlit component,
# whose own frame is same-origin with the app). Runs no script of its own.
EMBED_DOCUMENT = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8" />
<style>
html, body {{ margin: 0; padding: 0; background: #f3f4f6; }}
iframe {{ display: block; border: 0; width: 100%; height: {height}px; background: #ffffff; }}
</style>
</head>
<body>
<iframe title="Preview" sandbox="{sandbox}" srcdoc="{srcdoc}"></iframe>
<!-- refresh {nonce} -->
</body>
</html>
"""


def embed_document(document: str, height: int, nonce: int = 0) -> str:
    """
    Wrap a compiled document in a sandboxed ``srcdoc`` frame.

    Args:
        document: Output of PreviewCompiler.compile.
        height: Frame height in pixels.
        nonce: Changing it changes the markup, forcing embedders to rebuild the frame.

    Returns:
        Host page whose only content is the sandboxed frame.
    """
    return EMBED_DOCUMENT.format(
        sandbox=SANDBOX_PERMISSIONS,
        srcdoc=html.escape(document, quote=True),
        height=int(height),
        nonce=int(nonce),
    )


LOAD_SCRIPT = """({ html, timeout }) => new Promise((resolve, reject) => {
  const frame = document.getElementById("preview-frame");
  if (!frame) {
    reject(new Error("Preview frame is missing from the shell page"));
    return;
  }
  const timer = setTimeout(() => {
    frame.removeEventListener("load", onLoad);
    reject(new Error("Timed out after " + timeout + " ms waiting for the preview to load"));
  }, timeout);
  function onLoad() {
    clearTimeout(timer);
    frame.removeEventListener("load", onLoad);
    resolve(true);
  }
  frame.addEventListener("load", onLoad);
  window.__PREVIEW_MESSAGES__ = [];
  frame.srcdoc = html;
})"""

RESIZE_SCRIPT = """({ width, height }) => {
  const frame = document.getElementById("preview-frame");
  frame.style.width = width + "px";
  frame.style.height = height + "px";
}"""

READ_ERRORS_SCRIPT = "() => (window.__PREVIEW_ERRORS__ || []).slice()"


class PreviewSurface(ABC):
    """An isolated rendering surface the host assigns documents to."""

    @abstractmethod
    async def load(self, document: str):
        """Assign a document and wait for it to load. Raises LoadError."""

    @abstractmethod
    async def resize(self, viewport: ViewportConfig):
        """Change the presentation size without reloading."""

    @abstractmethod
    async def read_errors(self) -> List[Dict[str, Any]]:
        """Structured render errors recorded by the loaded document."""

    @abstractmethod
    async def screenshot(self, path: Path) -> Path:
        """Capture the surface to a PNG file."""

    async def close(self):
        pass


class PlaywrightSurface(PreviewSurface):
    """Sandboxed iframe inside a Playwright-driven browser page."""

    def __init__(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        load_timeout_ms: int = 15000,
        viewport: Optional[ViewportConfig] = None,
    ):
        """
        Initialize the surface.

        Args:
            browser_type: Browser to use (chromium, firefox, webkit).
            headless: Whether to run browser in headless mode.
            load_timeout_ms: How long to wait for the frame's load event.
            viewport: Initial viewport (desktop by default).
        """
        self.browser_type = browser_type
        self.headless = headless
        self.load_timeout_ms = load_timeout_ms
        self.viewport = viewport or ViewportConfig.desktop()

        self._playwright = None
        self._browser = None
        self._page = None

    @classmethod
    def from_settings(cls, settings: Optional[PreviewSettings] = None) -> "PlaywrightSurface":
        settings = settings or PreviewSettings.from_env()
        return cls(
            browser_type=settings.browser_type,
            headless=settings.headless,
            load_timeout_ms=settings.load_timeout_ms,
        )

    async def start(self):
        """Launch the browser and open the shell page."""
        if self._page is not None:
            return
        if self.browser_type not in ("chromium", "firefox", "webkit"):
            raise LoadError(f"Unsupported browser: {self.browser_type}")

        try:
            self._playwright = await async_playwright().start()
            p = self._playwright
            if self.browser_type == "chromium":
                self._browser = await p.chromium.launch(headless=self.headless)
            elif self.browser_type == "firefox":
                self._browser = await p.firefox.launch(headless=self.headless)
            else:
                self._browser = await p.webkit.launch(headless=self.headless)

            context = await self._browser.new_context(
                viewport={
                    "width": self.viewport.width,
                    "height": self.viewport.height
                },
                device_scale_factor=1
            )
            self._page = await context.new_page()
            await self._page.set_content(SHELL_DOCUMENT)
            await self._page.evaluate(
                RESIZE_SCRIPT, {"width": self.viewport.width, "height": self.viewport.height}
            )
        except PlaywrightError as e:
            await self.close()
            raise LoadError(f"Could not start {self.browser_type}: {e}")

    async def _frame(self):
        element = await self._page.query_selector("#preview-frame")
        if element is None:
            raise LoadError("Preview frame is missing from the shell page")
        return element

    async def load(self, document: str):
        await self.start()
        try:
            await self._page.evaluate(LOAD_SCRIPT, {"html": document, "timeout": self.load_timeout_ms})
        except PlaywrightError as e:
            raise LoadError(str(e))

    async def resize(self, viewport: ViewportConfig):
        self.viewport = viewport
        if self._page is None:
            return
        await self._page.set_viewport_size({"width": viewport.width, "height": viewport.height})
        await self._page.evaluate(RESIZE_SCRIPT, {"width": viewport.width, "height": viewport.height})

    async def read_errors(self) -> List[Dict[str, Any]]:
        if self._page is None:
            return []
        frame = await (await self._frame()).content_frame()
        if frame is None:
            return []
        return await frame.evaluate(READ_ERRORS_SCRIPT)

    async def error_panel_text(self) -> str:
        """Text of the in-document error panel (empty when hidden)."""
        if self._page is None:
            return ""
        frame = await (await self._frame()).content_frame()
        if frame is None:
            return ""
        return await frame.evaluate(
            "() => { const panel = document.getElementById('preview-error'); return panel ? panel.textContent : ''; }"
        )

    async def screenshot(self, path: Path) -> Path:
        await self.start()
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        element = await self._frame()
        await element.screenshot(path=str(path))
        return path

    async def close(self):
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None
        self._page = None

    async def __aenter__(self) -> "PlaywrightSurface":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class PreviewHost:
    """
    Owns one preview surface and tracks its load state.

    ``idle -> loading -> ready | error``; ``render`` and ``refresh`` move any
    state back to ``loading``. Render errors inside the document are data read
    through ``render_errors`` and never change the host state.
    """

    def __init__(
        self,
        surface: PreviewSurface,
        on_status: Optional[Callable[[PreviewStatus], None]] = None,
        viewport_mode: ViewportMode = ViewportMode.DESKTOP,
    ):
        self.surface = surface
        self.on_status = on_status
        self.viewport = ViewportConfig.for_mode(viewport_mode)
        self.status = PreviewStatus.IDLE
        self.document: Optional[str] = None
        self.last_error: Optional[LoadError] = None
        self._render_token = 0

    def _set_status(self, status: PreviewStatus):
        self.status = status
        if self.on_status is not None:
            self.on_status(status)

    async def _load(self, document: str) -> PreviewStatus:
        self._render_token += 1
        token = self._render_token

        self.last_error = None
        self._set_status(PreviewStatus.LOADING)
        try:
            await self.surface.load(document)
        except Exception as e:
            if token != self._render_token:
                return self.status
            if not isinstance(e, LoadError):
                e = LoadError(str(e) or type(e).__name__)
            self.last_error = e
            self._set_status(PreviewStatus.ERROR)
            return self.status

        # A newer render owns the state now
        if token != self._render_token:
            return self.status
        self._set_status(PreviewStatus.READY)
        return self.status

    async def render(self, document: str) -> PreviewStatus:
        """
        Load a compiled document into the surface.

        Args:
            document: Output of PreviewCompiler.compile.

        Returns:
            The resulting status (READY or ERROR), or the current status when
            a newer render superseded this one.
        """
        self.document = document
        return await self._load(document)

    async def refresh(self) -> PreviewStatus:
        """Re-assign the last rendered document."""
        if self.document is None:
            raise ValueError("Nothing has been rendered yet")
        return await self._load(self.document)

    async def set_viewport(self, mode: ViewportMode):
        self.viewport = ViewportConfig.for_mode(mode)
        await self.surface.resize(self.viewport)

    async def render_errors(self) -> List[RenderError]:
        """Render errors reported by the currently loaded document."""
        if self.status != PreviewStatus.READY:
            return []
        return [RenderError.model_validate(item) for item in await self.surface.read_errors()]

    async def screenshot(self, path: Union[str, Path]) -> Path:
        return await self.surface.screenshot(Path(path))

    @property
    def error_message(self) -> Optional[str]:
        """Host-level message for the UI, distinct from in-document errors."""
        return self.last_error.user_message if self.last_error else None

    async def capture_viewports(
        self,
        document: str,
        output_dir: Union[str, Path],
        request_id: str = "preview",
    ) -> RenderedPreview:
        """
        Render a document and screenshot it at every viewport.

        Args:
            document: Compiled preview document.
            output_dir: Output directory for screenshots.
            request_id: Identifier stored on the result.

        Returns:
            RenderedPreview with screenshot paths and render errors.

        Raises:
            LoadError: The document failed to load.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        status = await self.render(document)
        if status == PreviewStatus.ERROR:
            raise self.last_error

        screenshot_paths = {}
        for mode in ViewportMode:
            await self.set_viewport(mode)
            screenshot_paths[mode] = await self.screenshot(output_dir / f"{mode.value}.png")

        return RenderedPreview(
            request_id=request_id,
            mobile_screenshot=screenshot_paths.get(ViewportMode.MOBILE),
            tablet_screenshot=screenshot_paths.get(ViewportMode.TABLET),
            desktop_screenshot=screenshot_paths.get(ViewportMode.DESKTOP),
            render_errors=await self.render_errors(),
            rendering_timestamp=datetime.now()
        )


def capture_preview(
    document: str,
    output_dir: Union[str, Path],
    request_id: str = "preview",
    settings: Optional[PreviewSettings] = None,
) -> RenderedPreview:
    """
    Render a document at all three viewports in a real browser (sync wrapper).

    Args:
        document: Compiled preview document.
        output_dir: Output directory for screenshots.
        request_id: Identifier stored on the result.
        settings: Browser settings (read from the environment if omitted).

    Returns:
        RenderedPreview object with screenshot paths.
    """
    async def _capture() -> RenderedPreview:
        async with PlaywrightSurface.from_settings(settings) as surface:
            host = PreviewHost(surface)
            return await host.capture_viewports(document, output_dir, request_id)

    return asyncio.run(_capture())
