"""
Compile sanitized component source into a standalone preview document.

The document loads React, ReactDOM, Babel standalone and the Tailwind Play
CDN, transforms the embedded source in the browser and mounts the component
inside an error boundary. Failures become structured RenderError objects in
``window.__PREVIEW_ERRORS__`` and are painted into ``#preview-error``.
"""

import json
import re
from typing import List, Tuple

from wireframe_react.models import GeneratedComponent, MountByName, MountFirstUppercase, MountStrategy, NoComponent
from wireframe_react.pipeline.sanitizer import STATEMENT_START, ResponseSanitizer


# React 19 no longer ships UMD builds; the in-browser runtime stays on 18.
REACT_URL = "https://unpkg.com/react@18/umd/react.production.min.js"
REACT_DOM_URL = "https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"
BABEL_URL = "https://unpkg.com/@babel/standalone/babel.min.js"
TAILWIND_URL = "https://cdn.tailwindcss.com"

PREFERRED_COMPONENT = "App"
NO_COMPONENT_MESSAGE = "No component found"

_TOKEN = re.compile(r"__[A-Z_]+__")

_COMPONENT_DECLARATIONS = (
    re.compile(STATEMENT_START + r"[ \t]*(?:async[ \t]+)?function[ \t]+([A-Z][\w$]*)[ \t]*(?:<[^>\n]*>)?[ \t]*\(", re.MULTILINE),
    re.compile(
        STATEMENT_START + r"[ \t]*(?:const|let|var)[ \t]+([A-Z][\w$]*)[ \t]*(?::[^=\n]+)?=[ \t]*"
        r"(?:async[ \t]*)?(?:\(|function\b|[A-Za-z_$][\w$]*[ \t]*=>|(?:React\.)?(?:memo|forwardRef)\()",
        re.MULTILINE,
    ),
    re.compile(STATEMENT_START + r"[ \t]*class[ \t]+([A-Z][\w$]*)[ \t]+extends[ \t]+(?:React\.)?(?:Pure)?Component\b", re.MULTILINE),
)

# Hooks and helpers exposed as globals for code written against module imports
RUNTIME_GLOBALS = (
    "useState",
    "useEffect",
    "useRef",
    "useMemo",
    "useCallback",
    "useContext",
    "useReducer",
    "useLayoutEffect",
    "useId",
    "Fragment",
    "createContext",
)


DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>Preview</title>
<style id="preview-reset">
*, *::before, *::after { box-sizing: border-box; }
html, body { margin: 0; padding: 0; }
body { font-family: ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, sans-serif; line-height: 1.5; }
img, svg, video { display: block; max-width: 100%; }
#preview-error { display: none; margin: 16px; padding: 16px; border: 2px solid #dc2626; border-radius: 8px; background: #fef2f2; color: #991b1b; font-family: ui-monospace, SFMono-Regular, Menlo, monospace; font-size: 13px; }
#preview-error[data-visible="true"] { display: block; }
#preview-error pre { margin: 8px 0 0; white-space: pre-wrap; word-break: break-word; }
#preview-empty { padding: 24px; color: #6b7280; font-family: ui-sans-serif, system-ui, sans-serif; text-align: center; }
</style>
<style id="preview-css">__EXTRA_CSS__</style>
<script src="__TAILWIND_URL__"></script>
<script crossorigin src="__REACT_URL__"></script>
<script crossorigin src="__REACT_DOM_URL__"></script>
<script src="__BABEL_URL__"></script>
</head>
<body data-preview-status="loading" data-mount-strategy="__MOUNT_KIND__" data-mount-name="__MOUNT_NAME__">
<div id="root"></div>
<div id="preview-error" role="alert" aria-live="assertive"></div>
<script id="preview-bootstrap">
(function () {
  "use strict";

  var SOURCE = __SOURCE_JSON__;
  var PREFERRED = __PREFERRED_JSON__;
  var CANDIDATES = __CANDIDATES_JSON__;
  var RUNTIME_GLOBALS = __GLOBALS_JSON__;
  var NO_COMPONENT_MESSAGE = __NO_COMPONENT_JSON__;

  var errors = window.__PREVIEW_ERRORS__ = [];
  window.__PREVIEW_MOUNT__ = null;

  function setStatus(status) {
    document.body.setAttribute("data-preview-status", status);
  }

  function showError(info) {
    var panel = document.getElementById("preview-error");
    panel.textContent = "";
    var title = document.createElement("strong");
    title.textContent = "Preview error (" + info.phase + ")";
    var message = document.createElement("pre");
    message.className = "preview-error-message";
    message.textContent = info.name + ": " + info.message;
    panel.appendChild(title);
    panel.appendChild(message);
    panel.setAttribute("data-visible", "true");
  }

  function report(phase, err) {
    var info = {
      phase: phase,
      name: (err && err.name) ? String(err.name) : "Error",
      message: (err && err.message !== undefined) ? String(err.message) : String(err),
      stack: (err && err.stack) ? String(err.stack) : null
    };
    errors.push(info);
    setStatus("error");
    showError(info);
    try {
      window.parent.postMessage({ type: "preview-error", error: info }, "*");
    } catch (postError) {
      // Detached frame
    }
    return info;
  }

  window.addEventListener("error", function (event) {
    report("runtime", event.error || { name: "Error", message: event.message });
  });
  window.addEventListener("unhandledrejection", function (event) {
    report("runtime", event.reason || { name: "UnhandledRejection", message: "Unhandled promise rejection" });
  });

  if (typeof React === "undefined" || typeof ReactDOM === "undefined" || typeof Babel === "undefined") {
    report("bootstrap", { name: "BootstrapError", message: "Preview runtime libraries failed to load" });
    return;
  }

  RUNTIME_GLOBALS.forEach(function (name) {
    if (!(name in window) && React[name] !== undefined) {
      Object.defineProperty(window, name, { value: React[name], configurable: true, writable: true });
    }
  });

  var before = {};
  Object.getOwnPropertyNames(window).forEach(function (name) { before[name] = true; });

  var lookup;
  try {
    var compiled = Babel.transform(SOURCE, {
      presets: [["react", { runtime: "classic" }], ["typescript", { isTSX: true, allExtensions: true }]],
      filename: "App.tsx",
      sourceType: "script"
    }).code;
    lookup = new Function(
      compiled + "\\n;return function (name) { try { return eval(name); } catch (lookupError) { return undefined; } };"
    )();
  } catch (err) {
    report("evaluate", err);
    return;
  }

  function isComponent(value) {
    return typeof value === "function" || (value !== null && typeof value === "object" && value.$$typeof !== undefined);
  }

  function resolve() {
    var component = lookup(PREFERRED);
    if (isComponent(component)) {
      return { kind: "by_name", name: PREFERRED, component: component };
    }
    for (var i = 0; i < CANDIDATES.length; i++) {
      component = lookup(CANDIDATES[i]);
      if (isComponent(component)) {
        return { kind: "first_uppercase_global", name: CANDIDATES[i], component: component };
      }
    }
    var added = Object.getOwnPropertyNames(window).filter(function (name) {
      return !before[name] && /^[A-Z]/.test(name) && typeof window[name] === "function";
    });
    if (added.length) {
      return { kind: "first_uppercase_global", name: added[0], component: window[added[0]] };
    }
    return null;
  }

  function PreviewBoundary(props) {
    React.Component.call(this, props);
    this.state = { failed: false };
  }
  PreviewBoundary.prototype = Object.create(React.Component.prototype);
  PreviewBoundary.prototype.constructor = PreviewBoundary;
  PreviewBoundary.getDerivedStateFromError = function () {
    return { failed: true };
  };
  PreviewBoundary.prototype.componentDidCatch = function (err) {
    report("render", err);
  };
  PreviewBoundary.prototype.render = function () {
    return this.state.failed ? null : this.props.children;
  };

  var target;
  try {
    target = resolve();
  } catch (err) {
    report("mount", err);
    return;
  }

  var container = document.getElementById("root");
  if (!target) {
    window.__PREVIEW_MOUNT__ = { kind: "none", name: null };
    var empty = document.createElement("div");
    empty.id = "preview-empty";
    empty.textContent = NO_COMPONENT_MESSAGE;
    container.appendChild(empty);
    report("mount", { name: "NoComponentFound", message: NO_COMPONENT_MESSAGE });
    return;
  }

  window.__PREVIEW_MOUNT__ = { kind: target.kind, name: target.name };
  try {
    var root = ReactDOM.createRoot(container);
    ReactDOM.flushSync(function () {
      root.render(React.createElement(PreviewBoundary, null, React.createElement(target.component)));
    });
  } catch (err) {
    report("mount", err);
    return;
  }

  if (!errors.length) {
    setStatus("ready");
  }
})();
</script>
</body>
</html>
"""


def _script_json(value) -> str:
    """JSON literal safe to place inside a ``<script>`` element."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def _style_text(css: str) -> str:
    return re.sub(r"</(style)", r"<\\/\1", css or "", flags=re.IGNORECASE)


class PreviewCompiler:
    """Turns sanitized component source into a self-contained preview document."""

    @staticmethod
    def component_candidates(source: str) -> List[str]:
        """
        Capitalised component declarations in source order.

        Args:
            source: Sanitized component source.

        Returns:
            Unique names, ``App`` excluded.
        """
        if not isinstance(source, str):
            return []

        found = []
        for pattern in _COMPONENT_DECLARATIONS:
            for match in pattern.finditer(source):
                found.append((match.start(), match.group(1)))

        names = []
        for _, name in sorted(found):
            if name != PREFERRED_COMPONENT and name not in names:
                names.append(name)
        return names

    @classmethod
    def mount_strategy(cls, source: str) -> MountStrategy:
        """Predict which component the compiled document will mount."""
        if isinstance(source, str) and ResponseSanitizer.has_app_component(source):
            return MountByName(name=PREFERRED_COMPONENT)
        candidates = cls.component_candidates(source)
        if candidates:
            return MountFirstUppercase(name=candidates[0])
        return NoComponent()

    @classmethod
    def compile(cls, source: str, css: str = "") -> str:
        """
        Build the preview document.

        Pure and deterministic: identical input yields byte-identical output.

        Args:
            source: Sanitized component source.
            css: Extra stylesheet extracted from the model response.

        Returns:
            Complete HTML document.
        """
        source = source if isinstance(source, str) else ""
        strategy = cls.mount_strategy(source)
        mount_name = getattr(strategy, "name", "")

        replacements = {
            "__EXTRA_CSS__": _style_text(css),
            "__TAILWIND_URL__": TAILWIND_URL,
            "__REACT_URL__": REACT_URL,
            "__REACT_DOM_URL__": REACT_DOM_URL,
            "__BABEL_URL__": BABEL_URL,
            "__MOUNT_KIND__": strategy.kind,
            "__MOUNT_NAME__": mount_name,
            "__PREFERRED_JSON__": _script_json(PREFERRED_COMPONENT),
            "__CANDIDATES_JSON__": _script_json(cls.component_candidates(source)),
            "__GLOBALS_JSON__": _script_json(list(RUNTIME_GLOBALS)),
            "__NO_COMPONENT_JSON__": _script_json(NO_COMPONENT_MESSAGE),
            "__SOURCE_JSON__": _script_json(source),
        }

        # Single pass, so substituted text is never expanded again
        return _TOKEN.sub(lambda match: replacements.get(match.group(0), match.group(0)), DOCUMENT_TEMPLATE)


def compile_preview(source: str, css: str = "") -> str:
    """Module-level shortcut for ``PreviewCompiler.compile``."""
    return PreviewCompiler.compile(source, css)


def apply_source_edit(generated: GeneratedComponent, edited_source: str) -> Tuple[GeneratedComponent, str]:
    """
    Re-sanitize hand-edited source and compile a fresh preview document.

    Args:
        generated: The component being edited.
        edited_source: Source text from the editor.

    Returns:
        Tuple of (updated component, preview document).

    Raises:
        ValueError: The edited source sanitizes to nothing.
    """
    source = ResponseSanitizer.sanitize(edited_source)
    if not source:
        raise ValueError("The edited code is empty")

    updated = generated.model_copy(update={"source": source})
    return updated, PreviewCompiler.compile(source, updated.css_content)
