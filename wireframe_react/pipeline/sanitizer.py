"""
Text transforms that turn raw model output into a mountable React component.

Every transform is a pure ``str -> str`` function; ``ResponseSanitizer.sanitize``
chains them in a fixed order, repeating the chain until the output stops
changing, so it is idempotent.
"""

import re
from typing import List, Optional, Tuple


# Fence language tags stripped together with the fence marker (case-sensitive).
FENCE_LANGUAGES = ("jsx", "javascript", "js", "react", "tsx", "typescript", "html")

_FENCE_MARKER = re.compile(r"`{3,}(?!`)(?:(?:" + "|".join(FENCE_LANGUAGES) + r")(?![\w-]))?")
_FENCED_BLOCK = re.compile(
    r"`{3,}(" + "|".join(FENCE_LANGUAGES + ("css", "scss")) + r")?[ \t]*\n(.*?)`{3,}", re.DOTALL
)

# A statement begins at a line start or right after `;`, `}` or a block comment.
STATEMENT_START = r"(?:^|(?<=[;}])|(?<=\*/))"

# Upper bound on full sanitize passes while looking for a fixed point.
MAX_PASSES = 8

_IMPORT_STATEMENT = re.compile(
    STATEMENT_START + r"[ \t]*import(?![\w$.])(?![ \t]*\()[^;'\"`]*?['\"][^'\"\n]*['\"][ \t]*;?",
    re.MULTILINE,
)

_EXPORT_DEFAULT_IDENTIFIER = re.compile(
    STATEMENT_START + r"[ \t]*export[ \t]+default[ \t]+([A-Za-z_$][\w$]*)[ \t]*;?[ \t]*$", re.MULTILINE
)
_EXPORT_DEFAULT_ANON_FUNCTION = re.compile(
    STATEMENT_START + r"([ \t]*)export[ \t]+default[ \t]+(async[ \t]+)?function[ \t]*\(", re.MULTILINE
)
_EXPORT_DEFAULT_ARROW = re.compile(
    STATEMENT_START + r"([ \t]*)export[ \t]+default[ \t]+"
    r"(?=(?:async[ \t]*)?\([^)]*\)[ \t]*(?::[^=\n]+)?=>|(?:async[ \t]+)?[A-Za-z_$][\w$]*[ \t]*=>)",
    re.MULTILINE,
)
_EXPORT_DEFAULT = re.compile(STATEMENT_START + r"([ \t]*)export[ \t]+default[ \t]+", re.MULTILINE)
_EXPORT_LIST = re.compile(
    STATEMENT_START + r"[ \t]*export[ \t]*(?:type[ \t]*)?\{[^}]*\}[ \t]*(?:from[ \t]*['\"][^'\"]*['\"])?[ \t]*;?[ \t]*$",
    re.MULTILINE,
)
_EXPORT_STAR = re.compile(STATEMENT_START + r"[ \t]*export[ \t]*\*[^\n]*$", re.MULTILINE)
_EXPORT_KEYWORD = re.compile(
    STATEMENT_START + r"([ \t]*)export[ \t]+"
    r"(?=(?:async[ \t]+)?function\b|const\b|let\b|var\b|class\b|interface\b|type\b|enum\b|abstract\b|declare\b)",
    re.MULTILINE,
)

_DEFAULT_EXPORT_PATTERNS = (
    re.compile(STATEMENT_START + r"[ \t]*export[ \t]+default[ \t]+(?:async[ \t]+)?function[ \t]*\*?[ \t]*([A-Za-z_$][\w$]*)", re.MULTILINE),
    re.compile(STATEMENT_START + r"[ \t]*export[ \t]+default[ \t]+class[ \t]+([A-Za-z_$][\w$]*)", re.MULTILINE),
    re.compile(STATEMENT_START + r"[ \t]*export[ \t]+default[ \t]+(?:React\.)?(?:memo|forwardRef)\([ \t]*([A-Za-z_$][\w$]*)[ \t]*\)", re.MULTILINE),
    _EXPORT_DEFAULT_IDENTIFIER,
)

_FUNCTION_COMPONENT = re.compile(
    STATEMENT_START + r"[ \t]*(?:export[ \t]+(?:default[ \t]+)?)?(?:async[ \t]+)?function[ \t]+([A-Z][\w$]*)[ \t]*(?:<[^>\n]*>)?[ \t]*\(",
    re.MULTILINE,
)
_CONST_COMPONENT = re.compile(
    STATEMENT_START + r"[ \t]*(?:export[ \t]+)?(?:const|let|var)[ \t]+([A-Z][\w$]*)[ \t]*(?::[^=\n]+)?=[ \t]*"
    r"(?:async[ \t]*)?(?:\(|function\b|[A-Za-z_$][\w$]*[ \t]*=>|(?:React\.)?(?:memo|forwardRef)\()",
    re.MULTILINE,
)

_STATE_HOOK = re.compile(
    r"((?:const|let|var)\s*\[\s*[A-Za-z_$][\w$]*\s*,\s*[A-Za-z_$][\w$]*\s*\]\s*=\s*)useState\b"
)

_CSS_FENCE = re.compile(r"`{3,}css[^\n]*\n(.*?)`{3,}", re.DOTALL)
_STYLE_TAG = re.compile(r"<style[^>]*>(.*?)</style>", re.DOTALL | re.IGNORECASE)
CSS_MARKERS = (":root {", "body {")

APP_MARKERS = ("function App", "const App", "export default")


def _declaration_pattern(name: str) -> "re.Pattern":
    """Top-level declaration of ``name`` (function, class or binding)."""
    escaped = re.escape(name)
    return re.compile(
        STATEMENT_START + r"([ \t]*(?:(?:async[ \t]+)?function[ \t]*\*?[ \t]*|(?:const|let|var|class)[ \t]+))"
        + escaped + r"(?![\w$])",
        re.MULTILINE,
    )


_APP_DECLARATION = _declaration_pattern("App")
_EXPORTED_APP_DECLARATION = re.compile(
    STATEMENT_START + r"[ \t]*(?:export[ \t]+(?:default[ \t]+)?)?"
    r"(?:(?:async[ \t]+)?function[ \t]*\*?[ \t]*|(?:const|let|var|class)[ \t]+)App(?![\w$])",
    re.MULTILINE,
)


def find_closing_brace(code: str, start_index: int) -> int:
    """
    Find the brace closing the first block opened at or after ``start_index``.

    Args:
        code: Source text.
        start_index: Where to start scanning.

    Returns:
        Index of the closing brace, or -1 if the block is unbalanced.
    """
    depth = 0
    found_opening = False
    for i in range(max(start_index, 0), len(code)):
        char = code[i]
        if char == "{":
            depth += 1
            found_opening = True
        elif char == "}":
            depth -= 1
            if found_opening and depth == 0:
                return i
    return -1


class ResponseSanitizer:
    """Rewrites raw model responses into component source the preview can mount."""

    @classmethod
    def sanitize(cls, raw) -> str:
        """
        Run every sanitization step in order.

        Never raises: ``None`` and other non-string input produce an empty string,
        bytes are decoded leniently.

        Args:
            raw: Raw model response.

        Returns:
            Sanitized component source.
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            return ""

        code = cls._sanitize_once(raw)
        # Stripping one wrapper can expose another (`export default export ...`)
        for _ in range(MAX_PASSES):
            again = cls._sanitize_once(code)
            if again == code:
                break
            code = again
        return code

    @classmethod
    def _sanitize_once(cls, text: str) -> str:
        code = cls.strip_fences(text)
        preferred = cls.default_export_name(code)
        code = cls.neutralize_imports(code)
        code = cls.strip_exports(code)
        code = cls.normalize_component_name(code, preferred=preferred)
        code = cls.qualify_state_hooks(code)
        return code.strip()

    @staticmethod
    def strip_fences(text: str) -> str:
        """
        Remove markdown code fences.

        With several fenced blocks, the block defining ``App`` wins, then the
        first block declaring any capitalised component. CSS blocks are never
        picked. Only the tags in ``FENCE_LANGUAGES`` (plus ``css``/``scss``) are
        recognised, case-sensitively; any other tag is left in the text.
        Otherwise the whole input is kept with fence markers removed.
        """
        blocks: List[Tuple[str, str]] = _FENCED_BLOCK.findall(text)
        code_blocks = [body for language, body in blocks if language not in ("css", "scss")]

        chosen = None
        if code_blocks:
            chosen = next((body for body in code_blocks if _EXPORTED_APP_DECLARATION.search(body)), None)
            if chosen is None:
                chosen = next(
                    (body for body in code_blocks
                     if _FUNCTION_COMPONENT.search(body) or _CONST_COMPONENT.search(body)),
                    None,
                )

        if chosen is not None:
            return chosen.strip()
        return _FENCE_MARKER.sub("", text).strip()

    @staticmethod
    def neutralize_imports(code: str) -> str:
        """Replace import statements with inert comments of the same line count."""
        def _comment(match: "re.Match") -> str:
            statement = match.group(0)
            indent = statement[: len(statement) - len(statement.lstrip())]
            return f"{indent}/* {statement.strip().replace('*/', '* /')} */"

        return _IMPORT_STATEMENT.sub(_comment, code)

    @staticmethod
    def default_export_name(code: str) -> Optional[str]:
        """Name of the capitalised default export, if the code has one."""
        for pattern in _DEFAULT_EXPORT_PATTERNS:
            match = pattern.search(code)
            if match and match.group(1)[:1].isupper():
                return match.group(1)
        return None

    @staticmethod
    def strip_exports(code: str) -> str:
        """Strip ``export default`` and ``export`` while keeping declarations."""
        anonymous_name = "DefaultExport" if _EXPORTED_APP_DECLARATION.search(code) else "App"

        code = _EXPORT_DEFAULT_IDENTIFIER.sub("", code)
        code = _EXPORT_DEFAULT_ANON_FUNCTION.sub(
            lambda m: f"{m.group(1)}{m.group(2) or ''}function {anonymous_name}(", code
        )
        code = _EXPORT_DEFAULT_ARROW.sub(lambda m: f"{m.group(1)}const {anonymous_name} = ", code)
        code = _EXPORT_LIST.sub("", code)
        code = _EXPORT_STAR.sub("", code)
        code = _EXPORT_DEFAULT.sub(r"\1", code)
        return _EXPORT_KEYWORD.sub(r"\1", code)

    @staticmethod
    def has_app_component(code: str) -> bool:
        return bool(_APP_DECLARATION.search(code))

    @classmethod
    def normalize_component_name(cls, code: str, preferred: Optional[str] = None) -> str:
        """
        Rename the main component to ``App`` unless ``App`` is already declared.

        Args:
            code: Component source without exports.
            preferred: Name that was default-exported, tried first.

        Returns:
            Source whose main component is named ``App``.
        """
        if cls.has_app_component(code):
            return code

        name = None
        if preferred and _declaration_pattern(preferred).search(code):
            name = preferred
        if name is None:
            match = _FUNCTION_COMPONENT.search(code) or _CONST_COMPONENT.search(code)
            if match:
                name = match.group(1)
        if name is None:
            return code

        return cls.rename_component(code, name, "App")

    @staticmethod
    def rename_component(code: str, old: str, new: str) -> str:
        """Rename a component declaration and its JSX/call/member references."""
        escaped = re.escape(old)
        code = _declaration_pattern(old).sub(lambda m: m.group(1) + new, code)
        code = re.sub(r"(</?)" + escaped + r"(?=[\s/>.])", lambda m: m.group(1) + new, code)
        code = re.sub(r"(?<![\w$.'\"])" + escaped + r"(?=\()", new, code)
        code = re.sub(r"(?<![\w$.'\"])" + escaped + r"(?=\.[A-Za-z_$])", new, code)
        return re.sub(r"(?<=\()[ \t]*" + escaped + r"(?=[ \t]*\))", new, code)

    @staticmethod
    def qualify_state_hooks(code: str) -> str:
        """Rewrite ``const [x, setX] = useState(`` to use ``React.useState``."""
        return _STATE_HOOK.sub(r"\1React.useState", code)

    @staticmethod
    def has_component_markers(text: str) -> bool:
        """True when text looks like it carries component code."""
        if not isinstance(text, str):
            return False
        if any(marker in text for marker in APP_MARKERS):
            return True
        return bool(_FUNCTION_COMPONENT.search(text))

    @staticmethod
    def extract_css(text: str) -> str:
        """
        Extract CSS from a model response.

        Fallback order: fenced ``css`` blocks, then ``<style>`` elements, then the
        brace-balanced block starting at the first ``:root {`` marker, then the
        first ``body {`` marker.

        Args:
            text: Raw model response.

        Returns:
            Extracted CSS, or an empty string.
        """
        if not isinstance(text, str):
            return ""

        fenced = _CSS_FENCE.findall(text)
        if fenced:
            return "\n\n".join(block.strip() for block in fenced)

        styles = _STYLE_TAG.findall(text)
        if styles:
            return "\n\n".join(style.strip() for style in styles)

        for marker in CSS_MARKERS:
            start = text.find(marker)
            if start == -1:
                continue
            end = find_closing_brace(text, start)
            if end != -1:
                return text[start:end + 1]

        return ""


def sanitize(raw) -> str:
    """Module-level shortcut for ``ResponseSanitizer.sanitize``."""
    return ResponseSanitizer.sanitize(raw)
