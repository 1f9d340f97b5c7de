"""Text helpers shared by the engine modules."""

import re

_TAG_RE = re.compile(r"<[^>]+>")
_ENTITY_RE = re.compile(r"&(amp|lt|gt|quot|apos|#\d+|#x[0-9a-fA-F]+);")

_NAMED_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
}

# Word and LibreOffice replace straight quotes while typing.
_SMART_QUOTES = {
    "‘": "'",
    "’": "'",
    "‚": "'",
    "‛": "'",
    "“": '"',
    "”": '"',
    "„": '"',
    "‟": '"',
}


def escape_xml(text: str) -> str:
    """Escape XML special characters for use inside a text node."""
    if not text:
        return ""

    if not isinstance(text, str):
        text = str(text)

    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def unescape_xml(text: str) -> str:
    """Resolve the predefined XML entities and numeric character references."""
    if not text or "&" not in text:
        return text

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name.startswith("#x"):
            return chr(int(name[2:], 16))
        if name.startswith("#"):
            return chr(int(name[1:]))
        return _NAMED_ENTITIES[name]

    return _ENTITY_RE.sub(_replace, text)


def strip_tags(markup: str) -> str:
    """Drop every markup tag and keep the character data between them."""
    return _TAG_RE.sub("", markup)


def normalize_quotes(text: str) -> str:
    """Map curly quotes back to their ASCII counterparts."""
    for smart, plain in _SMART_QUOTES.items():
        if smart in text:
            text = text.replace(smart, plain)
    return text
