"""
Shared utilities for code generators.
Handles text escaping, import path normalization and field label rendering.
"""
from typing import Any

_ESCAPES = {
    '\\': '\\\\',
    '"': '\\"',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
}


def escape_string(text: str) -> str:
    """Escape text for a double-quoted literal that must stay on one line."""
    return ''.join(_ESCAPES.get(ch, ch) for ch in text)


def unescape_string(text: str) -> str:
    reverse = {v[1]: k for k, v in _ESCAPES.items()}
    out = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == '\\' and i + 1 < len(text) and text[i + 1] in reverse:
            out.append(reverse[text[i + 1]])
            i += 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


def to_posix_path(path: str) -> str:
    # Import statements always use forward slashes
    return path.replace('\\', '/')


def get_field_label(field: Any) -> str:
    return 'repeated ' if getattr(field, 'repeated', False) else ''
