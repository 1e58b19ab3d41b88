"""Application name normalization.

OSが返すアプリ名 ("Google Chrome.exe", "Code", "WeChat.app" など) を比較可能な
形に揃える.
"""

import re

from focuswatch.matching.aliases import AliasTable

__all__ = [
    "DEFAULT_ALIASES",
    "canonicalize",
    "extract_app_name_from_title",
    "normalize",
]

DEFAULT_ALIASES = AliasTable()

_SUFFIX_RE = re.compile(r"\.(exe|app|dmg|msi)\Z", re.IGNORECASE)
_SPECIAL_RE = re.compile(r"[^\w\s-]")
_SPACES_RE = re.compile(r"\s+")

# "Document - App", "App: Document", "Document (App)", "App - Document"
_TITLE_PATTERNS = (
    re.compile(r"^.+?\s*[-–—]\s*(.+)$"),
    re.compile(r"^([^:]+):"),
    re.compile(r"\(([^)]+)\)$"),
    re.compile(r"^([^-–—]+)\s*[-–—]"),
)
MAX_EXTRACTED_LENGTH = 50
MAX_TITLE_FALLBACK_LENGTH = 30


def normalize(raw: str | None) -> str:
    """Lowercase, drop a trailing bundle suffix and collapse punctuation.

    >>> normalize("Google Chrome.exe")
    'google chrome'
    """
    if not raw:
        return ""
    name = _SUFFIX_RE.sub("", raw.lower())
    name = _SPECIAL_RE.sub(" ", name)
    return _SPACES_RE.sub(" ", name).strip()


def canonicalize(normalized_name: str, aliases: AliasTable | None = None) -> str:
    """別名テーブルに登録されていれば正式名を、なければそのまま返す."""
    table = DEFAULT_ALIASES if aliases is None else aliases
    return table.lookup(normalized_name)


def extract_app_name_from_title(title: str | None) -> str:
    """Guess an application name from a window title."""
    if not title:
        return ""

    for pattern in _TITLE_PATTERNS:
        match = pattern.search(title)
        if match and match.group(1):
            extracted = match.group(1).strip()
            if 0 < len(extracted) < MAX_EXTRACTED_LENGTH:
                return normalize(extracted)

    return normalize(title) if len(title) <= MAX_TITLE_FALLBACK_LENGTH else ""
