"""Map caption labels ("English", "Português - Brasil") to language codes."""

from __future__ import annotations

# Checked in order; first keyword found in the lower-cased label wins.
_LABEL_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("en", ("english",)),
    ("es", ("spanish", "español")),
    ("fr", ("french", "français")),
    ("de", ("german", "deutsch")),
    ("pt", ("portuguese", "português")),
    ("it", ("italian", "italiano")),
    ("ru", ("russian", "русский")),
    ("ja", ("japanese", "日本語")),
    ("ko", ("korean", "한국어")),
    ("zh", ("chinese", "中文")),
    ("ar", ("arabic", "العربية")),
    ("hi", ("hindi", "हिन्दी")),
    ("id", ("indonesian",)),
    ("ms", ("malay",)),
    ("th", ("thai", "ไทย")),
    ("vi", ("vietnamese", "tiếng việt")),
    ("tr", ("turkish", "türkçe")),
    ("pl", ("polish", "polski")),
    ("nl", ("dutch", "nederlands")),
)


def language_code(label: str) -> str:
    """Two-letter code for a caption label, ``"unknown"`` if unrecognised."""
    lowered = label.lower()
    for code, keywords in _LABEL_KEYWORDS:
        if any(k in lowered for k in keywords):
            return code
    return "unknown"


def default_caption_index(labels: list[str]) -> int:
    """Index of the English track when present, else 0 (-1 when empty)."""
    if not labels:
        return -1
    for i, label in enumerate(labels):
        if language_code(label) == "en":
            return i
    return 0
