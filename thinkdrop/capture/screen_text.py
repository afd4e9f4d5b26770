"""Post-processing for text recognized from a screen capture.

The pipeline splits noisy OCR output into three artifact classes: file
names, code snippets and the remaining prose with both of those removed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

FILE_EXTENSIONS = (
    "json",
    "jsx",
    "js",
    "tsx",
    "ts",
    "md",
    "png",
    "py",
    "yaml",
    "yml",
    "html",
    "css",
    "txt",
)
CODE_KEYWORDS = ("import", "export", "from", "function", "const", "let", "var", "class", "def")
MAX_FILE_NAME_LENGTH = 255

_FILE_NAME_RE = re.compile(
    r"[A-Za-z0-9/_-]+\.(?:" + "|".join(FILE_EXTENSIONS) + r")\b"
)
_CODE_LINE_RE = re.compile(r"^(?:" + "|".join(CODE_KEYWORDS) + r")\b")
_FORBIDDEN_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]+$")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7e\n]")
_INLINE_SPACE_RE = re.compile(r"[ \t\f\v]+")
_BRACKET_TAG_RE = re.compile(r"\[[^\]]+\]")
_STAMP_RES = (
    re.compile(r"\d{4}-\d{2}-\d{2} at \d{1,2}\.\d{2}\.\d{2} [AP]M"),
    re.compile(r"\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}(?::\d{2})?"),
)
_HASH_RE = re.compile(r"[A-Z0-9]{8,}")
_SYMBOL_RE = re.compile(
    "[\u2190-\u21ff\u2300-\u27bf\u2b50-\u2bff\U0001f000-\U0001faff]\ufe0f?"
)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ExtractedArtifact:
    files: list[str] = field(default_factory=list)
    snippets: list[str] = field(default_factory=list)
    cleaned_text: str = ""
    redacted_text: str = ""
    text: str = ""

    def as_highlight(self) -> str:
        """Join the artifact classes into one highlight string."""

        parts: list[str] = []
        if self.files:
            parts.append("Files: " + ", ".join(self.files))
        if self.snippets:
            parts.append("Code:\n" + "\n".join(self.snippets))
        if self.text:
            parts.append(self.text)
        return "\n\n".join(parts)


def clean_text(raw: str) -> str:
    """Strip non-printable characters and collapse whitespace, keeping lines."""

    if not raw:
        return ""
    text = raw.replace("\r\n", "\n").replace("\r", "\n").replace("\t", " ")
    text = _NON_PRINTABLE_RE.sub("", text)
    lines = (_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def extract_file_names(text: str) -> list[str]:
    return _FILE_NAME_RE.findall(text)


def is_valid_file_name(name: str) -> bool:
    return (
        isinstance(name, str)
        and not _FORBIDDEN_RE.search(name)
        and bool(name.strip())
        and len(name) <= MAX_FILE_NAME_LENGTH
        and bool(_EXTENSION_RE.search(name))
    )


def dedupe_file_names(names: list[str]) -> list[str]:
    """Case-insensitive dedupe keeping the first-seen casing, then validate."""

    seen: dict[str, str] = {}
    for name in names:
        seen.setdefault(name.lower(), name)
    return [name for name in seen.values() if is_valid_file_name(name)]


def extract_code_snippets(text: str) -> list[str]:
    return [line for line in text.split("\n") if _CODE_LINE_RE.match(line.strip())]


def redact(text: str, needles: list[str]) -> str:
    for needle in needles:
        needle = needle.strip()
        if needle:
            text = text.replace(needle, "")
    return text


def strip_noise(text: str) -> str:
    """Drop log tags, timestamps, hash-like tokens and pictographs.

    Text that went through ``clean_text`` has no pictographs left; the symbol
    pass matters for callers that hand in raw text.
    """

    text = _BRACKET_TAG_RE.sub("", text)
    for pattern in _STAMP_RES:
        text = pattern.sub("", text)
    text = _HASH_RE.sub("", text)
    text = _SYMBOL_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def process_screen_text(raw: str) -> ExtractedArtifact:
    cleaned = clean_text(raw)
    files = dedupe_file_names(extract_file_names(cleaned))
    snippets = extract_code_snippets(cleaned)
    # Snippets go before file names so each snippet still matches verbatim.
    redacted = redact(redact(cleaned, snippets), files)
    return ExtractedArtifact(
        files=files,
        snippets=snippets,
        cleaned_text=cleaned,
        redacted_text=redacted,
        text=strip_noise(redacted),
    )


__all__ = [
    "ExtractedArtifact",
    "clean_text",
    "extract_file_names",
    "is_valid_file_name",
    "dedupe_file_names",
    "extract_code_snippets",
    "redact",
    "strip_noise",
    "process_screen_text",
]
