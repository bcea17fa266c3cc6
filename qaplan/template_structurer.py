"""
Template Structurer
Re-sections raw PDF text into a lightly structured plain-text template.
"""
import re
from typing import List

# Checked in order; the first hit marks the line as a section header.
# The numbered-title pattern matches almost any line that starts with a
# word character, so most lines end up as headers.
SECTION_PATTERNS = [
    re.compile(r'^(?:\d+\.\s*)?\w+', re.ASCII),
    re.compile(r'^[A-Z][A-Z\s]+$'),
    re.compile(r'^(?:Test\s+\w+|Scenario|Step|Description)', re.IGNORECASE),
]


def clean_text(text: str) -> str:
    """Normalize line endings and collapse runs of blank lines"""
    cleaned = text.replace('\r\n', '\n').replace('\r', '\n')
    cleaned = re.sub(r'\n{3,}', '\n\n', cleaned)
    return cleaned.strip()


def is_section_header(line: str) -> bool:
    return any(pattern.search(line) for pattern in SECTION_PATTERNS)


def structure(text: str) -> str:
    """
    Turn extracted PDF text into a sectioned template.

    Header-looking lines become ``## <line>`` blocks surrounded by blank
    lines; everything else is kept verbatim. Blank lines are dropped.
    Running this on its own output re-wraps the ``##`` lines, so the
    transform is not idempotent.
    """
    structured: List[str] = []

    for line in clean_text(text).split('\n'):
        trimmed = line.strip()
        if not trimmed:
            continue

        if is_section_header(trimmed):
            structured.append(f"\n## {trimmed}\n")
        else:
            structured.append(trimmed)

    return '\n'.join(structured)
