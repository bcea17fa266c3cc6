"""
Markdown-to-Document Renderer

Translates the markdown an LLM returns into the block-level Document model
(headings, paragraphs, list items and pipe tables with inline styling) that
the .docx exporter consumes. The translation is line oriented and total:
any string renders without raising.
"""
import logging
import re
from typing import List, Optional, Tuple

from .models import (
    BulletItem, Document, Heading, NumberedItem, Paragraph, Span,
    Table, TableCell, TableRow
)

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r'^(#{1,3})\s')
BULLET_PATTERN = re.compile(r'^[-*]\s')
NUMBERED_PATTERN = re.compile(r'^\d+\.\s')
TABLE_SEPARATOR_PATTERN = re.compile(r'^\|[-:\s|]+\|$')

# Non-greedy and flat: there is no nesting stack, so "***x***" or
# unbalanced markers come out as whatever the left-to-right split gives.
INLINE_PATTERN = re.compile(r'(\*\*.*?\*\*|\*.*?\*|`.*?`)')


def spans(text: str) -> List[Span]:
    """Split a line into bold, italic, monospace and plain spans"""
    result = []

    for token in INLINE_PATTERN.split(text):
        if not token:
            continue

        if len(token) >= 4 and token.startswith('**') and token.endswith('**'):
            span = Span(text=token[2:-2], bold=True)
        elif len(token) >= 2 and token.startswith('*') and token.endswith('*'):
            span = Span(text=token[1:-1], italic=True)
        elif len(token) >= 2 and token.startswith('`') and token.endswith('`'):
            span = Span(text=token[1:-1], monospace=True)
        else:
            span = Span(text=token)

        if span.text:
            result.append(span)

    return result


def split_table_row(line: str) -> List[str]:
    """Split a pipe row into trimmed cells, dropping the empty outer cells"""
    cells = [cell.strip() for cell in line.split('|')]
    while cells and not cells[0]:
        cells.pop(0)
    while cells and not cells[-1]:
        cells.pop()
    return cells


def parse_table(lines: List[str], start: int) -> Tuple[Optional[Table], int]:
    """
    Consume consecutive pipe lines starting at ``start``.

    Returns the table (None when no rows were found) and the index of the
    first line after it. Rows keep whatever cell count they parsed.
    """
    rows: List[TableRow] = []
    i = start

    while i < len(lines):
        line = lines[i].strip()
        if not line.startswith('|'):
            break
        i += 1

        if TABLE_SEPARATOR_PATTERN.match(line):
            continue

        cells = split_table_row(line)
        if not cells:
            continue

        rows.append(TableRow(
            cells=[TableCell(blocks=[Paragraph(spans=spans(cell))]) for cell in cells],
            is_header=not rows,
        ))

    if not rows:
        return None, i

    widths = {len(row.cells) for row in rows}
    if len(widths) > 1:
        logger.debug(f"Table starting at line {start + 1} has uneven rows: {sorted(widths)}")

    return Table(rows=rows), i


def render(markdown: str) -> Document:
    """Render a markdown string into a Document"""
    blocks = []
    lines = markdown.split('\n')
    i = 0

    while i < len(lines):
        line = lines[i].strip()

        if not line:
            i += 1
            continue

        if line.startswith('|'):
            table, i = parse_table(lines, i)
            if table is not None:
                blocks.append(table)
            continue

        heading = HEADING_PATTERN.match(line)
        if heading:
            level = len(heading.group(1))
            blocks.append(Heading(level=level, spans=spans(line[heading.end():])))
        elif BULLET_PATTERN.match(line):
            blocks.append(BulletItem(spans=spans(BULLET_PATTERN.sub('', line, count=1))))
        elif NUMBERED_PATTERN.match(line):
            blocks.append(NumberedItem(spans=spans(NUMBERED_PATTERN.sub('', line, count=1))))
        else:
            blocks.append(Paragraph(spans=spans(line)))

        i += 1

    return Document(blocks=blocks)
