"""
Word export
Serializes a rendered Document to a .docx file with python-docx.
"""
import logging
from io import BytesIO
from pathlib import Path
from typing import List, Union

from docx import Document as WordDocument
from docx.shared import Inches, Pt

from .markdown_renderer import render
from .models import (
    BulletItem, Document, Heading, NumberedItem, Paragraph, Span, Table
)

logger = logging.getLogger(__name__)

CODE_FONT = 'Courier New'


class DocxExporter:
    """Builds Word documents from the Document model"""

    def __init__(self, margin_inches: float = 1.0, base_font_size: int = 11):
        self.margin_inches = margin_inches
        self.base_font_size = base_font_size

    def build(self, document: Document):
        """Create a python-docx document for the given blocks"""
        word_doc = WordDocument()

        for section in word_doc.sections:
            section.top_margin = Inches(self.margin_inches)
            section.bottom_margin = Inches(self.margin_inches)
            section.left_margin = Inches(self.margin_inches)
            section.right_margin = Inches(self.margin_inches)

        word_doc.styles['Normal'].font.size = Pt(self.base_font_size)

        for block in document.blocks:
            if isinstance(block, Heading):
                paragraph = word_doc.add_heading(level=block.level)
                self._add_runs(paragraph, block.spans)
            elif isinstance(block, BulletItem):
                self._add_runs(word_doc.add_paragraph(style='List Bullet'), block.spans)
            elif isinstance(block, NumberedItem):
                self._add_runs(word_doc.add_paragraph(style='List Number'), block.spans)
            elif isinstance(block, Table):
                self._add_table(word_doc, block)
            elif isinstance(block, Paragraph):
                self._add_runs(word_doc.add_paragraph(), block.spans)

        return word_doc

    def to_bytes(self, document: Document) -> bytes:
        buffer = BytesIO()
        self.build(document).save(buffer)
        return buffer.getvalue()

    def export(self, document: Document, path: Union[str, Path]) -> Path:
        """Write the document to disk, adding a .docx suffix when missing"""
        path = Path(path)
        if path.suffix.lower() != '.docx':
            path = path.with_name(path.name + '.docx')
        path.parent.mkdir(parents=True, exist_ok=True)
        self.build(document).save(str(path))
        logger.info(f"Exported {len(document.blocks)} blocks to {path}")
        return path

    def _add_runs(self, paragraph, spans: List[Span], force_bold: bool = False) -> None:
        for span in spans:
            run = paragraph.add_run(span.text)
            run.bold = span.bold or force_bold or None
            run.italic = span.italic or None
            if span.monospace:
                run.font.name = CODE_FONT

    def _add_table(self, word_doc, table: Table) -> None:
        # Rows may disagree on cell count; size the grid to the widest row
        word_table = word_doc.add_table(rows=len(table.rows), cols=table.column_count)
        word_table.style = 'Table Grid'

        for row_index, row in enumerate(table.rows):
            for col_index, cell in enumerate(row.cells):
                word_cell = word_table.cell(row_index, col_index)
                word_paragraph = word_cell.paragraphs[0]
                for block_index, block in enumerate(cell.blocks):
                    if block_index:
                        word_paragraph = word_cell.add_paragraph()
                    self._add_runs(word_paragraph, block.spans, force_bold=row.is_header)


def markdown_to_docx(markdown: str, path: Union[str, Path]) -> Path:
    """Render markdown and write it straight to a .docx file"""
    return DocxExporter().export(render(markdown), path)
