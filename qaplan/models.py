from typing import Dict, Any, Optional, List, Literal, Union
from pydantic import BaseModel, Field
from datetime import datetime, timezone


class Ticket(BaseModel):
    """Normalized Jira ticket"""
    key: str
    summary: str = ""
    description: str = ""
    priority: str = "Medium"
    status: str = "Unknown"
    assignee: Optional[str] = None
    labels: List[str] = []
    acceptance_criteria: str = ""

    @property
    def project_key(self) -> str:
        return self.key.rsplit('-', 1)[0]

    @property
    def number(self) -> Optional[int]:
        _, _, suffix = self.key.rpartition('-')
        return int(suffix) if suffix.isdigit() else None


class Template(BaseModel):
    """Stored test plan template"""
    template_id: str
    name: str
    content: str
    is_default: bool = False
    pages: Optional[int] = None
    created_at: datetime


class PlanRecord(BaseModel):
    """A generated test plan kept in history"""
    id: int
    ticket_id: str
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    provider_used: str
    generated_content: str
    created_at: datetime


class RecentTicket(BaseModel):
    ticket_id: str
    summary: str = ""
    fetched_at: datetime


class GeneratedPlan(BaseModel):
    """Result of a single test plan generation"""
    ticket_id: str
    template_id: str
    provider_used: str
    generated_content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PDFValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class ConnectionStatus(BaseModel):
    success: bool
    message: str


# ==========================================
# DOCUMENT MODEL
# ==========================================

class Span(BaseModel):
    """A run of text sharing one inline style"""
    text: str
    bold: bool = False
    italic: bool = False
    monospace: bool = False


def _spans_text(spans: List[Span]) -> str:
    return ''.join(span.text for span in spans)


class Heading(BaseModel):
    kind: Literal['heading'] = 'heading'
    level: int
    spans: List[Span] = []

    @property
    def text(self) -> str:
        return _spans_text(self.spans)


class Paragraph(BaseModel):
    kind: Literal['paragraph'] = 'paragraph'
    spans: List[Span] = []

    @property
    def text(self) -> str:
        return _spans_text(self.spans)


class BulletItem(BaseModel):
    kind: Literal['bullet_item'] = 'bullet_item'
    spans: List[Span] = []

    @property
    def text(self) -> str:
        return _spans_text(self.spans)


class NumberedItem(BaseModel):
    kind: Literal['numbered_item'] = 'numbered_item'
    spans: List[Span] = []

    @property
    def text(self) -> str:
        return _spans_text(self.spans)


class TableCell(BaseModel):
    blocks: List[Paragraph] = []

    @property
    def text(self) -> str:
        return '\n'.join(block.text for block in self.blocks)


class TableRow(BaseModel):
    cells: List[TableCell] = []
    is_header: bool = False

    @property
    def texts(self) -> List[str]:
        return [cell.text for cell in self.cells]


class Table(BaseModel):
    kind: Literal['table'] = 'table'
    rows: List[TableRow] = []

    @property
    def header(self) -> Optional[TableRow]:
        if self.rows and self.rows[0].is_header:
            return self.rows[0]
        return None

    @property
    def body(self) -> List[TableRow]:
        return [row for row in self.rows if not row.is_header]

    @property
    def column_count(self) -> int:
        return max((len(row.cells) for row in self.rows), default=0)


Block = Union[Heading, Paragraph, BulletItem, NumberedItem, Table]


class Document(BaseModel):
    """Structured document rendered from markdown"""
    blocks: List[Block] = []

    def tables(self) -> List[Table]:
        return [block for block in self.blocks if isinstance(block, Table)]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
