import logging
from contextlib import closing
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

from .docx_export import DocxExporter
from .history_store import HistoryStore
from .jira_client import JiraClient
from .llm_providers import PlanProvider
from .markdown_renderer import render
from .models import GeneratedPlan, Template, Ticket
from .pdf_parser import parse_pdf_bytes, validate_pdf
from .template_store import TemplateStore
from .template_structurer import structure
from .validators import is_valid_ticket_key, sanitize_ticket_key

logger = logging.getLogger(__name__)


class PlanGenerationError(Exception):
    """Raised when a test plan request cannot be served"""
    pass


class PlanGenerator:
    """Wires ticket fetching, templates and LLM providers into test plans"""

    def __init__(
        self,
        jira_client: JiraClient,
        template_store: TemplateStore,
        history_store: HistoryStore,
        providers: Dict[str, PlanProvider],
        default_provider: str,
        exporter: Optional[DocxExporter] = None
    ):
        self.jira_client = jira_client
        self.template_store = template_store
        self.history_store = history_store
        self.providers = providers
        self.default_provider = default_provider
        self.exporter = exporter or DocxExporter()

    def _provider(self, name: Optional[str]) -> Tuple[str, PlanProvider]:
        selected = (name or self.default_provider).lower()
        provider = self.providers.get(selected)
        if provider is None:
            raise PlanGenerationError(f"LLM provider '{selected}' is not configured")
        return selected, provider

    def _template(self, template_id: str) -> Template:
        template = self.template_store.get_template(template_id)
        if template is None or not template.content:
            raise PlanGenerationError("Template not found")
        return template

    def fetch_ticket(self, ticket_key: str) -> Ticket:
        """Fetch, normalize and remember a ticket"""
        sanitized = sanitize_ticket_key(ticket_key)
        if not is_valid_ticket_key(sanitized):
            raise PlanGenerationError("Invalid JIRA ID format. Expected: PROJECT-123")

        ticket = self.jira_client.fetch_ticket(sanitized)
        self.history_store.record_recent_ticket(ticket)
        return ticket

    def import_template(self, name: str, pdf_bytes: bytes) -> Template:
        """Validate a PDF, extract its text and store it as a structured template"""
        validation = validate_pdf(pdf_bytes)
        if not validation.valid:
            raise PlanGenerationError(validation.error)

        parsed = parse_pdf_bytes(pdf_bytes)
        content = structure(parsed.text)
        if name.lower().endswith('.pdf'):
            name = name[:-4]

        return self.template_store.create_template(
            name=name,
            content=content,
            pdf_bytes=pdf_bytes,
            pages=parsed.num_pages
        )

    def generate(self, ticket_key: str, template_id: str, provider: Optional[str] = None) -> GeneratedPlan:
        """Generate a full test plan and record it in history"""
        selected, backend = self._provider(provider)
        ticket = self.fetch_ticket(ticket_key)
        template = self._template(template_id)

        content = backend.generate_test_plan(ticket, template.content)

        self.history_store.record_plan(
            ticket_id=ticket.key,
            template_id=template.template_id,
            template_name=template.name,
            generated_content=content,
            provider_used=selected
        )
        return GeneratedPlan(
            ticket_id=ticket.key,
            template_id=template.template_id,
            provider_used=selected,
            generated_content=content
        )

    def stream(self, ticket_key: str, template_id: str, provider: Optional[str] = None) -> Iterator[str]:
        """
        Stream a test plan chunk by chunk.

        The plan is recorded in history only if the stream runs to the end;
        closing the iterator early cancels the provider request.
        """
        selected, backend = self._provider(provider)
        ticket = self.fetch_ticket(ticket_key)
        template = self._template(template_id)

        chunks = []
        with closing(backend.stream_test_plan(ticket, template.content)) as provider_stream:
            for chunk in provider_stream:
                chunks.append(chunk)
                yield chunk

        self.history_store.record_plan(
            ticket_id=ticket.key,
            template_id=template.template_id,
            template_name=template.name,
            generated_content=''.join(chunks),
            provider_used=selected
        )

    def export_docx(self, markdown: str, path: Union[str, Path]) -> Path:
        return self.exporter.export(render(markdown), path)
