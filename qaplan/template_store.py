"""
Template Store
Persists test plan templates (structured text plus the uploaded PDF) on disk
"""
import logging
import uuid
from typing import List, Optional
from datetime import datetime, timezone
from pathlib import Path

from .models import Template

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_ID = "default"
DEFAULT_TEMPLATE_NAME = "Default Test Plan Template"
DEFAULT_TEMPLATE_CONTENT = """# Test Plan Template

## 1. Overview
- **Ticket ID:** {{TICKET_ID}}
- **Summary:** {{SUMMARY}}
- **Priority:** {{PRIORITY}}

## 2. Test Scope
### In Scope
- Feature functionality as per acceptance criteria
- UI/UX validation
- Edge cases

### Out of Scope
- Performance testing
- Security testing (unless specified)

## 3. Test Scenarios
{{TEST_SCENARIOS}}

## 4. Test Cases
| ID | Description | Steps | Expected Result | Priority |
|----|-------------|-------|-----------------|----------|
{{TEST_CASES}}

## 5. Acceptance Criteria Validation
{{AC_VALIDATION}}

## 6. Risks & Mitigations
| Risk | Impact | Mitigation |
|------|--------|------------|
{{RISKS}}
"""


class TemplateStoreError(Exception):
    """Raised for template operations that are not allowed"""
    pass


class TemplateStore:
    """
    Manages test plan templates.

    Each template is a JSON file named after its id; the source PDF, when
    there is one, sits next to it as ``<id>.pdf``.
    """

    def __init__(self, base_dir: Path):
        """
        Initialize template store.

        Args:
            base_dir: Directory holding template files
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _safe_id(self, template_id: str) -> str:
        # Sanitize template_id to prevent path traversal
        safe_template_id = template_id.replace('/', '_').replace('\\', '_').replace('..', '_')
        safe_template_id = safe_template_id.replace('\x00', '_').strip('. ')
        if not safe_template_id:
            raise ValueError("Invalid template_id: empty after sanitization")
        return safe_template_id

    def _get_template_path(self, template_id: str) -> Path:
        return self.base_dir / f"{self._safe_id(template_id)}.json"

    def _get_pdf_path(self, template_id: str) -> Path:
        return self.base_dir / f"{self._safe_id(template_id)}.pdf"

    def _write(self, template: Template) -> None:
        self._get_template_path(template.template_id).write_text(
            template.model_dump_json(indent=2),
            encoding='utf-8'
        )

    def create_template(
        self,
        name: str,
        content: str,
        pdf_bytes: Optional[bytes] = None,
        pages: Optional[int] = None,
        template_id: Optional[str] = None,
        is_default: bool = False
    ) -> Template:
        """
        Create a new template.

        Args:
            name: Template name
            content: Structured template text
            pdf_bytes: Optional source PDF to keep alongside
            pages: Optional page count of the source PDF
            template_id: Optional explicit id (generated when omitted)
            is_default: Whether this is the built-in default template

        Returns:
            The stored template
        """
        template = Template(
            template_id=template_id or str(uuid.uuid4()),
            name=name,
            content=content,
            is_default=is_default,
            pages=pages,
            created_at=datetime.now(timezone.utc)
        )
        self._write(template)

        if pdf_bytes is not None:
            self._get_pdf_path(template.template_id).write_bytes(pdf_bytes)

        logger.info(f"Created template {template.template_id} ({name})")
        return template

    def get_template(self, template_id: str) -> Optional[Template]:
        template_path = self._get_template_path(template_id)

        if not template_path.exists():
            return None

        try:
            return Template.model_validate_json(template_path.read_text(encoding='utf-8'))
        except ValueError as e:
            logger.error(f"Failed to load template {template_id}: {e}")
            return None

    def list_templates(self) -> List[Template]:
        """List all templates, newest first"""
        templates = []
        for template_file in self.base_dir.glob("*.json"):
            try:
                templates.append(Template.model_validate_json(template_file.read_text(encoding='utf-8')))
            except ValueError as e:
                logger.warning(f"Failed to load template from {template_file}: {e}")
                continue

        templates.sort(key=lambda t: t.created_at, reverse=True)
        return templates

    def delete_template(self, template_id: str) -> bool:
        """
        Delete a template and its source PDF.

        Returns:
            True if deleted, False if no such template

        Raises:
            TemplateStoreError: If the template is the default one
        """
        template = self.get_template(template_id)
        if template is None:
            return False
        if template.is_default:
            raise TemplateStoreError("Cannot delete default template")

        pdf_path = self._get_pdf_path(template_id)
        if pdf_path.exists():
            pdf_path.unlink()
        self._get_template_path(template_id).unlink()

        logger.info(f"Deleted template {template_id}")
        return True

    def ensure_default_template(self) -> Template:
        """Seed the built-in template on first use"""
        existing = self.get_template(DEFAULT_TEMPLATE_ID)
        if existing is not None:
            return existing

        logger.info("Default template created")
        return self.create_template(
            name=DEFAULT_TEMPLATE_NAME,
            content=DEFAULT_TEMPLATE_CONTENT,
            template_id=DEFAULT_TEMPLATE_ID,
            is_default=True
        )
