import pytest
from unittest.mock import Mock, patch

from qaplan.history_store import HistoryStore
from qaplan.jira_client import JiraClient, JiraClientError
from qaplan.llm_providers import LLMProviderError
from qaplan.models import Ticket
from qaplan.pdf_parser import ParsedPDF
from qaplan.plan_generator import PlanGenerationError, PlanGenerator
from qaplan.template_store import DEFAULT_TEMPLATE_ID, TemplateStore


class FakeStreamingProvider:
    """Provider whose stream records whether it was closed"""

    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False

    def generate_test_plan(self, ticket, template):
        return ''.join(self.chunks)

    def stream_test_plan(self, ticket, template):
        try:
            for chunk in self.chunks:
                yield chunk
        finally:
            self.closed = True

    def test_connection(self):
        return Mock(success=True, message='ok')


class TestPlanGenerator:

    @pytest.fixture
    def ticket(self):
        return Ticket(key='QA-42', summary='Login with SSO', acceptance_criteria='redirect to IdP')

    @pytest.fixture
    def jira_client(self, ticket):
        client = Mock(spec=JiraClient)
        client.fetch_ticket.return_value = ticket
        return client

    @pytest.fixture
    def groq(self):
        provider = Mock()
        provider.generate_test_plan.return_value = '# Plan for QA-42'
        return provider

    @pytest.fixture
    def ollama(self):
        return FakeStreamingProvider(['# Plan', ' streamed'])

    @pytest.fixture
    def generator(self, tmp_path, jira_client, groq, ollama):
        template_store = TemplateStore(tmp_path / 'templates')
        template_store.ensure_default_template()
        return PlanGenerator(
            jira_client=jira_client,
            template_store=template_store,
            history_store=HistoryStore(tmp_path / 'history'),
            providers={'groq': groq, 'ollama': ollama},
            default_provider='groq'
        )

    def test_fetch_ticket_sanitizes_key(self, generator, jira_client):
        """Test that keys are trimmed and uppercased before hitting Jira"""
        ticket = generator.fetch_ticket('  qa-42 ')

        jira_client.fetch_ticket.assert_called_once_with('QA-42')
        assert ticket.key == 'QA-42'
        assert generator.history_store.list_recent_tickets()[0].ticket_id == 'QA-42'

    @pytest.mark.parametrize('bad_key', ['QA42', 'QA-', '42-QA', 'Q A-1', ''])
    def test_fetch_ticket_rejects_bad_keys(self, generator, jira_client, bad_key):
        with pytest.raises(PlanGenerationError, match='Invalid JIRA ID format'):
            generator.fetch_ticket(bad_key)

        jira_client.fetch_ticket.assert_not_called()

    def test_fetch_ticket_propagates_jira_errors(self, generator, jira_client):
        jira_client.fetch_ticket.side_effect = JiraClientError('Ticket QA-42 not found', status_code=404)

        with pytest.raises(JiraClientError):
            generator.fetch_ticket('QA-42')

        assert generator.history_store.list_recent_tickets() == []

    def test_generate_with_default_provider(self, generator, groq, ticket):
        plan = generator.generate('QA-42', DEFAULT_TEMPLATE_ID)

        assert plan.generated_content == '# Plan for QA-42'
        assert plan.provider_used == 'groq'
        assert plan.template_id == DEFAULT_TEMPLATE_ID

        called_ticket, called_template = groq.generate_test_plan.call_args[0]
        assert called_ticket == ticket
        assert called_template.startswith('# Test Plan Template')

        record = generator.history_store.list_plans()[0]
        assert record.ticket_id == 'QA-42'
        assert record.provider_used == 'groq'
        assert record.generated_content == '# Plan for QA-42'

    def test_generate_with_provider_override(self, generator, groq):
        plan = generator.generate('QA-42', DEFAULT_TEMPLATE_ID, provider='Ollama')

        assert plan.provider_used == 'ollama'
        assert plan.generated_content == '# Plan streamed'
        groq.generate_test_plan.assert_not_called()

    def test_unknown_provider(self, generator):
        with pytest.raises(PlanGenerationError, match="provider 'gemini' is not configured"):
            generator.generate('QA-42', DEFAULT_TEMPLATE_ID, provider='gemini')

    def test_missing_template(self, generator):
        with pytest.raises(PlanGenerationError, match='Template not found'):
            generator.generate('QA-42', 'does-not-exist')

        assert generator.history_store.list_plans() == []

    def test_provider_failure_records_nothing(self, generator, groq):
        groq.generate_test_plan.side_effect = LLMProviderError('groq', 'Groq generation failed: 500')

        with pytest.raises(LLMProviderError):
            generator.generate('QA-42', DEFAULT_TEMPLATE_ID)

        assert generator.history_store.list_plans() == []

    def test_stream_records_history_when_finished(self, generator, ollama):
        chunks = list(generator.stream('QA-42', DEFAULT_TEMPLATE_ID, provider='ollama'))

        assert chunks == ['# Plan', ' streamed']
        assert ollama.closed is True
        record = generator.history_store.list_plans()[0]
        assert record.generated_content == '# Plan streamed'
        assert record.provider_used == 'ollama'

    def test_stream_closed_early_cancels_provider(self, generator, ollama):
        """Test that abandoning a stream closes the provider stream and records nothing"""
        stream = generator.stream('QA-42', DEFAULT_TEMPLATE_ID, provider='ollama')

        assert next(stream) == '# Plan'
        stream.close()

        assert ollama.closed is True
        assert generator.history_store.list_plans() == []

    def test_import_template(self, generator):
        pdf_bytes = b'%PDF-1.4 fake'
        parsed = ParsedPDF(text='1. Introduction\n- first bullet', num_pages=3)

        with patch('qaplan.plan_generator.parse_pdf_bytes', return_value=parsed) as parse:
            template = generator.import_template('Checkout Plan.PDF', pdf_bytes)

        parse.assert_called_once_with(pdf_bytes)
        assert template.name == 'Checkout Plan'
        assert template.pages == 3
        assert template.content == '\n## 1. Introduction\n\n- first bullet'
        assert generator.template_store.get_template(template.template_id) == template

    def test_import_template_rejects_non_pdf(self, generator):
        with patch('qaplan.plan_generator.parse_pdf_bytes') as parse:
            with pytest.raises(PlanGenerationError, match='Invalid PDF file format'):
                generator.import_template('notes.pdf', b'hello')

        parse.assert_not_called()

    def test_export_docx(self, generator, tmp_path):
        path = generator.export_docx('# Plan\n\n- item', tmp_path / 'QA-42')

        assert path == tmp_path / 'QA-42.docx'
        assert path.exists()
