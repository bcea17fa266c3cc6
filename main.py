#!/usr/bin/env python3
"""
qaplan - QA Test Plan Generator

Fetches Jira tickets, combines them with a PDF-derived template and asks an
LLM (Groq or a local Ollama server) to write a test plan, which can be
exported as a Word document.
"""

import click
import functools
import logging
import sys
from pathlib import Path
from typing import Dict

from qaplan.config import Config
from qaplan.docx_export import markdown_to_docx
from qaplan.history_store import HistoryStore
from qaplan.jira_client import JiraClient, JiraClientError
from qaplan.llm_providers import LLMProviderError, OllamaProvider, PlanProvider, ProviderName, create_provider
from qaplan.pdf_parser import PDFParseError
from qaplan.plan_generator import PlanGenerationError, PlanGenerator
from qaplan.template_store import TemplateStore, TemplateStoreError, DEFAULT_TEMPLATE_ID
from qaplan.ticket_normalizer import MalformedTicket

# Errors a command reports to the user instead of a traceback
USER_ERRORS = (
    JiraClientError, LLMProviderError, PDFParseError, PlanGenerationError,
    TemplateStoreError, MalformedTicket
)


def setup_logging(verbose: bool = False):
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(formatter)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.addHandler(console_handler)

    # Reduce noise from external libraries
    for noisy in ('requests', 'urllib3', 'httpx', 'openai'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_providers(config: Config) -> Dict[str, PlanProvider]:
    """Create every LLM provider that has enough configuration to run"""
    logger = logging.getLogger(__name__)
    llm_config = config.get_llm_config()
    providers = {}

    for name in ProviderName:
        try:
            providers[name.value] = create_provider(name, llm_config)
        except (LLMProviderError, ValueError) as e:
            logger.info(f"ℹ️  {name.value} provider not available: {e}")

    return providers


def create_generator(config: Config) -> PlanGenerator:
    """Build the plan generator and its collaborators from configuration"""
    jira_client = JiraClient(
        server_url=config.jira['server_url'],
        username=config.jira['username'],
        api_token=config.jira['api_token'],
        acceptance_criteria_field=config.acceptance_criteria_field
    )

    template_store = TemplateStore(config.templates_dir)
    template_store.ensure_default_template()

    return PlanGenerator(
        jira_client=jira_client,
        template_store=template_store,
        history_store=HistoryStore(config.history_dir),
        providers=create_providers(config),
        default_provider=config.get_default_provider()
    )


def test_connections(generator: PlanGenerator) -> bool:
    """Test Jira and every configured LLM provider"""
    logger = logging.getLogger(__name__)

    logger.info("Testing API connections...")

    status = generator.jira_client.test_connection()
    if not status.success:
        logger.error(f"❌ Jira connection failed: {status.message}")
        return False
    logger.info(f"✅ Jira: {status.message}")

    default_ok = False
    for name, provider in generator.providers.items():
        status = provider.test_connection()
        if status.success:
            logger.info(f"✅ {name}: {status.message}")
            default_ok = default_ok or name == generator.default_provider
        else:
            logger.warning(f"⚠️  {name}: {status.message}")

    if not default_ok:
        logger.error(f"❌ Default LLM provider '{generator.default_provider}' is not working")
    return default_ok


class AppContext:
    """Holds CLI options; the generator is built on first use"""

    def __init__(self, config_path: str):
        self.config_path = config_path
        self._generator = None

    @property
    def generator(self) -> PlanGenerator:
        if self._generator is None:
            try:
                config = Config(self.config_path)
                if not config.validate():
                    sys.exit(1)
            except (FileNotFoundError, ValueError) as e:
                click.echo(f"Configuration error: {e}", err=True)
                sys.exit(1)
            self._generator = create_generator(config)
        return self._generator


def pass_generator(f):
    """Pass the configured PlanGenerator as the first argument"""
    @click.pass_obj
    @functools.wraps(f)
    def wrapper(app, *args, **kwargs):
        return f(app.generator, *args, **kwargs)
    return wrapper


@click.group()
@click.option('--config', '-c', default='config.yaml', help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """qaplan - QA Test Plan Generator"""
    setup_logging(verbose)
    ctx.obj = AppContext(config)


@cli.command()
@pass_generator
def test(generator):
    """Test API connections"""
    if test_connections(generator):
        click.echo("✅ All configured services are working!")
    else:
        click.echo("❌ Some services failed - check configuration")
        sys.exit(1)


@cli.command()
@pass_generator
def models(generator):
    """List models installed on the Ollama server"""
    provider = generator.providers.get(ProviderName.OLLAMA.value)
    if not isinstance(provider, OllamaProvider):
        click.echo("❌ Ollama provider is not configured", err=True)
        sys.exit(1)

    names = provider.list_models()
    if not names:
        click.echo(f"No models found at {provider.base_url}")
        return
    for name in names:
        marker = ' (configured)' if name == provider.model else ''
        click.echo(f"{name}{marker}")


@cli.command()
@click.argument('ticket_key')
@pass_generator
def fetch(generator, ticket_key):
    """Fetch and show a normalized ticket"""
    try:
        ticket = generator.fetch_ticket(ticket_key)
    except USER_ERRORS as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"{ticket.key}: {ticket.summary}")
    click.echo(f"Priority: {ticket.priority}  Status: {ticket.status}  Assignee: {ticket.assignee or '-'}")
    if ticket.labels:
        click.echo(f"Labels: {', '.join(ticket.labels)}")
    click.echo(f"\n{ticket.description}")
    click.echo(f"\nAcceptance Criteria:\n{ticket.acceptance_criteria or 'Not specified'}")


@cli.group()
def templates():
    """Manage test plan templates"""
    pass


@templates.command('list')
@pass_generator
def list_templates(generator):
    """List stored templates"""
    for template in generator.template_store.list_templates():
        marker = ' (default)' if template.is_default else ''
        click.echo(f"{template.template_id}  {template.name}{marker}  {template.created_at:%Y-%m-%d %H:%M}")


@templates.command('show')
@click.argument('template_id')
@pass_generator
def show_template(generator, template_id):
    """Print a template's structured content"""
    template = generator.template_store.get_template(template_id)
    if template is None:
        click.echo("❌ Template not found", err=True)
        sys.exit(1)
    click.echo(template.content)


@templates.command('upload')
@click.argument('pdf_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--name', help='Template name (defaults to the file name)')
@pass_generator
def upload_template(generator, pdf_path, name):
    """Import a PDF as a new template"""
    try:
        template = generator.import_template(name or pdf_path.name, pdf_path.read_bytes())
    except USER_ERRORS as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Created template {template.template_id} ({template.name}, {template.pages} pages)")
    click.echo(template.content[:500] + '...')


@templates.command('delete')
@click.argument('template_id')
@pass_generator
def delete_template(generator, template_id):
    """Delete a template"""
    try:
        deleted = generator.template_store.delete_template(template_id)
    except TemplateStoreError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if not deleted:
        click.echo("❌ Template not found", err=True)
        sys.exit(1)
    click.echo("Template deleted")


@cli.command()
@click.argument('ticket_key')
@click.option('--template', '-t', 'template_id', default=DEFAULT_TEMPLATE_ID, help='Template id')
@click.option('--provider', '-p', type=click.Choice([p.value for p in ProviderName]), help='LLM provider override')
@click.option('--stream', is_flag=True, help='Print the plan as it is generated')
@click.option('--output', '-o', type=click.Path(path_type=Path), help='Also export the plan as .docx')
@pass_generator
def generate(generator, ticket_key, template_id, provider, stream, output):
    """Generate a test plan for a ticket"""
    logger = logging.getLogger(__name__)

    try:
        if stream:
            chunks = []
            for chunk in generator.stream(ticket_key, template_id, provider):
                chunks.append(chunk)
                click.echo(chunk, nl=False)
            click.echo()
            content = ''.join(chunks)
        else:
            plan = generator.generate(ticket_key, template_id, provider)
            content = plan.generated_content
            click.echo(content)
    except USER_ERRORS as e:
        logger.error(f"❌ Failed to generate test plan for {ticket_key}: {e}")
        sys.exit(1)

    if output:
        path = generator.export_docx(content, output)
        click.echo(f"✅ Saved {path}")


@cli.command()
@click.option('--limit', default=20, help='Number of entries to show')
@click.option('--recent', is_flag=True, help='Show recently fetched tickets instead')
@click.option('--show', 'plan_id', type=int, help='Print the content of one generated plan')
@pass_generator
def history(generator, limit, recent, plan_id):
    """Show generated plans or recently fetched tickets"""
    if plan_id is not None:
        record = generator.history_store.get_plan(plan_id)
        if record is None:
            click.echo("❌ Plan not found", err=True)
            sys.exit(1)
        click.echo(record.generated_content)
        return

    if recent:
        for ticket in generator.history_store.list_recent_tickets(limit=limit):
            click.echo(f"{ticket.ticket_id}  {ticket.summary}  {ticket.fetched_at:%Y-%m-%d %H:%M}")
        return

    for record in generator.history_store.list_plans(limit=limit):
        click.echo(
            f"#{record.id}  {record.ticket_id}  {record.template_name or record.template_id}  "
            f"{record.provider_used}  {record.created_at:%Y-%m-%d %H:%M}"
        )


@cli.command()
@click.argument('markdown_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output', type=click.Path(path_type=Path))
def export(markdown_path, output):
    """Convert a markdown test plan to .docx"""
    path = markdown_to_docx(markdown_path.read_text(encoding='utf-8'), output)
    click.echo(f"✅ Saved {path}")


if __name__ == '__main__':
    cli()
