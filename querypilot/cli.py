"""
querypilot CLI

Usage:
    querypilot ask "How many patients are over 60?"           # default tenant
    querypilot ask --tenant clinic_a "List diabetic patients"
    querypilot tenants                                         # list configured tenants
"""

import asyncio
import json
import sys
from typing import Optional

import click
from loguru import logger

from querypilot import __version__
from querypilot.agents.sql.correction import log_metrics_summary
from querypilot.config.settings import settings
from querypilot.infra.tenants import load_tenant_registry
from querypilot.llm import log_llm_configuration
from querypilot.models import QueryRequest
from querypilot.utils.errors import AgentError
from querypilot.utils.logger import setup_logger


@click.group()
@click.version_option(version=__version__, prog_name="querypilot")
@click.option("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...).")
def cli(log_level: Optional[str]):
    """querypilot - ask questions of tenant databases in plain language."""
    setup_logger(level=log_level)


@cli.command()
@click.argument("question")
@click.option("--tenant", "tenant_id", default=None, help="Tenant id (defaults to DEFAULT_TENANT_ID).")
@click.option("--session", "session_id", default=None, help="Session id for follow-up questions.")
@click.option("--max-attempts", type=int, default=None, help="Override SQL_MAX_ATTEMPTS.")
@click.option("--show-metrics", is_flag=True, help="Log attempt metrics after answering.")
def ask(question: str, tenant_id: Optional[str], session_id: Optional[str], max_attempts: Optional[int], show_metrics: bool):
    """Answer QUESTION and print the JSON response."""
    from querypilot.services import QueryService

    app_settings = settings
    if max_attempts is not None:
        app_settings = settings.model_copy(update={"sql_max_attempts": max_attempts})

    async def run_query():
        log_llm_configuration()
        service = QueryService.from_settings(app_settings=app_settings)
        try:
            request = QueryRequest(
                question=question,
                tenant_id=tenant_id or app_settings.default_tenant_id,
                session_id=session_id,
            )
            return await service.answer(request)
        finally:
            await service.close()

    try:
        result = asyncio.run(run_query())
    except AgentError as e:
        logger.error(str(e))
        raise click.ClickException(str(e))

    click.echo(json.dumps(result.to_response(), indent=2, default=str))
    if show_metrics:
        log_metrics_summary()
    if not result.success:
        sys.exit(1)


@cli.command()
def tenants():
    """List configured tenants."""
    try:
        registry = load_tenant_registry()
    except AgentError as e:
        raise click.ClickException(str(e))

    for tenant_id in registry.tenant_ids():
        click.echo(f"{tenant_id}\t{registry.get_config(tenant_id).describe()}")


if __name__ == "__main__":
    cli()
