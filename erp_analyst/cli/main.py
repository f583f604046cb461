"""ERP Analyst CLI.

Operator entry point for inspecting the skill catalogue, configuring
tenant integrations, running skills and checking answers.

Usage:
    erp-analyst catalog                              List every skill
    erp-analyst integrations set --tenant acme ...   Store integration credentials
    erp-analyst tools --tenant acme                  Skills available to a tenant
    erp-analyst run get_sales_total --tenant acme    Run one skill
    erp-analyst validate --result r.json --prose ..  Check an answer against data
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from sqlalchemy.orm import Session, sessionmaker

from erp_analyst.cli.output import format_catalog, format_integrations, format_validation
from erp_analyst.config import AppConfig, configure_logging, load_config
from erp_analyst.db.connection import SessionLocal, create_db_engine, init_db
from erp_analyst.documents.client import DocumentSearchClientFactory
from erp_analyst.erp.client import OdooClientFactory
from erp_analyst.erp.session_cache import SessionCache
from erp_analyst.services.integration_types import VALID_INTEGRATIONS, IntegrationValidationError
from erp_analyst.services.tenant_integrations import TenantIntegrationStore
from erp_analyst.skills.loader import TenantSkills, load_skills_for_tenant
from erp_analyst.skills.registry import SkillRegistry, build_default_registry
from erp_analyst.validation.models import ValidationAction
from erp_analyst.validation.pre_send import PreSendValidator

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="erp-analyst",
    help="Typed ERP business questions for language-model agents",
    no_args_is_help=True,
)
integrations_app = typer.Typer(help="Manage tenant integrations")
app.add_typer(integrations_app, name="integrations")

console = Console()

# --- Global state ---
_config_path: str | None = None
_verbose: bool = False


@app.callback()
def main(
    config: Optional[str] = typer.Option(None, "--config", help="Path to erp_analyst.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """ERP Analyst CLI."""
    global _config_path, _verbose
    _config_path = config
    _verbose = verbose


def _load() -> AppConfig:
    try:
        cfg = load_config(_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    configure_logging("DEBUG" if _verbose else cfg.logging.level, stream=sys.stderr)
    return cfg


def _session(cfg: AppConfig) -> Session:
    """Open a session on the configured store, creating tables if needed."""
    if cfg.storage.database_url:
        db_engine = create_db_engine(cfg.storage.database_url)
        init_db(db_engine)
        return sessionmaker(bind=db_engine, expire_on_commit=False)()
    init_db()
    return SessionLocal()


def _registry(cfg: AppConfig) -> SkillRegistry:
    odoo_factory = OdooClientFactory(
        SessionCache(ttl_seconds=cfg.erp.session_ttl_seconds),
        timeout=cfg.erp.timeout_seconds,
        max_retries=cfg.erp.max_retries,
        retry_base_delay=cfg.erp.retry_base_delay,
    )
    document_factory = DocumentSearchClientFactory(timeout=cfg.documents.timeout_seconds)
    return build_default_registry(odoo_factory, document_factory)


def _tenant_skills(cfg: AppConfig, tenant: str, user: str) -> TenantSkills:
    db = _session(cfg)
    try:
        return load_skills_for_tenant(
            tenant, user,
            store=TenantIntegrationStore(db),
            registry=_registry(cfg),
            timezone=cfg.engine.timezone,
        )
    finally:
        db.close()


def _emit(output) -> None:
    """Print a formatter result; plain strings (JSON included) are never wrapped."""
    if isinstance(output, str):
        console.print(output, soft_wrap=True, markup=False, highlight=False)
    else:
        console.print(output)


# --- Catalogue ---


@app.command()
def catalog(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List every skill in the catalogue."""
    cfg = _load()
    _emit(format_catalog(_registry(cfg).catalog(), as_json=json_output))


@app.command()
def tools(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant identifier"),
    user: str = typer.Option("cli", "--user", help="Caller identifier"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List the skills available to a tenant."""
    cfg = _load()
    tenant_skills = _tenant_skills(cfg, tenant, user)
    _emit(format_catalog([s.metadata() for s in tenant_skills.skills], as_json=json_output))


@app.command()
def run(
    skill: str = typer.Argument(help="Skill name, e.g. get_sales_total"),
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant identifier"),
    input_json: str = typer.Option("{}", "--input", "-i", help="Skill input as a JSON object"),
    user: str = typer.Option("cli", "--user", help="Caller identifier"),
):
    """Run one skill for a tenant and print its result envelope."""
    cfg = _load()
    try:
        payload = json.loads(input_json)
    except json.JSONDecodeError as e:
        console.print(f"[red]--input is not valid JSON: {e}[/red]")
        raise typer.Exit(2)
    if not isinstance(payload, dict):
        console.print("[red]--input must be a JSON object[/red]")
        raise typer.Exit(2)

    tenant_skills = _tenant_skills(cfg, tenant, user)
    result = asyncio.run(tenant_skills.invoke(skill, payload))
    console.print_json(json.dumps(result.to_envelope(), default=str))
    if not result.success:
        raise typer.Exit(1)


@app.command()
def validate(
    result: Path = typer.Option(..., "--result", "-r", exists=True, dir_okay=False, help="JSON tool result"),
    prose: str = typer.Option(..., "--prose", "-p", help="Answer text to check"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Check an answer against the structured result it was based on."""
    cfg = _load()
    try:
        data = json.loads(result.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]{result} is not valid JSON: {e}[/red]")
        raise typer.Exit(2)

    validation = PreSendValidator.from_config(cfg.validator).validate(prose, data)
    _emit(format_validation(validation, as_json=json_output))
    if validation.action is ValidationAction.REGENERATE:
        raise typer.Exit(1)


# --- Integrations ---


@integrations_app.command("set")
def integrations_set(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant identifier"),
    integration: str = typer.Option(..., "--integration", help=f"One of: {', '.join(sorted(VALID_INTEGRATIONS))}"),
    url: str = typer.Option(..., "--url", help="Endpoint base URL"),
    database: str = typer.Option("", "--database", help="ERP database (or default scope for documents)"),
    username: str = typer.Option("", "--username", help="ERP login"),
    secret: str = typer.Option(..., "--secret", prompt=True, hide_input=True, help="API key or password"),
):
    """Store (or replace) a tenant's integration credentials, encrypted."""
    cfg = _load()
    db = _session(cfg)
    try:
        saved = TenantIntegrationStore(db).save_integration(
            tenant, integration, url=url, secret=secret, database=database, username=username,
        )
    except IntegrationValidationError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()
    verb = "Created" if saved["is_new"] else "Updated"
    console.print(f"[green]{verb}[/green] {integration} integration for tenant {tenant}")


@integrations_app.command("list")
def integrations_list(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant identifier"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List a tenant's integrations (secrets are never shown)."""
    cfg = _load()
    db = _session(cfg)
    try:
        rows = TenantIntegrationStore(db).list_integrations(tenant)
    finally:
        db.close()
    _emit(format_integrations(rows, as_json=json_output))


if __name__ == "__main__":
    app()
