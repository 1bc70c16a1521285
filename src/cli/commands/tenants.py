"""Tenant configuration CLI commands."""

from typing import Optional

import click
from pydantic import ValidationError as ModelValidationError
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, load_document
from offers.errors import ConfigurationError
from offers.registry import registry
from personalization.models import TenantConfig

console = Console()


@click.group()
def tenants():
    """Manage tenant (agent business) configurations."""
    pass


@tenants.command("add")
@click.argument("tenant_id")
@click.option("--slug", help="Public identifier (defaults to the id)")
@click.option("-n", "--business-name", default="", help="Business name shown in generated content")
@click.option("-o", "--offer", "offer_types", multiple=True, help="Enabled offer type (repeatable)")
@click.option("--collection", help="Vector collection name (defaults to prefix + id)")
def tenants_add(tenant_id: str, slug: Optional[str], business_name: str, offer_types: tuple, collection: Optional[str]):
    """Create or replace a tenant configuration."""
    unknown = [t for t in offer_types if t not in registry]
    if unknown:
        raise click.BadParameter(f"Unknown offer type(s): {', '.join(unknown)}. Known: {', '.join(registry.types())}")

    c = get_components(with_llm=False)
    config = TenantConfig(
        id=tenant_id,
        slug=slug or tenant_id,
        business_name=business_name,
        offers=list(offer_types),
        collection=collection,
    )
    c["tenants"].save_tenant(config)
    console.print(f"[green]Saved[/] tenant {tenant_id} ({len(offer_types)} offers)")


@tenants.command("import")
@click.argument("path", type=click.Path(exists=True))
def tenants_import(path: str):
    """Load a tenant configuration from a JSON or YAML document."""
    c = get_components(with_llm=False)
    try:
        config = TenantConfig.model_validate(load_document(path))
    except ModelValidationError as e:
        console.print(f"[red]Invalid tenant config:[/] {e}")
        raise SystemExit(1)
    unknown = [t for t in config.offers if t not in registry]
    if unknown:
        console.print(f"[red]Unknown offer type(s):[/] {', '.join(unknown)}")
        raise SystemExit(1)
    c["tenants"].save_tenant(config)
    console.print(f"[green]Imported[/] tenant {config.id}")


@tenants.command("list")
def tenants_list():
    """List tenants."""
    c = get_components(with_llm=False)
    rows = c["tenants"].list_tenants()
    if not rows:
        console.print("[yellow]No tenants configured.[/]")
        return

    table = Table(show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Slug")
    table.add_column("Business")
    table.add_column("Offers", style="green")
    table.add_column("Active")
    for t in rows:
        table.add_row(t.id, t.slug, t.business_name, ", ".join(t.offers), "yes" if t.is_active else "no")
    console.print(table)


@tenants.command("show")
@click.argument("client")
def tenants_show(client: str):
    """Print a tenant's configuration document."""
    c = get_components(with_llm=False)
    try:
        config = c["tenants"].resolve(client)
    except ConfigurationError as e:
        console.print(f"[red]{e.message}[/]")
        raise SystemExit(1)
    console.print_json(config.model_dump_json(by_alias=True))


@tenants.command("usage")
@click.argument("client")
@click.option("-n", "--limit", default=10, help="Recent generations to show")
def tenants_usage(client: str, limit: int):
    """Show LLM usage totals and recent generations."""
    c = get_components(with_llm=False)
    try:
        config = c["tenants"].resolve(client)
    except ConfigurationError as e:
        console.print(f"[red]{e.message}[/]")
        raise SystemExit(1)

    summary = c["tenants"].usage_summary(config.id)
    console.print(
        f"[bold]{config.id}[/]: {summary['calls']} calls, {summary['successes']} ok, "
        f"{summary['input_tokens'] + summary['output_tokens']} tokens, ${summary['cost_usd']:.4f}"
    )

    table = Table(show_header=True)
    table.add_column("When", style="dim")
    table.add_column("Flow")
    table.add_column("Status")
    for g in c["tenants"].list_generations(config.id, limit=limit):
        style = {"completed": "green", "partial": "yellow"}.get(g["status"], "red")
        table.add_row(g["created_at"][:19], g["flow"], f"[{style}]{g['status']}[/]")
    console.print(table)

