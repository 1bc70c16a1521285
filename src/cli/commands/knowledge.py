"""Knowledge collection and story assignment CLI commands."""

from datetime import datetime, timezone
from typing import Optional

import click
from pydantic import ValidationError as ModelValidationError
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, load_document, parse_pairs
from offers.errors import PipelineError
from offers.service import build_query
from personalization.facts import build_fact_map
from personalization.models import KnowledgeItem
from personalization.timeline import default_phases
from shared_types import Intent

console = Console()

INTENTS = [i.value for i in Intent]


def _resolve(c: dict, client: str):
    try:
        tenant = c["tenants"].resolve(client)
    except PipelineError as e:
        console.print(f"[red]{e.message}[/]")
        raise SystemExit(1)
    return tenant, tenant.collection_name(c["config"].vector_store.collection_prefix)


@click.group()
def knowledge():
    """Manage a tenant's stories, tips and advice."""
    pass


@knowledge.command("import")
@click.argument("client")
@click.argument("path", type=click.Path(exists=True))
def knowledge_import(client: str, path: str):
    """Embed and store knowledge items from a JSON or YAML list."""
    c = get_components(with_llm=False)
    _, collection = _resolve(c, client)

    raw = load_document(path) or []
    if isinstance(raw, dict):
        raw = raw.get("items", [])
    now = datetime.now(timezone.utc).isoformat()
    try:
        items = [KnowledgeItem.model_validate({"updatedAt": now, **doc}) for doc in raw]
    except ModelValidationError as e:
        console.print(f"[red]Invalid item:[/] {e}")
        raise SystemExit(1)

    try:
        with console.status(f"Embedding {len(items)} items..."):
            count = c["retrieval"].upsert_items(collection, items)
    except PipelineError as e:
        console.print(f"[red]{e.message}[/]")
        for detail in getattr(e, "errors", []):
            console.print(f"  [dim]- {detail}[/]")
        raise SystemExit(1)
    console.print(f"[green]Imported[/] {count} items into {collection}")


@knowledge.command("count")
@click.argument("client")
def knowledge_count(client: str):
    """Number of items in the tenant's collection."""
    c = get_components(with_llm=False)
    _, collection = _resolve(c, client)
    console.print(f"{collection}: {c['store'].count(collection)} items")


@knowledge.command("search")
@click.argument("client")
@click.option("-i", "--intent", required=True, type=click.Choice(INTENTS))
@click.option("-s", "--set", "pairs", multiple=True, help="User fact as key=value (repeatable)")
@click.option("-q", "--query", help="Override the query text")
@click.option("-n", "--limit", default=5, help="Max results")
def knowledge_search(client: str, intent: str, pairs: tuple, query: Optional[str], limit: int):
    """Show what retrieval returns for a user situation."""
    c = get_components(with_llm=False)
    _, collection = _resolve(c, client)
    user_input = parse_pairs(pairs)
    result = c["retrieval"].retrieve(
        intent,
        build_fact_map(user_input),
        query or build_query(intent, user_input),
        collection,
        limit=limit,
    )
    if result.degraded:
        console.print(f"[yellow]Degraded:[/] {result.metadata.get('degradedReason')}")
    if not result.items:
        console.print("[yellow]No matches found.[/]")
        return

    table = Table(show_header=True)
    table.add_column("Score", style="cyan")
    table.add_column("Source")
    table.add_column("Kind", style="dim")
    table.add_column("Title")
    for r in result.items:
        table.add_row(f"{r.score:.3f}", ",".join(sorted(r.sources)), r.item.kind.value, r.item.title[:50])
    console.print(table)


@click.group()
def stories():
    """Link stories to timeline steps."""
    pass


@stories.command("assign")
@click.argument("client")
@click.option("-f", "--flow", "flows", multiple=True, type=click.Choice(INTENTS), help="Flow (repeatable; default all)")
@click.option("--dry-run", is_flag=True, help="Show assignments without saving")
def stories_assign(client: str, flows: tuple, dry_run: bool):
    """Assign at most one story per phase and save the phases."""
    c = get_components(with_llm=False)
    tenant, collection = _resolve(c, client)

    table = Table(show_header=True)
    table.add_column("Flow", style="green")
    table.add_column("Phase")
    table.add_column("Story")
    table.add_column("Score", style="cyan")

    for flow in flows or INTENTS:
        phases = tenant.phases.get(flow) or default_phases(flow)
        try:
            result = c["retrieval"].assign_stories(flow, phases, collection)
        except PipelineError as e:
            console.print(f"[red]{flow}:[/] {e.message}")
            continue
        for a in result.assignments:
            table.add_row(flow, a.phase_name, a.item_title, str(a.score))
        if not dry_run:
            tenant = c["tenants"].save_phases(tenant.id, flow, result.phases)

    console.print(table)
    if dry_run:
        console.print("[dim]Dry run; nothing saved.[/]")
