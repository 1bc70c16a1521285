"""Offer catalog and generation CLI commands."""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, load_document, parse_pairs
from offers.errors import PipelineError
from offers.registry import registry
from offers.service import GenerationRequest
from shared_types import Intent, ProgressEventType

console = Console()

INTENTS = [i.value for i in Intent]


@click.command("offers")
@click.option("-i", "--intent", type=click.Choice(INTENTS), help="Only offers supporting this intent")
def offers(intent: Optional[str]):
    """List available offer types."""
    definitions = registry.for_intent(intent) if intent else registry.all()

    table = Table(show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Label")
    table.add_column("Intents", style="green")
    table.add_column("Required", style="dim")
    table.add_column("Model")
    table.add_column("Fallback")

    for d in definitions:
        table.add_row(
            d.type,
            d.label,
            ", ".join(d.supported_intents),
            ", ".join(d.input_requirements.required) or "-",
            d.generation.model if d.uses_llm else "template",
            "yes" if d.fallback.has_template else "no",
        )
    console.print(table)


@click.command("generate")
@click.argument("client")
@click.option("-i", "--intent", required=True, type=click.Choice(INTENTS), help="User intent / flow")
@click.option("-o", "--offer", help="Offer type (required when the client has several)")
@click.option("-s", "--set", "pairs", multiple=True, help="User input field as key=value (repeatable)")
@click.option("-f", "--input-file", type=click.Path(exists=True), help="JSON or YAML file with user input")
@click.option("--stream", is_flag=True, help="Print progress events as they happen")
def generate(client: str, intent: str, offer: Optional[str], pairs: tuple, input_file: Optional[str], stream: bool):
    """Generate offers for CLIENT (tenant id or slug) and print the JSON."""
    user_input = dict(load_document(input_file) or {}) if input_file else {}
    user_input.update(parse_pairs(pairs))

    c = get_components()
    request = GenerationRequest(
        intent=intent,
        user_input=user_input,
        client_identifier=client,
        offer=offer,
        identity="cli",
    )

    if stream:
        result = None
        for event in c["service"].stream(request):
            if event.event == ProgressEventType.PROGRESS:
                console.print(f"[dim]{event.percent:5.1f}%[/] {event.message}")
            elif event.event == ProgressEventType.ERROR:
                console.print(f"[red]Error:[/] {event.message}")
                raise SystemExit(1)
            else:
                result = event.data
        console.print_json(json.dumps(result, default=str))
        return

    try:
        with console.status("Generating..."):
            result = c["service"].run(request)
    except PipelineError as e:
        console.print(f"[red]{type(e).__name__}:[/] {e.message}")
        for detail in getattr(e, "errors", []):
            console.print(f"  [dim]- {detail}[/]")
        raise SystemExit(1)
    console.print_json(json.dumps(result, default=str))
