"""Shared CLI utilities."""

import json
from pathlib import Path
from typing import Any

import click
import structlog
import yaml
from rich.console import Console

console = Console()
logger = structlog.get_logger()


def get_components(with_llm: bool = True) -> dict[str, Any]:
    """Initialize all components from config.

    Args:
        with_llm: If False, skip building the completion provider
    """
    from cli.config import load_config_model
    from knowledge.store import VectorStore
    from web.deps import build_embedder, build_generation_service, build_llm, build_retrieval
    from web.tenant_store import TenantStore

    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        raise SystemExit(1)

    tenants = TenantStore(config.paths.db_path)
    store = VectorStore(config.paths.chroma_dir)
    retrieval = build_retrieval(config, store, build_embedder(config))
    llm = build_llm(config) if with_llm else None
    service = build_generation_service(config, tenants, retrieval, llm)

    return {
        "config": config,
        "tenants": tenants,
        "store": store,
        "retrieval": retrieval,
        "llm": llm,
        "service": service,
    }


def load_document(path: str | Path) -> Any:
    """Read a JSON or YAML file."""
    path = Path(path)
    text = path.read_text()
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def parse_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """``("budget=400000", "location=Austin")`` -> dict."""
    out = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected key=value, got: {pair}")
        key, value = pair.split("=", 1)
        out[key.strip()] = value.strip()
    return out
