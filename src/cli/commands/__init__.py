"""CLI command modules."""

from .knowledge import knowledge, stories
from .offers import generate, offers
from .server import serve
from .tenants import tenants

__all__ = [
    "generate",
    "knowledge",
    "offers",
    "serve",
    "stories",
    "tenants",
]
