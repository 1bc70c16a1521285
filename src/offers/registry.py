"""Catalog of offer definitions, keyed by type.

Built once at import time and read-only afterwards.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from offers.definitions import BUILTIN_OFFERS
from offers.errors import ConfigurationError, ValidationError
from offers.types import OfferDefinition


class OfferRegistry:
    """Read-only lookup over a fixed set of offer definitions."""

    def __init__(self, definitions: Iterable[OfferDefinition]):
        offers: dict[str, OfferDefinition] = {}
        for definition in definitions:
            if definition.type in offers:
                raise ValueError(f"Duplicate offer type: {definition.type}")
            offers[definition.type] = definition
        self._offers: Mapping[str, OfferDefinition] = MappingProxyType(offers)

    def __contains__(self, offer_type: str) -> bool:
        return offer_type in self._offers

    def __len__(self) -> int:
        return len(self._offers)

    def types(self) -> list[str]:
        return list(self._offers)

    def get(self, offer_type: str) -> OfferDefinition:
        try:
            return self._offers[offer_type]
        except KeyError:
            raise ConfigurationError(f"Unknown offer type: {offer_type}") from None

    def all(self) -> list[OfferDefinition]:
        return list(self._offers.values())

    def for_intent(self, intent: str) -> list[OfferDefinition]:
        return [d for d in self._offers.values() if d.supports(intent)]

    def select(
        self,
        configured: list[str],
        intent: str,
        requested: Optional[str] = None,
    ) -> list[OfferDefinition]:
        """Resolve which offers to generate for a request.

        Raises:
            ValidationError: requested offer not configured, ambiguous choice,
                or nothing configured supports the intent
            ConfigurationError: the tenant has no offers configured
        """
        configured = [t for t in configured if t]
        if not configured:
            raise ConfigurationError("No offers configured")

        if requested:
            if requested not in configured:
                raise ValidationError(
                    f"Offer '{requested}' is not configured. Available: {', '.join(configured)}",
                    available_offers=configured,
                )
            chosen = [requested]
        elif len(configured) == 1:
            chosen = configured
        else:
            raise ValidationError(
                f"Multiple offers configured; specify one of: {', '.join(configured)}",
                available_offers=configured,
            )

        definitions = [self.get(t) for t in chosen]
        supported = [d for d in definitions if d.supports(intent)]
        if not supported:
            raise ValidationError(
                f"No configured offers support intent '{intent}'",
                available_offers=configured,
            )
        return supported


registry = OfferRegistry(BUILTIN_OFFERS)
