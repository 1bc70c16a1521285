"""Hybrid knowledge retrieval: vector similarity merged with rule matches."""

from dataclasses import dataclass, field
from typing import Iterator, Optional

import structlog

from cli.retry import embedding_retry
from knowledge.store import VectorStore
from llm.base import LLMError, LLMProvider
from observability import metrics
from offers.errors import RetrievalError, ValidationError
from personalization.facts import KNOWN_FACT_FIELDS
from personalization.models import KnowledgeItem, TimelinePhase
from personalization.rules import Facts, RuleGroup, evaluate_applicability, validate_rule_tree
from personalization.scoring import AssignmentResult, ScoringWeights, assign_items_to_phases
from shared_types import KnowledgeKind, RetrievalSource

logger = structlog.get_logger()

ACTIVE_FILTER = {"active": True}
STORY_FILTER = {"kind": {"$in": [KnowledgeKind.STORY.value, KnowledgeKind.ADVICE.value]}}
SCROLL_PAGE = 100


def validate_item(item: KnowledgeItem) -> list[str]:
    """Rule problems for one item, checked before it is stored."""
    when = item.applicable_when
    if when is None or not when.rule_groups:
        return []
    tree = RuleGroup(rules=list(when.rule_groups))
    return [f"{item.id}: {p}" for p in validate_rule_tree(tree, KNOWN_FACT_FIELDS)]


@dataclass
class RankedItem:
    item: KnowledgeItem
    score: float
    sources: set[str] = field(default_factory=set)
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.item.id,
            "title": self.item.title,
            "kind": self.item.kind.value,
            "score": round(self.score, 4),
            "sources": sorted(self.sources),
        }


@dataclass
class RetrievalResult:
    items: list[RankedItem]
    metadata: dict

    @property
    def degraded(self) -> bool:
        return bool(self.metadata.get("degraded"))


class KnowledgeRetrievalService:
    """Merges nearest-neighbour search with rule-based applicability.

    Vector-store or embedding failures never propagate out of ``retrieve``:
    the result falls back to whatever the rule pass produced and is flagged
    as degraded in its metadata.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: Optional[LLMProvider] = None,
        top_k: int = 5,
        min_similarity: float = 0.0,
        vector_candidate_multiplier: int = 3,
        rule_candidate_limit: int = 500,
        weights: ScoringWeights = ScoringWeights(),
        per_category_limit: Optional[int] = None,
    ):
        self.store = store
        self.embedder = embedder
        self.top_k = top_k
        self.min_similarity = min_similarity
        self.vector_candidate_multiplier = vector_candidate_multiplier
        self.rule_candidate_limit = rule_candidate_limit
        self.weights = weights
        # default per-category cap when a caller passes none
        self.per_category_limit = per_category_limit

    # -- collection access --

    def iter_items(self, collection: str, where: Optional[dict] = None) -> Iterator[KnowledgeItem]:
        """Scroll every item matching ``where``, up to ``rule_candidate_limit``."""
        cursor = None
        seen = 0
        while True:
            points, cursor = self.store.scroll(collection, where=where, limit=SCROLL_PAGE, cursor=cursor)
            for point in points:
                yield KnowledgeItem.from_payload(point.id, point.payload)
                seen += 1
                if seen >= self.rule_candidate_limit:
                    logger.warning("retrieval.scroll_capped", collection=collection, limit=seen)
                    return
            if cursor is None:
                return

    def upsert_items(self, collection: str, items: list[KnowledgeItem]) -> int:
        """Embed and store items. Requires a working embedder."""
        if not items:
            return 0
        problems = [p for item in items for p in validate_item(item)]
        if problems:
            raise ValidationError("Invalid knowledge item rules", errors=problems)
        if self.embedder is None:
            raise RetrievalError("No embedding provider configured")
        vectors = [self._embed(item.document()) for item in items]
        self.store.upsert(
            collection,
            ids=[item.id for item in items],
            vectors=vectors,
            payloads=[item.to_payload() for item in items],
            documents=[item.document() for item in items],
        )
        logger.info("retrieval.items_upserted", collection=collection, count=len(items))
        return len(items)

    # -- retrieval --

    def _embed(self, text: str) -> list[float]:
        @embedding_retry()
        def _call():
            return self.embedder.embed(text)

        return _call()

    def _vector_pass(self, flow: str, facts: Facts, query: str, collection: str, limit: int) -> list[RankedItem]:
        if self.embedder is None:
            raise RetrievalError("No embedding provider configured")
        try:
            vector = self._embed(query)
        except LLMError as e:
            raise RetrievalError("Query embedding failed") from e

        hits = self.store.search(
            collection, vector, where=ACTIVE_FILTER, limit=limit * self.vector_candidate_multiplier
        )
        ranked = []
        for hit in hits:
            if hit.score < self.min_similarity:
                continue
            item = KnowledgeItem.from_payload(hit.id, hit.payload)
            if item.flows and flow not in item.flows:
                continue
            if item.applicable_when is not None:
                verdict = evaluate_applicability(item.applicable_when, flow, facts)
                if not verdict.applicable:
                    continue
            ranked.append(RankedItem(item, hit.score, {RetrievalSource.VECTOR.value}, "semantic match"))
        return ranked

    def _rule_pass(self, flow: str, facts: Facts, collection: str) -> list[RankedItem]:
        ranked = []
        for item in self.iter_items(collection, where=ACTIVE_FILTER):
            when = item.applicable_when
            if when is None or not when.rule_groups:
                continue
            verdict = evaluate_applicability(when, flow, facts)
            if verdict.applicable:
                ranked.append(RankedItem(item, verdict.score, {RetrievalSource.RULE.value}, verdict.reason))
        return ranked

    @staticmethod
    def merge(*passes: list[RankedItem]) -> list[RankedItem]:
        """Union by item id keeping the higher score; order by score then recency."""
        merged: dict[str, RankedItem] = {}
        for ranked in passes:
            for entry in ranked:
                existing = merged.get(entry.item.id)
                if existing is None:
                    merged[entry.item.id] = RankedItem(entry.item, entry.score, set(entry.sources), entry.reason)
                    continue
                existing.sources |= entry.sources
                if entry.score > existing.score:
                    existing.score = entry.score
                    existing.reason = entry.reason
        ordered = sorted(merged.values(), key=lambda r: r.item.updated_at or "", reverse=True)
        ordered.sort(key=lambda r: r.score, reverse=True)
        return ordered

    @staticmethod
    def limit_per_category(ranked: list[RankedItem], category_key: str, per_category: int) -> list[RankedItem]:
        """Keep the first ``per_category`` entries of each category, preserving order."""
        kept: list[RankedItem] = []
        counts: dict[str, int] = {}
        for entry in ranked:
            value = getattr(entry.item, category_key, None)
            if isinstance(value, list):
                value = value[0] if value else None
            category = str(value) if value is not None else ""
            if counts.get(category, 0) >= per_category:
                continue
            counts[category] = counts.get(category, 0) + 1
            kept.append(entry)
        return kept

    def retrieve(
        self,
        flow: str,
        facts: Facts,
        query: str,
        collection: str,
        limit: Optional[int] = None,
        per_category_limit: Optional[int] = None,
        category_key: str = "category",
    ) -> RetrievalResult:
        limit = limit or self.top_k
        per_category_limit = per_category_limit or self.per_category_limit
        metadata = {
            "collection": collection,
            "degraded": False,
            "counts": {"vector": 0, "rule": 0, "merged": 0, "returned": 0},
        }

        vector_items: list[RankedItem] = []
        try:
            vector_items = self._vector_pass(flow, facts, query, collection, limit)
        except RetrievalError as e:
            metadata["degraded"] = True
            metadata["degradedReason"] = str(e)
            metrics.counter("retrieval.degraded")
            logger.warning("retrieval.degraded", collection=collection, reason=str(e))

        rule_items: list[RankedItem] = []
        try:
            rule_items = self._rule_pass(flow, facts, collection)
        except RetrievalError as e:
            metadata["degraded"] = True
            metadata.setdefault("degradedReason", str(e))
            metadata["ruleError"] = str(e)
            logger.warning("retrieval.rule_pass_failed", collection=collection, error=str(e))

        merged = self.merge(vector_items, rule_items)
        if per_category_limit:
            merged = self.limit_per_category(merged, category_key, per_category_limit)
        items = merged[:limit]

        metadata["counts"] = {
            "vector": len(vector_items),
            "rule": len(rule_items),
            "merged": len(merged),
            "returned": len(items),
        }
        metadata["items"] = [r.to_dict() for r in items]
        logger.info("retrieval.completed", flow=flow, **metadata["counts"], degraded=metadata["degraded"])
        return RetrievalResult(items=items, metadata=metadata)

    # -- follow-up operations --

    @staticmethod
    def advice_texts(result: RetrievalResult) -> list[str]:
        """Render retrieved items as prompt-ready advice strings."""
        texts = []
        for entry in result.items:
            item = entry.item
            if item.kind == KnowledgeKind.STORY:
                body = " ".join(p for p in (item.situation, item.action, item.outcome, item.advice) if p)
            else:
                body = item.advice or " ".join(p for p in (item.situation, item.action, item.outcome) if p)
            if not body:
                continue
            texts.append(f"{item.title}: {body}" if item.title else body)
        return texts

    def increment_usage(self, collection: str, ids: list[str]) -> int:
        """Bump usage counters; failures are logged and skipped."""
        if not ids:
            return 0
        try:
            points = self.store.get(collection, ids)
        except RetrievalError as e:
            logger.warning("retrieval.usage_increment_failed", collection=collection, error=str(e))
            return 0

        updated = 0
        for point in points:
            count = int(point.payload.get("usage_count") or 0) + 1
            try:
                self.store.update_payload(collection, point.id, {"usage_count": count})
                updated += 1
            except RetrievalError as e:
                logger.warning("retrieval.usage_increment_failed", item_id=point.id, error=str(e))
        return updated

    def assign_stories(
        self,
        flow: str,
        phases: list[TimelinePhase],
        collection: str,
    ) -> AssignmentResult:
        """Link stories from the collection to timeline phases for one flow."""
        stories = list(self.iter_items(collection, where=STORY_FILTER))
        return assign_items_to_phases(flow, phases, stories, self.weights)
