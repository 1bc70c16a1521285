"""Vector store for tenant knowledge collections, backed by ChromaDB."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import chromadb
import structlog
from chromadb.config import Settings

from offers.errors import RetrievalError

logger = structlog.get_logger()

COLLECTION_METADATA = {"hnsw:space": "cosine"}


@dataclass
class SearchHit:
    id: str
    score: float  # cosine similarity, 1.0 = identical
    payload: dict[str, Any]


@dataclass
class Point:
    id: str
    payload: dict[str, Any]


def _clean_payload(payload: dict[str, Any]) -> dict[str, Any]:
    # ChromaDB only accepts str, int, float, bool values
    clean = {}
    for k, v in payload.items():
        if isinstance(v, list):
            clean[k] = ",".join(str(x) for x in v)
        elif isinstance(v, (str, int, float, bool)):
            clean[k] = v
        elif v is None:
            continue
        else:
            clean[k] = str(v)
    return clean


class VectorStore:
    """Collection-per-tenant vector store.

    All collaborator failures are raised as ``RetrievalError`` so callers can
    decide whether to degrade.
    """

    def __init__(self, chroma_dir: str | Path | None = None, client=None):
        if client is not None:
            self.client = client
            return
        if chroma_dir is None:
            raise ValueError("VectorStore needs a chroma_dir or a client")
        path = Path(chroma_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(
            path=str(path),
            settings=Settings(anonymized_telemetry=False),
        )

    def _collection(self, name: str):
        try:
            return self.client.get_or_create_collection(name=name, metadata=COLLECTION_METADATA)
        except Exception as e:
            raise RetrievalError(f"Vector store unavailable for collection {name}") from e

    def create_collection(self, name: str) -> None:
        self._collection(name)
        logger.info("vector_store.collection_created", collection=name)

    def delete_collection(self, name: str) -> None:
        try:
            self.client.delete_collection(name)
        except Exception as e:
            raise RetrievalError(f"Could not delete collection {name}") from e
        logger.info("vector_store.collection_deleted", collection=name)

    def upsert(
        self,
        collection: str,
        ids: list[str],
        vectors: list[list[float]],
        payloads: list[dict[str, Any]],
        documents: Optional[list[str]] = None,
    ) -> None:
        if not ids:
            return
        if not (len(ids) == len(vectors) == len(payloads)):
            raise ValueError("ids, vectors and payloads must have the same length")
        col = self._collection(collection)
        try:
            col.upsert(
                ids=ids,
                embeddings=vectors,
                metadatas=[_clean_payload(p) for p in payloads],
                documents=documents,
            )
        except Exception as e:
            raise RetrievalError(f"Upsert into {collection} failed") from e

    def update_payload(self, collection: str, point_id: str, updates: dict[str, Any]) -> None:
        col = self._collection(collection)
        try:
            col.update(ids=[point_id], metadatas=[_clean_payload(updates)])
        except Exception as e:
            raise RetrievalError(f"Payload update in {collection} failed") from e

    def delete(self, collection: str, ids: list[str]) -> None:
        col = self._collection(collection)
        try:
            col.delete(ids=ids)
        except Exception as e:
            raise RetrievalError(f"Delete from {collection} failed") from e

    def search(
        self,
        collection: str,
        vector: list[float],
        where: Optional[dict] = None,
        limit: int = 10,
    ) -> list[SearchHit]:
        """Nearest neighbours of ``vector``, most similar first."""
        col = self._collection(collection)
        try:
            results = col.query(
                query_embeddings=[vector],
                n_results=limit,
                where=where,
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise RetrievalError(f"Vector search in {collection} failed") from e

        hits = []
        if results.get("ids") and results["ids"][0]:
            metadatas = results.get("metadatas") or [[]]
            distances = results.get("distances") or [[]]
            for i, point_id in enumerate(results["ids"][0]):
                payload = metadatas[0][i] if metadatas[0] else {}
                distance = distances[0][i] if distances[0] else 1.0
                hits.append(SearchHit(id=point_id, score=1 - distance, payload=payload or {}))
        return hits

    def get(self, collection: str, ids: list[str]) -> list[Point]:
        col = self._collection(collection)
        try:
            results = col.get(ids=ids, include=["metadatas"])
        except Exception as e:
            raise RetrievalError(f"Lookup in {collection} failed") from e
        metadatas = results.get("metadatas") or []
        return [Point(id=pid, payload=metadatas[i] or {}) for i, pid in enumerate(results.get("ids") or [])]

    def scroll(
        self,
        collection: str,
        where: Optional[dict] = None,
        limit: int = 100,
        cursor: Optional[int] = None,
    ) -> tuple[list[Point], Optional[int]]:
        """Page through a collection. Returns ``(points, next_cursor)``; cursor None = done."""
        col = self._collection(collection)
        offset = cursor or 0
        try:
            results = col.get(where=where, limit=limit, offset=offset, include=["metadatas"])
        except Exception as e:
            raise RetrievalError(f"Scroll over {collection} failed") from e

        ids = results.get("ids") or []
        metadatas = results.get("metadatas") or []
        points = [Point(id=pid, payload=(metadatas[i] if i < len(metadatas) else None) or {}) for i, pid in enumerate(ids)]
        next_cursor = offset + len(points) if len(points) == limit else None
        return points, next_cursor

    def count(self, collection: str) -> int:
        col = self._collection(collection)
        try:
            return col.count()
        except Exception as e:
            raise RetrievalError(f"Count of {collection} failed") from e
