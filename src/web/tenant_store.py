"""SQLite document store: tenant configs, generation log and usage records."""

import sqlite3
from pathlib import Path
from typing import Optional

import structlog

from db import from_json, to_json, wal_connect
from offers.errors import ConfigurationError
from offers.types import GenerationRecord, UsageRecord
from personalization.models import TenantConfig, TimelinePhase

logger = structlog.get_logger()


class TenantStore:
    """Document store over one SQLite file. Writes are upserts; last write wins."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.init_db()

    def _get_conn(self) -> sqlite3.Connection:
        return wal_connect(self.db_path, row_factory=True)

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS tenant_configs (
                    id TEXT PRIMARY KEY,
                    slug TEXT NOT NULL UNIQUE,
                    doc TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                CREATE TABLE IF NOT EXISTS generations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tenant_id TEXT NOT NULL,
                    flow TEXT NOT NULL,
                    intent TEXT NOT NULL,
                    status TEXT NOT NULL CHECK(status IN ('completed','partial','failed')),
                    conversation_id TEXT,
                    identity TEXT,
                    doc TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_gen_tenant ON generations(tenant_id, created_at DESC);
                CREATE TABLE IF NOT EXISTS usage_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tenant_id TEXT NOT NULL,
                    generation_id INTEGER,
                    offer_type TEXT NOT NULL,
                    model TEXT NOT NULL,
                    attempt INTEGER NOT NULL,
                    success INTEGER NOT NULL,
                    input_tokens INTEGER NOT NULL DEFAULT 0,
                    output_tokens INTEGER NOT NULL DEFAULT 0,
                    latency_ms INTEGER NOT NULL DEFAULT 0,
                    cost_usd REAL NOT NULL DEFAULT 0,
                    identity TEXT,
                    error TEXT,
                    created_at TIMESTAMP NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_usage_tenant ON usage_records(tenant_id, created_at DESC);
            """)
            conn.commit()
        finally:
            conn.close()

    # -- tenant configs --

    def save_tenant(self, config: TenantConfig) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tenant_configs (id, slug, doc, is_active, updated_at)
                VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(id) DO UPDATE SET
                    slug = excluded.slug,
                    doc = excluded.doc,
                    is_active = excluded.is_active,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (config.id, config.slug, config.model_dump_json(by_alias=True), int(config.is_active)),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("tenant.saved", tenant_id=config.id, slug=config.slug)

    def _load(self, column: str, value: str) -> Optional[TenantConfig]:
        conn = self._get_conn()
        try:
            row = conn.execute(f"SELECT doc FROM tenant_configs WHERE {column} = ?", (value,)).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return TenantConfig.model_validate_json(row["doc"])

    def get_tenant(self, tenant_id: str) -> Optional[TenantConfig]:
        return self._load("id", tenant_id)

    def get_by_slug(self, slug: str) -> Optional[TenantConfig]:
        return self._load("slug", slug)

    def list_tenants(self, active_only: bool = False) -> list[TenantConfig]:
        conn = self._get_conn()
        try:
            sql = "SELECT doc FROM tenant_configs"
            if active_only:
                sql += " WHERE is_active = 1"
            rows = conn.execute(sql + " ORDER BY id").fetchall()
        finally:
            conn.close()
        return [TenantConfig.model_validate_json(r["doc"]) for r in rows]

    def resolve(self, identifier: str) -> TenantConfig:
        """Look a tenant up by id, then by public slug.

        Raises:
            ConfigurationError: unknown or inactive tenant
        """
        if not identifier:
            raise ConfigurationError("Client identifier is required")
        config = self.get_tenant(identifier) or self.get_by_slug(identifier)
        if config is None:
            raise ConfigurationError(f"No configuration found for client '{identifier}'")
        if not config.is_active:
            raise ConfigurationError(f"Client '{identifier}' is not active")
        return config

    def save_phases(self, tenant_id: str, flow: str, phases: list[TimelinePhase]) -> TenantConfig:
        config = self.get_tenant(tenant_id)
        if config is None:
            raise ConfigurationError(f"No configuration found for client '{tenant_id}'")
        updated = config.model_copy(update={"phases": {**config.phases, flow: phases}})
        self.save_tenant(updated)
        return updated

    # -- generation log --

    def save_generation(self, record: GenerationRecord) -> int:
        """Append a generation record and its usage rows. Returns the record id."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO generations (tenant_id, flow, intent, status, conversation_id, identity, doc, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.tenant_id,
                    record.flow,
                    record.intent,
                    record.status,
                    record.conversation_id,
                    record.identity,
                    to_json(record.__dict__),
                    record.created_at,
                ),
            )
            generation_id = cur.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info(
            "generation.saved",
            tenant_id=record.tenant_id,
            generation_id=generation_id,
            status=record.status,
        )
        return generation_id

    def get_generation(self, generation_id: int) -> Optional[dict]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT id, doc FROM generations WHERE id = ?", (generation_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return {"id": row["id"], **from_json(row["doc"], {})}

    def list_generations(self, tenant_id: str, limit: int = 20) -> list[dict]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT id, flow, intent, status, conversation_id, created_at
                FROM generations WHERE tenant_id = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (tenant_id, limit),
            ).fetchall()
            return [dict(r) for r in rows]
        finally:
            conn.close()

    def save_usage(self, tenant_id: str, records: list[UsageRecord], generation_id: Optional[int] = None) -> int:
        if not records:
            return 0
        conn = self._get_conn()
        try:
            conn.executemany(
                """
                INSERT INTO usage_records (
                    tenant_id, generation_id, offer_type, model, attempt, success,
                    input_tokens, output_tokens, latency_ms, cost_usd, identity, error, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        tenant_id,
                        generation_id,
                        r.offer_type,
                        r.model,
                        r.attempt,
                        int(r.success),
                        r.input_tokens,
                        r.output_tokens,
                        r.latency_ms,
                        r.cost_usd,
                        r.identity,
                        r.error,
                        r.created_at,
                    )
                    for r in records
                ],
            )
            conn.commit()
        finally:
            conn.close()
        return len(records)

    def usage_summary(self, tenant_id: str) -> dict:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT COUNT(*) AS calls,
                       COALESCE(SUM(success), 0) AS successes,
                       COALESCE(SUM(input_tokens), 0) AS input_tokens,
                       COALESCE(SUM(output_tokens), 0) AS output_tokens,
                       COALESCE(SUM(cost_usd), 0) AS cost_usd
                FROM usage_records WHERE tenant_id = ?
                """,
                (tenant_id,),
            ).fetchone()
            return dict(row)
        finally:
            conn.close()
