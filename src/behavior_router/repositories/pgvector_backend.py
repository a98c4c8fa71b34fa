"""PostgreSQL + pgvector implementation of SimilaritySearchBackend.

Stores trigger embeddings in ``behavior_triggers_embeddings`` with an
HNSW ``vector_cosine_ops`` index and conversation embeddings in
``embeddings``. Similarity is reported as ``1 - (embedding <=> query)``.
"""

import json
import logging
import time
import uuid
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from behavior_router.config import settings
from behavior_router.entities import SearchResult, StoredEmbeddingRecord
from behavior_router.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Metadata keys that may be used as exact-match filters on conversation embeddings
FILTERABLE_KEYS = ("user_id", "session_id", "vector_type", "behavior_context")


class PgVectorBackend:
    """pgvector backend using SQLAlchemy Core.

    This class satisfies the SimilaritySearchBackend protocol through
    structural typing - no explicit inheritance needed.

    The engine is created lazily; nothing touches the database until
    ``initialize()`` is called.
    """

    def __init__(
        self,
        database_url: str | None = None,
        dimension: int | None = None,
        engine: Engine | None = None,
    ) -> None:
        """Initialize the pgvector backend.

        Args:
            database_url: SQLAlchemy URL. Defaults to settings.database_url.
            dimension: Vector column size. Defaults to settings.embedding_dimension.
            engine: Pre-built engine (mainly for tests).
        """
        self._database_url = database_url or settings.database_url
        self._dimension = dimension or settings.embedding_dimension
        self._engine = engine

    @classmethod
    def create(cls, dimension: int | None = None) -> "PgVectorBackend":
        """Factory method to create PgVectorBackend with defaults."""
        return cls(dimension=dimension)

    @property
    def mode(self) -> str:
        return "postgresql"

    @property
    def engine(self) -> Engine:
        """Lazy-create the SQLAlchemy engine."""
        if self._engine is None:
            self._engine = create_engine(self._database_url, pool_pre_ping=True)
        return self._engine

    def initialize(self) -> None:
        """Enable pgvector and create tables and the HNSW index.

        Raises:
            StoreUnavailableError: If the extension or schema cannot be created
        """
        dim = int(self._dimension)
        statements = [
            "CREATE EXTENSION IF NOT EXISTS vector",
            f"""
            CREATE TABLE IF NOT EXISTS embeddings (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                embedding vector({dim}),
                metadata JSONB,
                created_at TIMESTAMP DEFAULT NOW()
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS behavior_triggers_embeddings (
                id SERIAL PRIMARY KEY,
                behavior_id TEXT NOT NULL,
                trigger_text TEXT NOT NULL,
                vector_type TEXT,
                embedding vector({dim}),
                metadata JSONB,
                created_at TIMESTAMP DEFAULT NOW()
            )
            """,
            "ALTER TABLE behavior_triggers_embeddings ADD COLUMN IF NOT EXISTS vector_type TEXT",
            """
            CREATE INDEX IF NOT EXISTS behavior_triggers_embedding_idx
            ON behavior_triggers_embeddings
            USING hnsw (embedding vector_cosine_ops)
            """,
            """
            CREATE INDEX IF NOT EXISTS embeddings_embedding_idx
            ON embeddings
            USING hnsw (embedding vector_cosine_ops)
            """,
        ]

        try:
            with self.engine.begin() as conn:
                for statement in statements:
                    conn.execute(text(statement))
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"pgvector initialization failed: {e}") from e

        logger.info("Vector store initialized with pgvector (dimension=%d)", dim)

    def add_triggers(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Insert trigger rows in a single transaction."""
        if not records:
            return []

        stmt = text(
            """
            INSERT INTO behavior_triggers_embeddings
                (behavior_id, trigger_text, vector_type, embedding, metadata)
            VALUES (:behavior_id, :trigger_text, :vector_type, :embedding, CAST(:metadata AS JSONB))
            RETURNING id::TEXT
            """
        ).bindparams(bindparam("embedding", type_=Vector(self._dimension)))

        ids = []
        with self.engine.begin() as conn:
            for record in records:
                row = conn.execute(
                    stmt,
                    {
                        "behavior_id": record.metadata.get("behavior_id", ""),
                        "trigger_text": record.content,
                        "vector_type": record.metadata.get("vector_type"),
                        "embedding": record.embedding,
                        "metadata": json.dumps(record.metadata),
                    },
                ).scalar_one()
                ids.append(row)
        return ids

    def add_embeddings(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Insert conversation embedding rows in a single transaction."""
        if not records:
            return []

        stmt = text(
            """
            INSERT INTO embeddings (id, content, embedding, metadata, created_at)
            VALUES (:id, :content, :embedding, CAST(:metadata AS JSONB), to_timestamp(:created_at))
            """
        ).bindparams(bindparam("embedding", type_=Vector(self._dimension)))

        rows = [
            {
                "id": record.id or uuid.uuid4().hex,
                "content": record.content,
                "embedding": record.embedding,
                "metadata": json.dumps(record.metadata),
                "created_at": record.created_at or time.time(),
            }
            for record in records
        ]
        with self.engine.begin() as conn:
            conn.execute(stmt, rows)
        return [row["id"] for row in rows]

    def search_triggers(
        self,
        vector: list[float],
        top_k: int,
        vector_type: str | None = None,
    ) -> list[SearchResult]:
        params: dict[str, Any] = {"qvec": vector, "k": top_k}
        where = ""
        if vector_type is not None:
            # Untyped triggers answer every vector type
            where = "WHERE vector_type IS NULL OR vector_type = :vector_type"
            params["vector_type"] = vector_type

        stmt = text(
            f"""
            SELECT
                id::TEXT AS id,
                trigger_text AS content,
                (1 - (embedding <=> :qvec))::float8 AS similarity,
                metadata
            FROM behavior_triggers_embeddings
            {where}
            ORDER BY embedding <=> :qvec
            LIMIT :k
            """
        ).bindparams(bindparam("qvec", type_=Vector(self._dimension)))

        with self.engine.connect() as conn:
            rows = conn.execute(stmt, params).mappings().all()
        return [_to_result(row) for row in rows]

    def search_embeddings(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any] | None = None,
        since: float | None = None,
    ) -> list[SearchResult]:
        clauses = []
        params: dict[str, Any] = {"qvec": vector, "k": top_k}

        for key, value in (filters or {}).items():
            if key not in FILTERABLE_KEYS:
                raise ValueError(f"Unsupported filter key: {key}")
            clauses.append(f"metadata->>'{key}' = :f_{key}")
            params[f"f_{key}"] = str(value)

        if since is not None:
            clauses.append("created_at >= to_timestamp(:since)")
            params["since"] = since

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        stmt = text(
            f"""
            SELECT
                id,
                content,
                (1 - (embedding <=> :qvec))::float8 AS similarity,
                metadata
            FROM embeddings
            {where}
            ORDER BY embedding <=> :qvec
            LIMIT :k
            """
        ).bindparams(bindparam("qvec", type_=Vector(self._dimension)))

        with self.engine.connect() as conn:
            rows = conn.execute(stmt, params).mappings().all()
        return [_to_result(row) for row in rows]

    def clear(self) -> int:
        with self.engine.begin() as conn:
            triggers = conn.execute(text("DELETE FROM behavior_triggers_embeddings")).rowcount
            embeddings = conn.execute(text("DELETE FROM embeddings")).rowcount
        return triggers + embeddings

    def counts(self) -> dict[str, int]:
        with self.engine.connect() as conn:
            triggers = conn.execute(text("SELECT COUNT(*) FROM behavior_triggers_embeddings")).scalar_one()
            embeddings = conn.execute(text("SELECT COUNT(*) FROM embeddings")).scalar_one()
        return {"triggers": int(triggers), "embeddings": int(embeddings)}


def _to_result(row) -> SearchResult:
    metadata = row["metadata"]
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError:
            metadata = {"raw": metadata}

    return SearchResult(
        id=str(row["id"]),
        content=row["content"],
        similarity=float(row["similarity"]),
        metadata=metadata or {},
    )
