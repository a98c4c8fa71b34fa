"""Redis implementation of SimilaritySearchBackend.

This backend uses Redis Stack with vector search capabilities (HNSW index).
Triggers and conversation embeddings live in two separate indexes that
share a key prefix derived from TRIGGER_INDEX_NAME.
"""

import json
import logging
import struct
import time
import uuid
from typing import Any

import redis
from redisvl.index import SearchIndex
from redisvl.query import VectorQuery
from redisvl.query.filter import FilterExpression, Num, Tag

from behavior_router.config import get_redis_client, settings
from behavior_router.entities import SearchResult, StoredEmbeddingRecord
from behavior_router.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

TAG_FIELDS = ("behavior_id", "user_id", "session_id", "vector_type", "behavior_context")
RETURN_FIELDS = ["content", "metadata", "created_at"]

# Tag value stored on triggers without a vector type; matches every search
ANY_VECTOR_TYPE = "any"


class RedisVectorBackend:
    """Redis implementation using HNSW vector indexes.

    This class satisfies the SimilaritySearchBackend protocol through
    structural typing - no explicit inheritance needed.

    Uses Redis Stack's vector search with:
    - HNSW (Hierarchical Navigable Small World) algorithm
    - COSINE distance metric
    - MULTI/EXEC pipelines so a batch insert is all-or-nothing
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        index_name: str | None = None,
        dimension: int | None = None,
    ) -> None:
        """Initialize the Redis vector backend.

        Args:
            redis_client: Redis client instance. If None, creates default.
            index_name: Base name of the Redis search indexes.
            dimension: Vector size. Defaults to settings.embedding_dimension.
        """
        self._client = redis_client or get_redis_client()
        self._index_name = index_name or settings.trigger_index_name
        self._dimension = dimension or settings.embedding_dimension
        self._trigger_index: SearchIndex | None = None
        self._embedding_index: SearchIndex | None = None

    @classmethod
    def create(cls, index_name: str | None = None, dimension: int | None = None) -> "RedisVectorBackend":
        """Factory method to create RedisVectorBackend with defaults."""
        return cls(index_name=index_name, dimension=dimension)

    @property
    def mode(self) -> str:
        return "redis"

    @property
    def trigger_prefix(self) -> str:
        return f"{self._index_name}:trigger"

    @property
    def embedding_prefix(self) -> str:
        return f"{self._index_name}:embedding"

    def initialize(self) -> None:
        """Ensure both Redis vector indexes exist.

        Raises:
            StoreUnavailableError: If Redis is unreachable or lacks search support
        """
        try:
            self._client.ping()
            self._trigger_index = self._ensure_index(f"{self._index_name}_triggers", self.trigger_prefix)
            self._embedding_index = self._ensure_index(f"{self._index_name}_embeddings", self.embedding_prefix)
        except Exception as e:
            raise StoreUnavailableError(f"Redis vector index initialization failed: {e}") from e

        logger.info("Vector store initialized with Redis indexes under %s", self._index_name)

    def _ensure_index(self, name: str, prefix: str) -> SearchIndex:
        index_schema = {
            "index": {
                "name": name,
                "prefix": f"{prefix}:",
                "storage_type": "hash",
            },
            "fields": [
                {"name": "content", "type": "text"},
                *({"name": field, "type": "tag"} for field in TAG_FIELDS),
                {
                    "name": "embedding",
                    "type": "vector",
                    "attrs": {
                        "dims": self._dimension,
                        "algorithm": "HNSW",
                        "metric": "COSINE",
                        "datatype": "float32",
                    },
                },
                {"name": "created_at", "type": "numeric"},
                {"name": "metadata", "type": "text"},
            ],
        }

        index = SearchIndex.from_dict(index_schema, redis_client=self._client)
        if index.exists():
            logger.debug("Using existing index: %s", name)
        else:
            index.create(overwrite=False)
            logger.info("Created new index: %s", name)
        return index

    def add_triggers(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        return self._store(self.trigger_prefix, records, default_tags={"vector_type": ANY_VECTOR_TYPE})

    def add_embeddings(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        return self._store(self.embedding_prefix, records)

    def _store(
        self,
        prefix: str,
        records: list[StoredEmbeddingRecord],
        default_tags: dict[str, str] | None = None,
    ) -> list[str]:
        if not records:
            return []

        keys = []
        pipe = self._client.pipeline(transaction=True)
        for record in records:
            key = f"{prefix}:{record.id or uuid.uuid4().hex}"
            # Convert vector to float32 bytes for Redis
            vector_bytes = struct.pack(f"{len(record.embedding)}f", *record.embedding)
            mapping = {
                "content": record.content,
                "embedding": vector_bytes,
                "created_at": str(record.created_at or time.time()),
                "metadata": json.dumps(record.metadata or {}),
            }
            for field in TAG_FIELDS:
                value = record.metadata.get(field, (default_tags or {}).get(field))
                if value is not None:
                    mapping[field] = str(value)
            pipe.hset(key, mapping=mapping)
            keys.append(key)
        pipe.execute()

        return keys

    def search_triggers(
        self,
        vector: list[float],
        top_k: int,
        vector_type: str | None = None,
    ) -> list[SearchResult]:
        expression = None
        if vector_type is not None:
            expression = Tag("vector_type") == [vector_type, ANY_VECTOR_TYPE]
        return self._search(self._trigger_index, vector, top_k, expression)

    def search_embeddings(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any] | None = None,
        since: float | None = None,
    ) -> list[SearchResult]:
        expression: FilterExpression | None = None
        for key, value in (filters or {}).items():
            if key not in TAG_FIELDS:
                raise ValueError(f"Unsupported filter key: {key}")
            clause = Tag(key) == str(value)
            expression = clause if expression is None else expression & clause

        if since is not None:
            clause = Num("created_at") >= since
            expression = clause if expression is None else expression & clause

        return self._search(self._embedding_index, vector, top_k, expression)

    def _search(
        self,
        index: SearchIndex | None,
        vector: list[float],
        top_k: int,
        expression: FilterExpression | None,
    ) -> list[SearchResult]:
        if index is None:
            return []

        query = VectorQuery(
            vector=vector,
            vector_field_name="embedding",
            return_fields=RETURN_FIELDS,
            num_results=top_k,
            filter_expression=expression,
        )

        results = []
        for result in index.query(query):
            # COSINE distance: 0 = identical, 2 = opposite
            distance = float(result.get("vector_distance", 1.0))
            metadata: dict[str, Any] = {}
            if "metadata" in result:
                try:
                    metadata = json.loads(_decode(result["metadata"]))
                except json.JSONDecodeError:
                    metadata = {"raw": _decode(result["metadata"])}

            results.append(
                SearchResult(
                    id=_decode(result["id"]),
                    content=_decode(result.get("content", "")),
                    similarity=1.0 - distance,
                    metadata=metadata,
                )
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:top_k]

    def clear(self) -> int:
        count = 0
        for prefix in (self.trigger_prefix, self.embedding_prefix):
            for key in self._client.scan_iter(match=f"{prefix}:*"):
                count += self._client.delete(key)
        return count

    def counts(self) -> dict[str, int]:
        return {
            "triggers": sum(1 for _ in self._client.scan_iter(match=f"{self.trigger_prefix}:*")),
            "embeddings": sum(1 for _ in self._client.scan_iter(match=f"{self.embedding_prefix}:*")),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode()
    return value
