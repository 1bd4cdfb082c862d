"""Vector similarity index and embedding oracle backed by ChromaDB."""

from pathlib import Path

import structlog

from .similarity import distance_to_similarity

logger = structlog.get_logger()

# Default embedding model used by ChromaDB
DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"


class EmbeddingOracle:
    """Turns text into a fixed-dimension vector.

    Uses ChromaDB's bundled default embedding function unless one is injected.
    Errors propagate; callers decide how to degrade.
    """

    def __init__(self, embedding_function=None):
        self._fn = embedding_function

    def _function(self):
        if self._fn is None:
            from chromadb.utils import embedding_functions

            self._fn = embedding_functions.DefaultEmbeddingFunction()
        return self._fn

    def generate(self, text: str) -> list[float]:
        vectors = self._function()([text])
        return [float(x) for x in vectors[0]]


def _clean_metadata(metadata: dict | None) -> dict | None:
    # ChromaDB only accepts str, int, float, bool metadata values
    clean = {}
    for k, v in (metadata or {}).items():
        if v is None:
            continue
        if isinstance(v, (str, int, float, bool)):
            clean[k] = v
        else:
            clean[k] = str(v)
    return clean or None


def _where(filters: dict | None) -> dict | None:
    if not filters:
        return None
    if len(filters) == 1:
        return dict(filters)
    return {"$and": [{k: v} for k, v in filters.items()]}


class VectorIndex:
    """Cosine-space ChromaDB collection keyed by row id.

    Best-effort: init, upsert and query failures are logged and degrade to
    "nothing indexed / no results".
    """

    def __init__(
        self,
        chroma_dir: str | Path | None,
        collection_name: str,
        embedder: EmbeddingOracle | None = None,
        collection=None,
    ):
        self._chroma_dir = Path(chroma_dir).expanduser() if chroma_dir else None
        self.collection_name = collection_name
        self.embedder = embedder
        self._collection = collection

    @property
    def collection(self):
        """Lazy-init ChromaDB collection."""
        if self._collection is None and self._chroma_dir:
            try:
                import chromadb
                from chromadb.config import Settings

                self._chroma_dir.mkdir(parents=True, exist_ok=True)
                client = chromadb.PersistentClient(
                    path=str(self._chroma_dir),
                    settings=Settings(anonymized_telemetry=False),
                )
                self._collection = client.get_or_create_collection(
                    name=self.collection_name,
                    metadata={"hnsw:space": "cosine", "embedding_model": DEFAULT_EMBEDDING_MODEL},
                )
            except Exception as e:
                logger.warning("chroma_init_failed", collection=self.collection_name, error=str(e))
        return self._collection

    @property
    def available(self) -> bool:
        return self.collection is not None

    def embed(self, text: str) -> list[float] | None:
        """Embed text, or None when no embedder is configured or it fails."""
        if not self.embedder:
            return None
        try:
            return self.embedder.generate(text)
        except Exception as e:
            logger.warning("embedding_failed", collection=self.collection_name, error=str(e))
            return None

    def upsert(
        self,
        item_id: str,
        text: str,
        metadata: dict | None = None,
        embedding: list[float] | None = None,
    ) -> bool:
        coll = self.collection
        if coll is None:
            return False
        try:
            kwargs = {"ids": [item_id], "documents": [text], "metadatas": [_clean_metadata(metadata)]}
            if embedding is not None:
                kwargs["embeddings"] = [embedding]
            coll.upsert(**kwargs)
            return True
        except Exception as e:
            logger.warning("chroma_upsert_failed", item_id=item_id, error=str(e))
            return False

    def remove(self, item_id: str) -> None:
        coll = self.collection
        if coll is None:
            return
        try:
            coll.delete(ids=[item_id])
        except Exception as e:
            logger.warning("chroma_remove_failed", item_id=item_id, error=str(e))

    def query(
        self,
        embedding: list[float],
        filters: dict | None = None,
        top_k: int = 5,
        min_similarity: float = 0.0,
    ) -> list[tuple[str, float]]:
        """Nearest neighbours as (id, cosine similarity), best first."""
        coll = self.collection
        if coll is None:
            return []
        try:
            results = coll.query(
                query_embeddings=[embedding],
                n_results=top_k,
                where=_where(filters),
                include=["distances"],
            )
        except Exception as e:
            logger.warning("chroma_query_failed", collection=self.collection_name, error=str(e))
            return []

        hits = []
        if results["ids"] and results["ids"][0]:
            for i, item_id in enumerate(results["ids"][0]):
                similarity = distance_to_similarity(results["distances"][0][i])
                if similarity >= min_similarity:
                    hits.append((item_id, similarity))
        hits.sort(key=lambda h: h[1], reverse=True)
        return hits
