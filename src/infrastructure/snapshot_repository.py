"""Knowledge Store Snapshot Repository.

Persists the whole knowledge store as one JSON file. A unit of work loads
the full snapshot, mutates it in memory and saves it back; the last save
wins.
"""

import json
import logging
from pathlib import Path
from typing import Union

from domain.knowledge_store import KnowledgeStore
from application.services.store_migrations import apply_migrations

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """Loads and saves the knowledge store snapshot as JSON."""

    def __init__(self, path: Union[str, Path] = Path("data/knowledge_graph.json")):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> KnowledgeStore:
        """
        Load the snapshot and bring it to the current schema version.

        A missing file yields a freshly seeded store.

        Raises:
            pydantic.ValidationError: If the file holds a malformed snapshot
            json.JSONDecodeError: If the file is not valid JSON
        """
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, starting from the seed store")
            store = KnowledgeStore.seeded()
        else:
            with open(self.path, "r", encoding="utf-8") as f:
                store = KnowledgeStore.model_validate(json.load(f))
            logger.debug(f"Loaded snapshot {self.path} ({len(store.nodes)} nodes, {len(store.concepts)} concepts)")

        apply_migrations(store)
        return store

    def save(self, store: KnowledgeStore) -> None:
        """Write the whole snapshot."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(store.model_dump(mode="json"), f, indent=2, ensure_ascii=False, default=str)
        logger.debug(f"Saved snapshot {self.path}")

    def clear(self) -> bool:
        """Delete the snapshot file; the next load starts from the seed store."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info(f"Cleared snapshot {self.path}")
        return True
