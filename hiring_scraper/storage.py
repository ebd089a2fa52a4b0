"""
Artifact storage module for persisting extraction results.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Union

from . import config

logger = logging.getLogger(__name__)

ARTIFACT_NAME = "compiled.log"
UNIT_FILE_PATTERN = "output-{index}.log"


class ArtifactStore(ABC):
    """
    Abstract base class for artifact persistence.

    This defines the interface for writing the compiled artifact and the
    optional per-unit files. Concrete implementations decide where they live.
    """

    @classmethod
    def create(cls, store_type: str, config: Dict[str, Any]) -> "ArtifactStore":
        """
        Factory method to create an ArtifactStore instance.

        Args:
            store_type: Type of store (e.g., 'local')
            config: Configuration parameters for the store

        Returns:
            ArtifactStore instance
        """
        if store_type.lower() == "local":
            return LocalArtifactStore(config.get("work_dir"))
        else:
            raise ValueError(f"Unsupported artifact store type: {store_type}")

    @abstractmethod
    def write_artifact(self, data: bytes) -> str:
        """
        Persist the compiled artifact.

        Args:
            data: Artifact bytes

        Returns:
            Handle (location) of the written artifact
        """

    @abstractmethod
    def delete_artifact(self) -> None:
        """Remove the compiled artifact if it exists."""

    @abstractmethod
    def write_unit(self, index: int, data: bytes) -> str:
        """Persist the result of a single unit under its own key."""

    @abstractmethod
    def clear(self) -> int:
        """
        Remove the previous artifact and every per-unit file.

        Returns:
            Number of removed objects
        """


class LocalArtifactStore(ArtifactStore):
    """Stores artifacts as flat files in a working directory."""

    def __init__(self, work_dir: Union[str, Path, None] = None):
        """
        Initialize the store.

        Args:
            work_dir: Writable directory (default: config.resolve_work_dir())
        """
        self.work_dir = Path(work_dir) if work_dir else config.resolve_work_dir()

    @property
    def artifact_path(self) -> Path:
        return self.work_dir / ARTIFACT_NAME

    def unit_path(self, index: int) -> Path:
        return self.work_dir / UNIT_FILE_PATTERN.format(index=index)

    def write_artifact(self, data: bytes) -> str:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.artifact_path.write_bytes(data)
        logger.info(f"Saved artifact ({len(data)} bytes) to {self.artifact_path}")
        return str(self.artifact_path)

    def delete_artifact(self) -> None:
        if self.artifact_path.exists():
            self.artifact_path.unlink()
            logger.info(f"Deleted previous artifact {self.artifact_path}")

    def write_unit(self, index: int, data: bytes) -> str:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        path = self.unit_path(index)
        path.write_bytes(data)
        logger.debug(f"Saved unit file {path}")
        return str(path)

    def clear(self) -> int:
        if not self.work_dir.exists():
            return 0

        removed = 0
        for path in self.work_dir.glob(UNIT_FILE_PATTERN.format(index="*")):
            path.unlink()
            removed += 1
        if self.artifact_path.exists():
            self.delete_artifact()
            removed += 1

        if removed:
            logger.info(f"Removed {removed} files from previous runs in {self.work_dir}")
        return removed
