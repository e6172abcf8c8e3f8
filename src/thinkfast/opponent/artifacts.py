"""Filesystem facade for downloaded model artifacts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .catalog import ModelDefinition

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


def part_path_for(destination: Path) -> Path:
    """Return the in-progress path that shadows ``destination``."""

    return destination.with_name(destination.name + PART_SUFFIX)


def format_size(size_bytes: float) -> str:
    """Format size in human-readable format."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


class ArtifactStore:
    """Resolve, inspect and delete model files inside one models directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()

    def path_for(self, definition: ModelDefinition) -> Path:
        return self.root / definition.filename

    def part_path(self, definition: ModelDefinition) -> Path:
        return part_path_for(self.path_for(definition))

    def is_downloaded(self, definition: ModelDefinition) -> bool:
        return self.path_for(definition).is_file()

    def size_bytes(self, definition: ModelDefinition) -> Optional[int]:
        try:
            return self.path_for(definition).stat().st_size
        except OSError:
            return None

    def partial_bytes(self, definition: ModelDefinition) -> int:
        try:
            return self.part_path(definition).stat().st_size
        except OSError:
            return 0

    def size_label(self, definition: ModelDefinition) -> str:
        """On-disk size when downloaded, otherwise the catalog estimate."""

        size = self.size_bytes(definition)
        if size is None:
            return definition.size_label
        return format_size(size)

    def delete(self, definition: ModelDefinition, *, include_partial: bool = True) -> bool:
        """Remove the artifact (and its partial download). Returns True if anything was removed."""

        removed = False
        targets = [self.path_for(definition)]
        if include_partial:
            targets.append(self.part_path(definition))
        for target in targets:
            if target.exists():
                target.unlink()
                logger.info("Deleted model artifact %s", target)
                removed = True
        return removed


__all__ = ["ArtifactStore", "PART_SUFFIX", "part_path_for", "format_size"]
