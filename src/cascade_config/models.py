"""Data models for cascade-config."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

Scalar = bool | int | float | str
"""Leaf value type. Anything else is rejected at the API boundary."""

ConfigNode = dict[str, Any]
"""Mapping of key to Scalar or nested ConfigNode (a section)."""


@dataclass
class ChangeTracker:
    """Dirty flag shared by a configuration and all of its section views.

    Views hold a reference to the same tracker instance, so a change made
    through any of them is visible to the owning configuration.
    """

    changed: bool = False

    def mark(self) -> None:
        self.changed = True

    def reset(self) -> None:
        self.changed = False


@dataclass(frozen=True)
class ResolvedPaths:
    """Files to read for one configuration load.

    Attributes:
        local: Closest-scope file. Its content is the local layer and the
            only file rewritten on save. It does not need to exist.
        candidates: Other existing files, ordered from most general to most
            specific. Later files override earlier ones when merged.
    """

    local: Path
    candidates: tuple[Path, ...] = ()
