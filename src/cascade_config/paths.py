"""Search path resolution for layered configuration files."""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .exceptions import PathError
from .models import ResolvedPaths

logger = logging.getLogger(__name__)


def _normalize(path: str | os.PathLike[str]) -> Path:
    return Path(path).expanduser().resolve()


class PathResolver:
    """Computes which files contribute to a configuration.

    Starting from the directory of the requested file, the resolver can
    "bubble" upward through parent directories until it reaches the home
    directory or the filesystem root. Extra search paths and the home
    directory are appended after the ancestors, and the combined list is
    reversed so that the most general location comes first.

    Args:
        home: Home directory, the upper bound of the upward walk
        extra_paths: Additional directories (or files) to search
    """

    def __init__(self, home: str | os.PathLike[str], extra_paths: Iterable[str | os.PathLike[str]] = ()):
        self.home = _normalize(home)
        self.extra_paths = tuple(dict.fromkeys(_normalize(p) for p in extra_paths))

    def resolve(self, filepath: str | os.PathLike[str], bubble: bool = True) -> ResolvedPaths:
        """Resolve the local file and the candidate files to merge under it.

        Args:
            filepath: Path of the configuration file to load. The file does
                not need to exist, but its directory does.
            bubble: Whether to search parent directories, extra paths and
                the home directory

        Returns:
            ResolvedPaths with the local file and existing candidate files,
            most general first

        Raises:
            PathError: If filepath is a directory, its directory does not
                exist or is not readable, or the file exists but is not
                readable
        """
        filepath = Path(filepath).expanduser()

        if filepath.is_dir():
            raise PathError(f"Specified path is a directory: {filepath}")

        directory = filepath.parent
        if not directory.is_dir():
            raise PathError(f"Unable to locate directory: {directory}")
        if not os.access(directory, os.R_OK | os.X_OK):
            raise PathError(f"Directory is not readable: {directory}")

        local = directory.resolve() / filepath.name
        if local.is_file() and not os.access(local, os.R_OK):
            raise PathError(f"Specified file is not readable: {local}")

        if not bubble:
            return ResolvedPaths(local=local)

        ordered = list(dict.fromkeys([*self._ancestors(local.parent), *self.extra_paths, self.home]))
        ordered.reverse()

        candidates: dict[Path, None] = {}
        for entry in ordered:
            try:
                candidate = entry / local.name if entry.is_dir() else entry
                if candidate == local:
                    continue
                if not candidate.is_file():
                    logger.debug(f"No configuration at {candidate}")
                    continue
            except OSError as e:
                logger.warning(f"Skipping inaccessible search path {entry}: {e}")
                continue
            candidates[candidate] = None

        return ResolvedPaths(local=local, candidates=tuple(candidates))

    def _ancestors(self, directory: Path) -> list[Path]:
        """Parent directories of directory, nearest first, up to home or root inclusive."""
        ancestors = []
        path = directory
        while path != self.home and path.parent != path:
            path = path.parent
            ancestors.append(path)
        return ancestors
