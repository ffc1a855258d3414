"""Layered configuration built from files found along a directory chain."""

import logging
import os
import stat
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .collection import Collection
from .exceptions import ConfigFileError
from .exceptions import ConfigPermissionError
from .exceptions import InvalidValueError
from .exceptions import PathError
from .exceptions import PersistError
from .ini import parse_file
from .ini import serialize
from .models import ChangeTracker
from .models import ConfigNode
from .paths import PathResolver
from .utils import deep_merge
from .utils import get_home
from .utils import validate_key

logger = logging.getLogger(__name__)


class LayeredConfig(Collection):
    """Configuration merged from same-named INI files in several directories.

    The file passed to load() is the local scope. Files with the same name
    in its parent directories (up to the home directory), in the extra
    search paths and in the home directory are merged underneath it.

    Resolution order (highest to lowest priority):
    1. Local file
    2. Parent directories, nearest first (home included when the file
       lies beneath it)
    3. Extra search paths, first given first
    4. Home directory, when not already one of the parents

    Reads see the merged (effective) values. Writes go to both the
    effective values and the local layer, and save() only rewrites the
    local file.

    Args:
        paths: Extra directories (or files) to search when bubbling
        home: Home directory (default: detected with get_home())
    """

    def __init__(self, paths: Iterable[str | os.PathLike[str]] = (), home: str | os.PathLike[str] | None = None):
        super().__init__({}, {}, {}, ChangeTracker())
        self.resolver = PathResolver(get_home() if home is None else home, paths)
        self.filepath: Path | None = None

    @property
    def home(self) -> Path:
        return self.resolver.home

    @property
    def paths(self) -> tuple[Path, ...]:
        return self.resolver.extra_paths

    # ===== Loading =====

    def load(self, filepath: str | os.PathLike[str], bubble: bool = True) -> None:
        """Load configuration, discarding any state held before.

        Files that cannot be read or parsed are logged and skipped, the
        local file included (which then starts out empty).

        Args:
            filepath: Local configuration file. Its directory must exist.
            bubble: Whether to merge same-named files from parent
                directories, extra paths and the home directory

        Raises:
            PathError: If filepath is a directory, its directory is missing
                or unreadable, or the file exists but is unreadable
        """
        resolved = self.resolver.resolve(filepath, bubble)

        inherited: ConfigNode = {}
        for candidate in resolved.candidates:
            data = self._read(candidate)
            if data:
                logger.debug(f"Merging configuration from {candidate}")
                inherited = deep_merge(inherited, data)

        local = self._read(resolved.local) if resolved.local.is_file() else None

        self.filepath = resolved.local
        self._inherited = inherited
        self._local = local or {}
        self._data = deep_merge(inherited, self._local)
        self._tracker = ChangeTracker()

        logger.info(f"Loaded configuration {self.filepath} ({len(resolved.candidates)} inherited file(s))")

    # ===== Sections =====

    def has_section(self, name: str) -> bool:
        """Check whether name is a section."""
        return isinstance(self._data.get(name), dict)

    def add_section(self, name: str) -> Collection:
        """Add a section. Does nothing if the section already exists.

        Args:
            name: Section name

        Returns:
            Collection for the (new) section

        Raises:
            InvalidValueError: If name holds a scalar value or is not a
                valid section name
        """
        if not self.has_section(name):
            if name in self._data:
                raise InvalidValueError(f"Unable to overwrite setting '{name}' with a section")
            validate_key(name)
            self._data[name] = {}
            self._local[name] = {}
            self._tracker.mark()

        return self._section(name)

    def section_names(self) -> list[str]:
        """Names of all sections, in order."""
        return [name for name, value in self._data.items() if isinstance(value, dict)]

    # ===== Saving =====

    def has_changed(self) -> bool:
        """Check whether local configuration was modified since load or save."""
        return self._tracker.changed

    def save(self) -> None:
        """Write the local configuration back to the file it was loaded from.

        Only local values are written; inherited values stay in their own
        files. The file is replaced atomically through a temporary file in
        the same directory.

        Raises:
            PathError: If nothing was loaded
            ConfigPermissionError: If the file exists and is read-only
            InvalidValueError: If local data cannot be represented as INI
                or encoded as UTF-8
            PersistError: If the temporary file cannot be written or moved
                into place
        """
        if self.filepath is None:
            raise PathError("No configuration file loaded")

        target = self.filepath
        if target.exists() and not os.access(target, os.W_OK):
            raise ConfigPermissionError(f"File is read-only: {target}")

        try:
            payload = serialize(self._local).encode("utf-8")
        except UnicodeEncodeError as e:
            raise InvalidValueError(f"Configuration contains text that cannot be written as UTF-8: {e}") from e

        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb",
                dir=str(target.parent),
                prefix=f".{target.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())

            if target.exists():
                os.chmod(tmp_path, stat.S_IMODE(target.stat().st_mode))

            os.replace(tmp_path, target)
        except OSError as e:
            raise PersistError(f"Unable to write configuration file {target}: {e}") from e
        finally:
            # Gone after a successful replace
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)

        self._tracker.reset()
        logger.info(f"Saved configuration to {target}")

    # ===== Diagnostics =====

    def debug_info(self) -> dict[str, Any]:
        return {
            "filepath": self.filepath,
            "home": self.home,
            "paths": self.paths,
            "data": self.to_dict(),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(filepath={self.filepath!s}, home={self.home!s}, data={self._data!r})"

    # ===== Private Helpers =====

    def _read(self, path: Path) -> ConfigNode | None:
        """Read one INI file.

        Returns:
            Parsed data, or None if the file is unreadable or malformed
        """
        if not os.access(path, os.R_OK):
            logger.warning(f"Skipping unreadable configuration {path}")
            return None

        try:
            return parse_file(path)
        except ConfigFileError as e:
            logger.warning(f"Failed to read configuration from {path}: {e}")
            return None
