"""cascade-config: Layered INI configuration for command-line applications.

This library resolves a named configuration file by searching a chain of
directories and merges every file it finds:
- The requested (local) file, highest priority
- Same-named files in parent directories, up to the home directory
- Same-named files in extra search paths supplied by the application
- The same-named file in the home directory

Reads see the merged values. Writes are recorded in the local layer, and
save() rewrites only the local file.

Public API:
    LayeredConfig: Load, merge, modify and save a configuration
    Collection: Read/write view over one level of a configuration tree
    PathResolver: Computes the files that make up a configuration
    ChangeTracker, ResolvedPaths: Supporting data models
    deep_merge, get_home: Utility functions
    ConfigError and subclasses: Exception types

Example:
    ```python
    from cascade_config import LayeredConfig

    config = LayeredConfig(paths=["/etc/myapp"])
    config.load("./myapp.conf")

    # Read merged settings
    port = config["db"]["port"]

    # Override locally and persist
    config["db"]["host"] = "localhost"
    if config.has_changed():
        config.save()
    ```
"""

from .collection import Collection
from .exceptions import ConfigError
from .exceptions import ConfigFileError
from .exceptions import ConfigPermissionError
from .exceptions import ConfigValidationError
from .exceptions import InvalidValueError
from .exceptions import NotFoundError
from .exceptions import ParseError
from .exceptions import PathError
from .exceptions import PersistError
from .manager import LayeredConfig
from .models import ChangeTracker
from .models import ResolvedPaths
from .paths import PathResolver
from .utils import deep_merge
from .utils import get_home

__version__ = "0.1.0"

__all__ = [
    "LayeredConfig",
    "Collection",
    "PathResolver",
    "ChangeTracker",
    "ResolvedPaths",
    "deep_merge",
    "get_home",
    "ConfigError",
    "ConfigFileError",
    "ConfigPermissionError",
    "ConfigValidationError",
    "InvalidValueError",
    "NotFoundError",
    "ParseError",
    "PathError",
    "PersistError",
]
