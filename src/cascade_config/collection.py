"""Recursive read/write view over a configuration node."""

import copy
import json
from collections.abc import Iterator
from typing import Any

import yaml

from .exceptions import InvalidValueError
from .exceptions import NotFoundError
from .models import ChangeTracker
from .models import ConfigNode
from .models import Scalar
from .utils import is_scalar
from .utils import same_scalar
from .utils import to_scalar
from .utils import validate_key

_MISSING = object()


class Collection:
    """Read/write access to one level of a configuration tree.

    A collection works on up to three dictionaries describing the same
    position in the tree:

    - ``data``: effective values, used for every read
    - ``local``: values owned by the closest-scope file; every write lands
      here as well as in ``data``
    - ``inherited``: values merged from farther files, consulted when a
      local override is deleted

    Sections are returned as new Collection instances wrapping the same
    dictionaries, so writes through a section are visible from the parent.
    All views share one ChangeTracker.

    A collection built from a single dictionary uses it as both ``data``
    and ``local``.

    Args:
        data: Effective values (default: new empty dict)
        local: Local values (default: same object as data)
        inherited: Inherited values (default: new empty dict)
        tracker: Shared dirty flag (default: new tracker)
    """

    def __init__(
        self,
        data: ConfigNode | None = None,
        local: ConfigNode | None = None,
        inherited: ConfigNode | None = None,
        tracker: ChangeTracker | None = None,
    ):
        self._data: ConfigNode = {} if data is None else data
        self._local: ConfigNode = self._data if local is None else local
        self._inherited: ConfigNode = {} if inherited is None else inherited
        self._tracker = ChangeTracker() if tracker is None else tracker

    # ===== Reading =====

    def get(self, key: str, default: Any = _MISSING) -> "Scalar | Collection":
        """Get a scalar value or a section view.

        Reading a section that exists only in farther files creates an empty
        local counterpart for it (marking the configuration as changed), so
        that values written through the returned view have a place to go.

        Args:
            key: Key to read
            default: Returned instead of raising when key does not exist

        Returns:
            Scalar value, or a Collection for a section

        Raises:
            NotFoundError: If key does not exist and no default was given
        """
        if key not in self._data:
            if default is _MISSING:
                raise NotFoundError(f"Undefined key '{key}'")
            return default

        value = self._data[key]
        if isinstance(value, dict):
            return self._section(key)
        return value

    def has(self, key: str) -> bool:
        """Check whether key exists in the effective configuration."""
        return key in self._data

    def count(self) -> int:
        """Number of direct keys, sections included."""
        return len(self._data)

    def items(self) -> Iterator[tuple[str, Scalar]]:
        """Iterate over (key, value) pairs of direct scalar children.

        Sections are skipped; fetch them by name with get().
        """
        for key, value in self._data.items():
            if not isinstance(value, dict):
                yield key, value

    # ===== Writing =====

    def set(self, key: str | None, value: Scalar) -> None:
        """Set a scalar value.

        Args:
            key: Key to write, or None to append under the next integer index
            value: bool, int, finite float or str

        Raises:
            InvalidValueError: If value is not a scalar, key is not a valid
                key, or key designates a section
        """
        if not is_scalar(value):
            raise InvalidValueError(
                f"Value must be a scalar (bool, int, float or str), got {type(value).__name__}"
            )
        value = to_scalar(value)
        if key is None:
            self.append(value)
            return

        validate_key(key)
        if isinstance(self._data.get(key), dict):
            raise InvalidValueError(f"Unable to overwrite section '{key}' with a scalar value")

        if not same_scalar(self._local.get(key, _MISSING), value):
            self._tracker.mark()

        self._data[key] = value
        self._local[key] = value

    def append(self, value: Scalar) -> str:
        """Store value under the next free integer index.

        Returns:
            The generated key
        """
        if not is_scalar(value):
            raise InvalidValueError(
                f"Value must be a scalar (bool, int, float or str), got {type(value).__name__}"
            )
        value = to_scalar(value)

        indexes = [int(k) for k in (*self._data, *self._local) if isinstance(k, str) and k.isdigit()]
        key = str(max(indexes) + 1 if indexes else 0)

        self._data[key] = value
        self._local[key] = value
        self._tracker.mark()
        return key

    def delete(self, key: str) -> None:
        """Delete the local value of key.

        Only the local layer is modified. If a farther file also defines
        key, its value becomes visible again. Keys without a local value
        are left alone.
        """
        if key not in self._local:
            return

        del self._local[key]
        self._tracker.mark()

        if key in self._inherited:
            self._data[key] = copy.deepcopy(self._inherited[key])
        else:
            self._data.pop(key, None)

    # ===== Serialization =====

    def to_dict(self) -> ConfigNode:
        """Deep copy of the effective values."""
        return copy.deepcopy(self._data)

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self._data, **kwargs)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self._data, default_flow_style=False, sort_keys=False)

    # ===== Python protocols =====

    def __getitem__(self, key: str) -> "Scalar | Collection":
        return self.get(key)

    def __setitem__(self, key: str | None, value: Scalar) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self.delete(key)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[tuple[str, Scalar]]:
        return self.items()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"

    # ===== Private Helpers =====

    def _section(self, key: str) -> "Collection":
        if not isinstance(self._local.get(key), dict):
            self._local[key] = {}
            self._tracker.mark()

        inherited = self._inherited.get(key)
        return Collection(
            self._data[key],
            self._local[key],
            inherited if isinstance(inherited, dict) else {},
            self._tracker,
        )
