"""Case-insensitive HTTP headers.

``Headers`` is the immutable request side: raw byte pairs from the ASGI
scope, decoded on access. ``MutableHeaders`` is the response side that
handlers fill in through ``ResponseWriter.headers`` before the status line
is written.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableMapping


def encode_header(name: str, value: str) -> tuple[bytes, bytes]:
    """Encode a header pair for the wire.

    HTTP header fields are Latin-1; anything else raises ``ValueError``
    naming the header, rather than a bare ``UnicodeEncodeError``.
    """
    try:
        return name.encode("latin-1"), value.encode("latin-1")
    except UnicodeEncodeError as exc:
        msg = f"Header {name!r} is not Latin-1 encodable: {exc.reason} at position {exc.start}"
        raise ValueError(msg) from exc


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive request headers.

    ``__getitem__`` returns the first matching value.
    ``get_list`` returns all values for a header.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        object.__setattr__(self, "_raw", raw)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> Headers:
        """Build from ``str`` pairs (test helpers, ``Request.build``)."""
        return cls(tuple(encode_header(k, v) for k, v in pairs))

    def __getitem__(self, key: str) -> str:
        key_lower = key.lower().encode("latin-1", "replace")
        for name, value in self._raw:
            if name.lower() == key_lower:
                return value.decode("latin-1")
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        key_lower = key.lower().encode("latin-1", "replace")
        return any(name.lower() == key_lower for name, _ in self._raw)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._raw:
            key = name.decode("latin-1").lower()
            if key not in seen:
                seen.add(key)
                yield key

    def __len__(self) -> int:
        return len(set(self))

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"Headers({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        try:
            return self[key]
        except KeyError:
            return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        key_lower = key.lower().encode("latin-1", "replace")
        return [value.decode("latin-1") for name, value in self._raw if name.lower() == key_lower]

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        return self._raw


class MutableHeaders(MutableMapping[str, str]):
    """Case-insensitive, multi-valued response headers.

    Keys are stored lower-cased. ``h[name] = value`` and ``set`` replace
    every existing value; ``add`` appends another one (``Set-Cookie``).
    """

    __slots__ = ("_items",)

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._items: list[tuple[str, str]] = [(k.lower(), v) for k, v in pairs]

    def __getitem__(self, key: str) -> str:
        key_lower = key.lower()
        for name, value in self._items:
            if name == key_lower:
                return value
        raise KeyError(key)

    def __setitem__(self, key: str, value: str) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        key_lower = key.lower()
        if key_lower not in self:
            raise KeyError(key)
        self._items = [(k, v) for k, v in self._items if k != key_lower]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        key_lower = key.lower()
        return any(name == key_lower for name, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._items:
            if name not in seen:
                seen.add(name)
                yield name

    def __len__(self) -> int:
        return len(set(self))

    def __repr__(self) -> str:
        return f"MutableHeaders({self._items!r})"

    def set(self, key: str, value: str) -> None:
        """Replace all values of *key* with *value*."""
        encode_header(key, value)
        key_lower = key.lower()
        self._items = [(k, v) for k, v in self._items if k != key_lower]
        self._items.append((key_lower, value))

    def add(self, key: str, value: str) -> None:
        """Append a value for *key*, keeping existing ones."""
        encode_header(key, value)
        self._items.append((key.lower(), value))

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        key_lower = key.lower()
        return [value for name, value in self._items if name == key_lower]

    def items_list(self) -> list[tuple[str, str]]:
        """Every (name, value) pair in insertion order, duplicates included."""
        return list(self._items)

    def copy(self) -> MutableHeaders:
        return MutableHeaders(self._items)

    def encoded(self) -> list[tuple[bytes, bytes]]:
        """Header pairs encoded for an ASGI ``http.response.start`` message."""
        return [encode_header(k, v) for k, v in self._items]
