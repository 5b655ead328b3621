"""Byte, file, network and hashing helpers."""

from __future__ import annotations

import abc
import dataclasses
import functools
import ipaddress
import json
import os
import socket
import time
import zlib
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


def get_address_by_bytes(data: bytes) -> str:
    """Render the first four bytes as a dotted IPv4 address."""
    return ".".join(str(b) for b in bytes(data[:4]))


def uncompress(data: bytes) -> bytes:
    """Inflate zlib data; return the input unchanged if it is not valid zlib."""
    try:
        return zlib.decompress(data)
    except zlib.error:
        return data


def file_read_all(path: PathLike) -> bytes:
    return Path(path).read_bytes()


def _ensure_dir(path: Path) -> None:
    if path.exists():
        if not path.is_dir():
            raise NotADirectoryError(f"{path} is a file")
        return
    path.mkdir(parents=True, exist_ok=True)


def write_to_file(path: PathLike, data: bytes) -> None:
    """Write data through a temporary file, keeping a .bak copy of the old contents."""
    target = Path(path)
    _ensure_dir(target.parent)
    tmp = target.with_name(target.name + ".tmp")
    tmp.write_bytes(data)
    try:
        previous = target.read_bytes()
    except OSError:
        previous = None
    if previous is not None:
        target.with_name(target.name + ".bak").write_bytes(previous)
    os.replace(tmp, target)


def client_ip4() -> bytes:
    """Return a non-loopback IPv4 address of this host as four bytes."""
    candidates = []
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            # A UDP connect only selects a route; nothing is sent.
            sock.connect(("10.255.255.255", 1))
            candidates.append(sock.getsockname()[0])
    except OSError:
        pass
    try:
        candidates.extend(socket.gethostbyname_ex(socket.gethostname())[2])
    except OSError:
        pass
    for candidate in candidates:
        try:
            addr = ipaddress.IPv4Address(candidate)
        except ValueError:
            continue
        if not addr.is_loopback and not addr.is_unspecified:
            return addr.packed
    raise OSError("unknown IP address")


def fake_ip() -> bytes:
    """Four bytes taken from the current millisecond timestamp, for hosts without an address."""
    return str(time.time_ns() // 1_000_000).encode()[4:8]


@functools.lru_cache(maxsize=None)
def local_ip() -> str:
    """Dotted local IPv4 address, or an empty string when none is found."""
    try:
        return get_address_by_bytes(client_ip4())
    except OSError:
        return ""


def hash_string(s: str) -> int:
    """Signed 32-bit polynomial (base 31) hash over the UTF-8 bytes of s."""
    h = 0
    for b in s.encode("utf-8"):
        h = (31 * h + b) & 0xFFFFFFFF
    return h - 0x1_0000_0000 if h & 0x8000_0000 else h


class UniqueItem(abc.ABC):
    """Something that can be identified by a string key."""

    @abc.abstractmethod
    def unique_id(self) -> str: ...


class StringUnique(str, UniqueItem):
    """A string that is its own unique id."""

    def unique_id(self) -> str:
        return str(self)


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if hasattr(obj, "__dict__"):
        return vars(obj)
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


class UniqueSet:
    """Items keyed by their unique id."""

    def __init__(self) -> None:
        self._items: Dict[str, UniqueItem] = {}

    def add(self, item: UniqueItem) -> None:
        self._items[item.unique_id()] = item

    def add_kv(self, key: str, value: str) -> None:
        self._items[key] = StringUnique(value)

    def get(self, key: str) -> Optional[UniqueItem]:
        return self._items.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[UniqueItem]:
        return iter(self._items.values())

    def to_json(self) -> str:
        """Serialise the items as a JSON array, sorted by their encoded text."""
        if not self._items:
            return "[]"
        encoded = []
        for item in self._items.values():
            if isinstance(item, StringUnique):
                encoded.append('"' + str(item) + '"')
            else:
                encoded.append(json.dumps(item, default=_json_default, separators=(",", ":")))
        return "[" + ",".join(sorted(encoded)) + "]"