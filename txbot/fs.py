"""Minimal filesystem abstraction used for reading and writing local files."""

from __future__ import annotations

from typing import BinaryIO, Protocol


class FS(Protocol):
    """Anything that can read whole files and create writable ones."""

    def read_file(self, name: str) -> bytes:
        ...

    def create(self, path: str) -> BinaryIO:
        ...


class OsFS:
    """Filesystem backed by the operating system."""

    def read_file(self, name: str) -> bytes:
        """Return the whole content of the file at ``name``."""
        with open(name, "rb") as handle:
            return handle.read()

    def create(self, path: str) -> BinaryIO:
        """Create (or truncate) the file at ``path`` and open it for writing."""
        return open(path, "wb")