"""
Per-file cache of the last plaintext digest and ciphertext.

age encryption is randomised, so the clean filter uses these entries to hand
git the same ciphertext again when the plaintext hasn't changed.
"""

import hashlib
import logging
import pathlib
import shutil
import typing

import attr

from .utils import atomic_write

log = logging.getLogger(__name__)

HASH = 'hash'
CIPHERTEXT = 'ciphertext'
KINDS = (HASH, CIPHERTEXT)


def digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sidecar_name(path: pathlib.PurePosixPath, kind: str) -> str:
    """
    Flatten a path into a file name.

    '!' becomes '!!' and '/' becomes '!_', so distinct paths never share a name.
    """
    if kind not in KINDS:
        raise ValueError(f"Unknown sidecar kind {kind!r}")
    escaped = path.as_posix().replace('!', '!!').replace('/', '!_')
    return f"{escaped}.{kind}"


class SidecarStore:
    def store(self, path: pathlib.PurePosixPath, kind: str, data: bytes) -> None:
        raise NotImplementedError

    def load(self, path: pathlib.PurePosixPath, kind: str) -> typing.Optional[bytes]:
        raise NotImplementedError

    def discard(self, path: pathlib.PurePosixPath, kind: str) -> None:
        raise NotImplementedError

    def clear_all(self) -> None:
        raise NotImplementedError


@attr.s(frozen=True)
class FileSidecarStore(SidecarStore):
    """Sidecars kept as files in a directory inside the git directory."""
    directory: pathlib.Path = attr.ib()

    def sidecar(self, path: pathlib.PurePosixPath, kind: str) -> pathlib.Path:
        return self.directory / sidecar_name(path, kind)

    def store(self, path: pathlib.PurePosixPath, kind: str, data: bytes) -> None:
        sidecar = self.sidecar(path, kind)
        log.debug(f"Storing {kind} sidecar for {path} in {sidecar}")
        self.directory.mkdir(parents=True, exist_ok=True)
        atomic_write(sidecar, data)

    def load(self, path: pathlib.PurePosixPath, kind: str) -> typing.Optional[bytes]:
        sidecar = self.sidecar(path, kind)
        try:
            return sidecar.read_bytes()
        except FileNotFoundError:
            log.debug(f"No {kind} sidecar found for {path}")
            return None

    def discard(self, path: pathlib.PurePosixPath, kind: str) -> None:
        try:
            self.sidecar(path, kind).unlink()
        except FileNotFoundError:
            pass

    def clear_all(self) -> None:
        log.info(f"Removing sidecar directory {self.directory}")
        try:
            shutil.rmtree(self.directory)
        except FileNotFoundError:
            pass


@attr.s(frozen=True)
class MemorySidecarStore(SidecarStore):
    """Sidecars kept in a dictionary, for tests and one-off use."""
    entries: typing.Dict[str, bytes] = attr.ib(factory=dict)

    def store(self, path: pathlib.PurePosixPath, kind: str, data: bytes) -> None:
        self.entries[sidecar_name(path, kind)] = data

    def load(self, path: pathlib.PurePosixPath, kind: str) -> typing.Optional[bytes]:
        return self.entries.get(sidecar_name(path, kind))

    def discard(self, path: pathlib.PurePosixPath, kind: str) -> None:
        self.entries.pop(sidecar_name(path, kind), None)

    def clear_all(self) -> None:
        self.entries.clear()
