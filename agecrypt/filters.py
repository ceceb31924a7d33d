"""
The clean, smudge and textconv filters git runs for encrypted paths.

Each invocation handles one file. Anything that must survive between
invocations is kept in the sidecar store.
"""

import contextlib
import logging
import pathlib
import typing

import attr

from . import age
from .config import IdentityStore, RecipientSource
from .sidecar import CIPHERTEXT, HASH, SidecarStore, digest
from .utils import AgecryptException, ConfigurationError, NotEncryptedError, relative_to_root

log = logging.getLogger(__name__)


@contextlib.contextmanager
def reraise_os_errors(operation: str, path: typing.Any) -> typing.Iterator[None]:
    try:
        yield
    except OSError as error:
        raise AgecryptException(f"{operation} failed for {path}: {error}") from error


@attr.s(frozen=True)
class Filters:
    root: pathlib.Path = attr.ib()
    sidecars: SidecarStore = attr.ib()
    identities: IdentityStore = attr.ib()
    recipients: typing.Optional[RecipientSource] = attr.ib(default=None)

    def relative(self, file: pathlib.Path) -> pathlib.PurePosixPath:
        return relative_to_root(self.root / file, self.root)

    def all_identities(self, extra: typing.Iterable[str]) -> typing.List[str]:
        identities = self.identities.paths()
        log.debug(f"Loaded identities from config; identities={identities}")
        return [*identities, *extra]

    def clean(self, file: pathlib.Path, stdin: typing.BinaryIO, stdout: typing.BinaryIO) -> None:
        """Encrypt plaintext from stdin, reusing the last ciphertext if it is unchanged."""
        log.info(f"Encrypting {file}")
        relative = self.relative(file)

        with reraise_os_errors('Encrypting', relative):
            contents = stdin.read()
            new_hash = digest(contents)
            old_hash = self.sidecars.load(relative, HASH)
            log.debug(f"Comparing hashes for file; "
                      f"old_hash={old_hash.hex() if old_hash else None}, new_hash={new_hash.hex()}")

            cached = self.sidecars.load(relative, CIPHERTEXT) if old_hash == new_hash else None
            if cached is not None:
                log.info(f"{relative} didn't change since last encryption, reusing ciphertext")
                result = cached
            else:
                log.info(f"{relative} changed since last encryption, re-encrypting")
                if self.recipients is None:
                    raise ConfigurationError("No recipients are available for encryption")
                result = age.encrypt(self.recipients.recipients_for(relative), contents)
                self.sidecars.discard(relative, HASH)
                self.sidecars.store(relative, CIPHERTEXT, result)
                self.sidecars.store(relative, HASH, new_hash)

            stdout.write(result)
            stdout.flush()

    def smudge(
            self,
            file: pathlib.Path,
            identities: typing.Sequence[str],
            stdin: typing.BinaryIO,
            stdout: typing.BinaryIO) -> None:
        """
        Decrypt ciphertext from stdin.

        Only the plaintext digest is remembered. Any ciphertext sidecar is
        dropped, as it may belong to another revision, so the first clean
        after a checkout encrypts again.
        """
        log.info(f"Decrypting {file}")
        relative = self.relative(file)
        all_identities = self.all_identities(identities)

        with reraise_os_errors('Decrypting', relative):
            plaintext = age.decrypt(all_identities, stdin.read())
            if plaintext is None:
                raise NotEncryptedError()

            new_hash = digest(plaintext)
            log.debug(f"Storing hash for file; hash={new_hash.hex()}")
            self.sidecars.discard(relative, CIPHERTEXT)
            self.sidecars.store(relative, HASH, new_hash)

            stdout.write(plaintext)
            stdout.flush()

    def textconv(
            self,
            path: pathlib.Path,
            identities: typing.Sequence[str],
            stdout: typing.BinaryIO) -> None:
        """Show a file for diffing, passing it through as is when it isn't encrypted."""
        log.info(f"Decrypting {path} to show in diff")
        all_identities = self.all_identities(identities)

        with reraise_os_errors('Showing', path), path.open('rb') as f:
            result = age.decrypt(all_identities, f.read())
            if result is None:
                log.info("File isn't encrypted, probably a working copy; showing as is")
                f.seek(0)
                result = f.read()

            stdout.write(result)
            stdout.flush()
