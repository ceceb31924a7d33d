import logging
import pathlib
import shlex
import sys
import typing

import attr

from .config import IdentityStore, RecipientMap, RecipientSource
from .filters import Filters
from .nix import NixRules
from .repository import Repository
from .sidecar import CIPHERTEXT, FileSidecarStore

log = logging.getLogger(__name__)

NAME = 'git-agecrypt'
FILTER_SECTION = f'filter.{NAME}'
DIFF_SECTION = f'diff.{NAME}'


def executable() -> str:
    """The command git should run to reach this installation."""
    return f"{shlex.quote(sys.executable)} -m agecrypt"


@attr.s(frozen=True)
class Context:
    repository: Repository = attr.ib()

    @property
    def root(self) -> pathlib.Path:
        return self.repository.workdir

    @property
    def sidecars(self) -> FileSidecarStore:
        return FileSidecarStore(self.repository.path / NAME)

    def identities(self) -> IdentityStore:
        return IdentityStore.for_repository(self.repository)

    def recipients(self) -> RecipientMap:
        return RecipientMap.for_repository(self.repository)

    def recipient_source(self, rules: typing.Optional[pathlib.Path] = None) -> RecipientSource:
        return NixRules(rules, self.root) if rules else self.recipients()

    def filters(self, recipients: typing.Optional[RecipientSource] = None) -> Filters:
        return Filters(
            root=self.root,
            sidecars=self.sidecars,
            identities=self.identities(),
            recipients=recipients)

    def filter_config(self) -> typing.Dict[str, str]:
        exe = executable()
        return {
            f'{FILTER_SECTION}.required': 'true',
            f'{FILTER_SECTION}.smudge': f'{exe} smudge -f %f',
            f'{FILTER_SECTION}.clean': f'{exe} clean -f %f',
            f'{DIFF_SECTION}.textconv': f'{exe} textconv',
        }

    def configure_filter(self) -> None:
        for key, value in self.filter_config().items():
            log.debug(f"Setting {key}={value}")
            self.repository.set_config(key, value)

    def deconfigure_filter(self) -> None:
        for section in (FILTER_SECTION, DIFF_SECTION):
            self.repository.remove_section(section)

    def is_configured(self) -> bool:
        return all(
            self.repository.get_config(key) is not None
            for key in self.filter_config())

    def remove_sidecar_files(self) -> None:
        self.sidecars.clear_all()

    def forget_ciphertexts(self, paths: typing.Iterable[str]) -> None:
        """Drop cached ciphertext so the next clean encrypts for the current recipients."""
        for path in paths:
            log.debug(f"Recipients changed for {path}, discarding cached ciphertext")
            self.sidecars.discard(pathlib.PurePosixPath(path), CIPHERTEXT)
