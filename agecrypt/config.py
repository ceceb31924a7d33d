"""
Configuration containers.

Identities are private, so they live in the clone's local git config.
The mapping from paths to recipients is shared with everyone working on the
repository, so it lives in a YAML file committed at the repository root.
"""

import logging
import pathlib
import typing

import attr
import yaml

from . import age
from .repository import AlreadyExists, DoesNotExist, Repository
from .utils import ConfigurationError, atomic_write, relative_to_root

log = logging.getLogger(__name__)

CONFIG_SECTION = 'git-agecrypt.config'
CONFIG_FILE = 'git-agecrypt.yaml'


class Container:
    """
    Add, remove and list configuration entries.

    Mutations return False when nothing changed, so adding an entry twice or
    removing a missing one is not an error.
    """

    def add(self, *args) -> bool:
        raise NotImplementedError

    def remove(self, *args) -> bool:
        raise NotImplementedError

    def list(self) -> typing.List:
        raise NotImplementedError


class RecipientSource:
    def recipients_for(self, path: pathlib.PurePosixPath) -> typing.List[str]:
        raise NotImplementedError


@attr.s(frozen=True)
class GitConfig(Container):
    """A multi-valued key in the local git config."""
    repository: Repository = attr.ib()
    namespace: str = attr.ib()

    @property
    def key(self) -> str:
        return f"{CONFIG_SECTION}.{self.namespace}"

    def add(self, value: str) -> bool:
        try:
            self.repository.add_config(self.key, value)
        except AlreadyExists:
            log.info(f"{value} is already configured in {self.key}")
            return False
        return True

    def remove(self, value: str) -> bool:
        try:
            self.repository.remove_config(self.key, value)
        except DoesNotExist:
            log.info(f"{value} is not configured in {self.key}")
            return False
        return True

    def list(self) -> typing.List[str]:
        return self.repository.list_config(self.key)


@attr.s(frozen=True)
class Identity:
    path: str = attr.ib()

    @classmethod
    def from_path(cls, path: pathlib.Path) -> 'Identity':
        return cls(str((pathlib.Path.cwd() / path.expanduser()).resolve()))

    def __str__(self):
        return self.path

    def validate(self) -> None:
        try:
            age.validate_identity(self.path)
        except ConfigurationError as error:
            raise ConfigurationError(
                f"The file '{self.path}' is not a valid age identity: {error.message}") from error


@attr.s(frozen=True)
class IdentityStore(Container):
    config: Container = attr.ib()

    @classmethod
    def for_repository(cls, repository: Repository) -> 'IdentityStore':
        return cls(GitConfig(repository, 'identity'))

    def add(self, identity: Identity) -> bool:
        try:
            identity.validate()
        except ConfigurationError as error:
            raise ConfigurationError(f"Not adding identity; {error.message}") from error
        return self.config.add(identity.path)

    def remove(self, identity: Identity) -> bool:
        return self.config.remove(identity.path)

    def list(self) -> typing.List[Identity]:
        return [Identity(path) for path in self.config.list()]

    def paths(self) -> typing.List[str]:
        return [identity.path for identity in self.list()]


@attr.s
class RecipientMap(Container, RecipientSource):
    """
    Recipients for each encrypted path, stored in a YAML file.

    Mutations only change the in-memory mapping, call save() to persist them.
    """
    path: pathlib.Path = attr.ib()
    root: pathlib.Path = attr.ib()
    entries: typing.Dict[str, typing.List[str]] = attr.ib(factory=dict)

    @classmethod
    def load(cls, path: pathlib.Path, root: pathlib.Path) -> 'RecipientMap':
        try:
            contents = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            log.debug(f"No configuration file at {path}, starting empty")
            return cls(path=path, root=root)
        except OSError as error:
            raise ConfigurationError(
                f"Couldn't read configuration file '{path}': {error.strerror}")

        try:
            data = yaml.safe_load(contents) or {}
        except yaml.YAMLError as error:
            raise ConfigurationError(f"Couldn't load configuration file '{path}': {error}")

        return cls(path=path, root=root, entries=cls._parse(path, data))

    @classmethod
    def for_repository(cls, repository: Repository) -> 'RecipientMap':
        return cls.load(repository.workdir / CONFIG_FILE, repository.workdir)

    @staticmethod
    def _parse(path: pathlib.Path, data: typing.Any) -> typing.Dict[str, typing.List[str]]:
        config = (data.get('config') or {}) if isinstance(data, dict) else None
        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration file '{path}' should contain a 'config' mapping")

        entries: typing.Dict[str, typing.List[str]] = {}
        for key, recipients in config.items():
            if not isinstance(recipients, list) or not all(isinstance(r, str) for r in recipients):
                raise ConfigurationError(
                    f"Recipients for '{key}' in '{path}' should be a list of strings")
            if recipients:
                entries[str(key)] = list(dict.fromkeys(recipients))
        return entries

    def dump(self) -> str:
        config = {path: sorted(recipients) for path, recipients in sorted(self.entries.items())}
        return yaml.safe_dump({'config': config}, default_flow_style=False, sort_keys=True)

    def save(self) -> None:
        log.info(f"Saving configuration to {self.path}")
        try:
            atomic_write(self.path, self.dump().encode('utf-8'))
        except OSError as error:
            raise ConfigurationError(
                f"Couldn't save configuration file '{self.path}': {error.strerror}")

    def relative(self, path: pathlib.Path) -> str:
        return str(relative_to_root(path, self.root))

    def add(self, recipients: typing.Sequence[str], paths: typing.Sequence[pathlib.Path]) -> bool:
        age.validate_recipients(recipients)

        missing = [str(p) for p in paths if not (self.root / self.relative(p)).is_file()]
        if missing:
            raise ConfigurationError(f"The following files do not exist: {', '.join(missing)}")

        changed = False
        for path in paths:
            entry = self.entries.setdefault(self.relative(path), [])
            for recipient in recipients:
                if recipient not in entry:
                    entry.append(recipient)
                    changed = True
        return changed

    def remove(self, recipients: typing.Sequence[str], paths: typing.Sequence[pathlib.Path]) -> bool:
        before = self.snapshot()

        if not paths:
            for path, entry in self.entries.items():
                self.entries[path] = [r for r in entry if r not in recipients]
        else:
            for relative in map(self.relative, paths):
                if relative not in self.entries:
                    log.info(f"No configuration entry found for {relative}")
                elif not recipients:
                    self.entries[relative] = []
                else:
                    self.entries[relative] = [r for r in self.entries[relative] if r not in recipients]

        self.entries = {path: rs for path, rs in self.entries.items() if rs}
        return self.entries != before

    def snapshot(self) -> typing.Dict[str, typing.List[str]]:
        return {path: list(recipients) for path, recipients in self.entries.items()}

    def changed_since(self, before: typing.Dict[str, typing.List[str]]) -> typing.List[str]:
        """Paths whose set of recipients differs from an earlier snapshot."""
        return sorted(
            path for path in {*before, *self.entries}
            if set(before.get(path, ())) != set(self.entries.get(path, ())))

    def list(self) -> typing.List[typing.Tuple[str, str]]:
        return [(path, recipient)
                for path, recipients in sorted(self.entries.items())
                for recipient in recipients]

    def recipients_for(self, path: pathlib.PurePosixPath) -> typing.List[str]:
        try:
            return list(self.entries[path.as_posix()])
        except KeyError:
            raise ConfigurationError(f"No public key can be found for '{path}'")
