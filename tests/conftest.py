import io
import pathlib
import typing

import attr
import click.testing
import git
import pyrage
import pytest

import agecrypt.cli
from agecrypt.config import Container, IdentityStore, RecipientMap
from agecrypt.filters import Filters
from agecrypt.sidecar import MemorySidecarStore

SECRET = 'secrets/token.txt'


@attr.s(frozen=True)
class Keypair:
    identity: pathlib.Path = attr.ib()
    recipient: str = attr.ib()

    def __str__(self):
        return self.identity.name


@attr.s
class MemoryConfig(Container):
    values: typing.List[str] = attr.ib(factory=list)

    def add(self, value: str) -> bool:
        if value in self.values:
            return False
        self.values.append(value)
        return True

    def remove(self, value: str) -> bool:
        if value not in self.values:
            return False
        self.values.remove(value)
        return True

    def list(self) -> typing.List[str]:
        return list(self.values)


@pytest.fixture()
def make_keypair(tmp_path):
    def make_keypair_func(name: str = 'key.txt') -> Keypair:
        identity = pyrage.x25519.Identity.generate()
        path = tmp_path / 'keys' / name
        path.parent.mkdir(exist_ok=True)
        path.write_text(f"# created for tests\n# public key: {identity.to_public()}\n{identity}\n")
        return Keypair(path, str(identity.to_public()))

    return make_keypair_func


@pytest.fixture()
def keypair(make_keypair) -> Keypair:
    return make_keypair()


@pytest.fixture()
def repo(tmp_path, monkeypatch) -> git.Repo:
    repo = git.Repo.init(tmp_path / 'repo')
    monkeypatch.chdir(repo.working_tree_dir)
    secret = pathlib.Path(repo.working_tree_dir) / SECRET
    secret.parent.mkdir()
    secret.write_text("hunter2\n")
    return repo


@pytest.fixture()
def root(repo) -> pathlib.Path:
    return pathlib.Path(repo.working_tree_dir)


@pytest.fixture()
def mapping(root, keypair) -> RecipientMap:
    return RecipientMap(
        path=root / 'git-agecrypt.yaml',
        root=root,
        entries={SECRET: [keypair.recipient]})


@pytest.fixture()
def sidecars() -> MemorySidecarStore:
    return MemorySidecarStore()


@pytest.fixture()
def filters(root, sidecars, mapping, keypair) -> Filters:
    return Filters(
        root=root,
        sidecars=sidecars,
        identities=IdentityStore(MemoryConfig([str(keypair.identity)])),
        recipients=mapping)


@pytest.fixture()
def clean(filters):
    def clean_func(data: bytes, file: str = SECRET) -> bytes:
        stdout = io.BytesIO()
        filters.clean(pathlib.Path(file), io.BytesIO(data), stdout)
        return stdout.getvalue()

    return clean_func


@pytest.fixture()
def smudge(filters):
    def smudge_func(data: bytes, file: str = SECRET, identities: typing.Sequence[str] = ()) -> bytes:
        stdout = io.BytesIO()
        filters.smudge(pathlib.Path(file), identities, io.BytesIO(data), stdout)
        return stdout.getvalue()

    return smudge_func


@pytest.fixture()
def invoke(root):
    def invoke_func(arguments: typing.Sequence[str], input: typing.Optional[bytes] = None) -> click.testing.Result:
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(agecrypt.cli.main, ['-C', str(root), *arguments], input=input)

    return invoke_func
