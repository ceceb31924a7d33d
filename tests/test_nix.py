import pathlib
import subprocess

import pytest

from agecrypt import nix
from agecrypt.utils import ConfigurationError

from conftest import SECRET


@pytest.fixture()
def rules(root, monkeypatch, keypair):
    path = root / 'secrets' / 'secrets.nix'
    path.write_text("{}\n")
    evaluated = {
        'token.txt': {'publicKeys': [keypair.recipient]},
        'other.txt': {'publicKeys': []},
    }
    monkeypatch.setattr(nix, 'eval_file', lambda p: evaluated)
    return nix.NixRules(pathlib.Path('secrets/secrets.nix'), root)


def test_rule_for_path(rules, keypair):
    assert rules.recipients_for(pathlib.PurePosixPath(SECRET)) == [keypair.recipient]


def test_no_rule_for_path(rules):
    with pytest.raises(ConfigurationError, match='No rule in'):
        rules.recipients_for(pathlib.PurePosixPath('unknown.txt'))


def test_public_keys_missing():
    with pytest.raises(ConfigurationError, match='publicKeys attribute missing'):
        nix.public_keys({}, 'token.txt')


def test_public_keys_wrong_type():
    with pytest.raises(ConfigurationError, match='should be a list of strings'):
        nix.public_keys({'publicKeys': 'age1abc'}, 'token.txt')


def test_eval_file(monkeypatch, tmp_path):
    calls = []

    def run(command, **kwargs):
        calls.append(command)
        return subprocess.CompletedProcess(command, 0, stdout=b'{"a.txt": {"publicKeys": []}}')

    monkeypatch.setattr(subprocess, 'run', run)
    assert nix.eval_file(tmp_path / 'secrets.nix') == {'a.txt': {'publicKeys': []}}
    assert calls[0][:2] == ('nix', 'eval')
    assert calls[0][-1] == f'import {tmp_path / "secrets.nix"}'


def test_eval_file_failure(monkeypatch, tmp_path):
    def run(command, **kwargs):
        raise subprocess.CalledProcessError(1, command, output=b'', stderr=b'error: boom\n')

    monkeypatch.setattr(subprocess, 'run', run)
    with pytest.raises(ConfigurationError, match='Failed to convert rules file'):
        nix.eval_file(tmp_path / 'secrets.nix')
