"""
Recipients from an agenix style `secrets.nix` rules file.

The rules file is evaluated with `nix eval --json`; it maps file names,
relative to the rules file, to an attribute set holding `publicKeys`.
"""

import json
import logging
import pathlib
import subprocess
import typing

import attr

from .config import RecipientSource
from .utils import ConfigurationError

log = logging.getLogger(__name__)


def eval_file(path: pathlib.Path) -> typing.Any:
    command = (
        'nix', 'eval',
        '--experimental-features', 'nix-command flakes',
        '--no-net', '--impure', '--json',
        '--expr', f'import {path}',
    )
    log.debug(f"Evaluating rules file {path}")
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True)
    except FileNotFoundError as error:
        raise ConfigurationError(f"Failed to execute nix: {error}")
    except subprocess.CalledProcessError as error:
        for line in error.stderr.decode('utf-8', 'replace').splitlines():
            log.error(line)
        raise ConfigurationError(f"Failed to convert rules file {path} to JSON")

    try:
        return json.loads(result.stdout)
    except ValueError as error:
        raise ConfigurationError(f"nix eval of {path} produced invalid JSON: {error}")


def public_keys(rule: typing.Any, name: str) -> typing.List[str]:
    if not isinstance(rule, dict):
        raise ConfigurationError(f"Rule for {name} should be an attribute set")
    if 'publicKeys' not in rule:
        raise ConfigurationError(f"publicKeys attribute missing from rule for {name}")
    keys = rule['publicKeys']
    if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
        raise ConfigurationError(f"publicKeys for {name} should be a list of strings")
    return keys


@attr.s(frozen=True)
class NixRules(RecipientSource):
    rules: pathlib.Path = attr.ib()
    root: pathlib.Path = attr.ib()

    def recipients_for(self, path: pathlib.PurePosixPath) -> typing.List[str]:
        rules = (self.root / self.rules).resolve()
        target = (self.root / path).resolve()
        evaluated = eval_file(rules)
        if not isinstance(evaluated, dict):
            raise ConfigurationError(f"Rules file {rules} should evaluate to an attribute set")

        for name, rule in evaluated.items():
            candidate = (rules.parent / name).resolve()
            if candidate != target:
                log.debug(f"Encryption rule doesn't match; candidate={candidate}, target={target}")
                continue
            log.debug(f"Encryption rule matches; target={target}")
            return public_keys(rule, name)

        raise ConfigurationError(f"No rule in {rules} for {path}")
