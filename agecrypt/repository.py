import logging
import pathlib
import typing

import attr
import git

from .utils import RepositoryError

log = logging.getLogger(__name__)

# Exit status of `git config` when a key or section is missing.
MISSING = (1, 5, 128)


class AlreadyExists(Exception):
    pass


class DoesNotExist(Exception):
    pass


@attr.s(frozen=True)
class Repository:
    """The parts of a non-bare git repository that git-agecrypt uses."""
    repo: git.Repo = attr.ib()

    @classmethod
    def discover(cls, path: pathlib.Path) -> 'Repository':
        try:
            repo = git.Repo(path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            raise RepositoryError(f"'{path}' is not a git repository")
        if repo.bare:
            raise RepositoryError(f"Bare repositories are unsupported {path}")
        return cls(repo)

    @property
    def workdir(self) -> pathlib.Path:
        return pathlib.Path(self.repo.working_tree_dir)

    @property
    def path(self) -> pathlib.Path:
        return pathlib.Path(self.repo.git_dir)

    def config(self, *arguments: str) -> str:
        log.debug(f"Running git config {' '.join(arguments)}")
        try:
            return self.repo.git.config('--local', *arguments)
        except git.exc.GitCommandError as error:
            if error.status in MISSING:
                raise DoesNotExist(arguments[-1]) from error
            raise RepositoryError(f"git config {' '.join(arguments)} failed: {error.stderr.strip()}")

    def list_config(self, key: str) -> typing.List[str]:
        try:
            output = self.config('--get-all', key)
        except DoesNotExist:
            return []
        return output.splitlines()

    def contains_config(self, key: str, value: str) -> bool:
        return value in self.list_config(key)

    def add_config(self, key: str, value: str) -> None:
        if self.contains_config(key, value):
            raise AlreadyExists(value)
        self.config('--add', key, value)

    def remove_config(self, key: str, value: str) -> None:
        if not self.contains_config(key, value):
            raise DoesNotExist(value)
        self.config('--fixed-value', '--unset-all', key, value)

    def get_config(self, key: str) -> typing.Optional[str]:
        try:
            return self.config('--get', key)
        except DoesNotExist:
            return None

    def set_config(self, key: str, value: str) -> None:
        self.config(key, value)

    def remove_section(self, section: str) -> bool:
        try:
            self.config('--remove-section', section)
        except DoesNotExist:
            log.warning(f"Section {section} was not configured")
            return False
        return True
