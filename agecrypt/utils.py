import os
import pathlib
import stat
import tempfile
import typing

import click
import git


class AgecryptException(click.ClickException):
    pass


class ConfigurationError(AgecryptException):
    pass


class RepositoryError(AgecryptException):
    pass


class CryptoError(AgecryptException):
    pass


class NotEncryptedError(CryptoError):
    def __init__(self, message: str = "Input isn't encrypted"):
        super().__init__(message)


class UnsupportedEnvelopeError(CryptoError):
    pass


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None
    if repo.working_tree_dir is None:
        return None
    return pathlib.Path(repo.working_tree_dir)


def relative_to_root(path: pathlib.Path, root: pathlib.Path) -> pathlib.PurePosixPath:
    """
    Resolve a path against the repository root.

    Relative paths are taken relative to the current directory, which is the
    repository root when git runs a filter.
    """
    absolute = (pathlib.Path.cwd() / path).resolve()
    try:
        relative = absolute.relative_to(root.resolve())
    except ValueError:
        raise ConfigurationError(
            f"Not a path inside git repository, path={path}, repo={root}")
    return pathlib.PurePosixPath(relative.as_posix())


def atomic_write(path: pathlib.Path, data: bytes) -> None:
    """
    Replace the contents of a file without exposing a partial write.

    The permissions of an existing file are kept, new files get the usual
    umask-derived mode rather than the private mode of a temporary file.
    """
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        mode = 0o666 & ~umask

    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.')
    try:
        with os.fdopen(fd, 'wb') as f:
            os.fchmod(f.fileno(), mode)
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
