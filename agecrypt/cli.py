import logging
import pathlib
import sys
import typing

import click

from . import __doc__, __version__
from .config import Identity
from .context import Context
from .repository import Repository
from .utils import AgecryptException, RepositoryError, find_git_directory

log = logging.getLogger(__name__)


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


def ok(text: str) -> str:
    return click.style(text, fg='green')


def bad(text: str) -> str:
    return click.style(text, fg='red')


def report(changed: bool, done: str, nothing: str) -> None:
    if changed:
        click.echo(done)
    else:
        click.secho(f"{nothing}, nothing to do", fg='yellow')


def echo_identities(context: Context) -> None:
    identities = context.identities().list()
    if not identities:
        click.echo("No identities are configured.")
        return

    padding = max(len(identity.path) for identity in identities)
    click.echo("The following identities are currently configured:")
    for identity in identities:
        try:
            identity.validate()
        except AgecryptException as error:
            click.echo(f"    {bad('⨯')} {identity.path:{padding}} -- {error.message}")
        else:
            click.echo(f"    {ok('✓')} {identity.path}")


def echo_recipients(context: Context) -> None:
    entries = context.recipients().list()
    if not entries:
        click.echo("No recipients are configured.")
        return

    click.echo("The following paths are encrypted for recipients:")
    for path, recipient in entries:
        click.echo(f"    {path}: {recipient}")


@click.group(help=__doc__)
@click.version_option(__version__, prog_name='git-agecrypt')
@click.option(
    '-C', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=find_git_directory,
    help="Defaults to the current git repository.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    envvar='GIT_AGECRYPT_DEBUG',
    help="Enable debug logging.")
@click.pass_context
def main(ctx, debug: bool, path: typing.Optional[pathlib.Path]):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    if path is None:
        raise RepositoryError("Not inside a git repository")
    ctx.obj = Context(Repository.discover(path))


@main.command()
@click.pass_obj
def init(context: Context):
    """Set up the repository for use with git-agecrypt."""
    context.configure_filter()
    click.echo("Configured the git-agecrypt filter. Select files to encrypt in .gitattributes:")
    click.echo("\n    <path> filter=git-agecrypt diff=git-agecrypt\n")


@main.command()
@click.pass_obj
def deinit(context: Context):
    """Remove repository specific configuration and cached data."""
    context.deconfigure_filter()
    context.remove_sidecar_files()
    click.echo("Removed the git-agecrypt filter and cached data.")


@main.command()
@click.pass_obj
def status(context: Context):
    """Display configuration status information."""
    if context.is_configured():
        click.echo(f"Filter is {ok('installed')}.")
    else:
        click.echo(f"Filter is {bad('not installed')}, run 'git-agecrypt init'.")
    echo_identities(context)
    echo_recipients(context)


@main.group()
def config():
    """Configure encryption settings."""


identity_option = click.option(
    '-i', '--identity',
    type=PathType(dir_okay=False),
    default=None,
    help="Identity usable for decryption.")

recipients_option = click.option(
    '-r', '--recipient', 'recipients',
    metavar='RECIPIENT',
    multiple=True,
    type=click.STRING,
    help="Recipient to encrypt for, may be repeated.")

paths_option = click.option(
    '-p', '--path', 'paths',
    metavar='PATH',
    multiple=True,
    type=PathType(dir_okay=False),
    help="Path to encrypt, may be repeated.")


@config.command()
@identity_option
@recipients_option
@paths_option
@click.pass_obj
def add(
        context: Context,
        identity: typing.Optional[pathlib.Path],
        recipients: typing.Sequence[str],
        paths: typing.Sequence[pathlib.Path]):
    """
    Add an identity, or recipients for paths.

    \b
        $ git-agecrypt config add -i ~/.config/age/key.txt
        $ git-agecrypt config add -r age1... -p secrets/token.txt
    """
    if identity and (recipients or paths):
        raise click.UsageError("Use either --identity or --recipient/--path")

    if identity:
        entry = Identity.from_path(identity)
        report(context.identities().add(entry),
               f"Added identity {entry}",
               f"Identity {entry} is already configured")
    elif recipients and paths:
        mapping = context.recipients()
        before = mapping.snapshot()
        changed = mapping.add(recipients, paths)
        if changed:
            mapping.save()
            context.forget_ciphertexts(mapping.changed_since(before))
        report(changed,
               f"Added {len(recipients)} recipient(s) for {len(paths)} path(s)",
               "All recipients are already configured")
    else:
        raise click.UsageError("Use --identity, or --recipient together with --path")


@config.command()
@identity_option
@recipients_option
@paths_option
@click.pass_obj
def remove(
        context: Context,
        identity: typing.Optional[pathlib.Path],
        recipients: typing.Sequence[str],
        paths: typing.Sequence[pathlib.Path]):
    """
    Remove an identity, or recipients.

    Without --path the recipients are removed from every path. Without
    --recipient every recipient is removed from the paths.
    """
    if identity and (recipients or paths):
        raise click.UsageError("Use either --identity or --recipient/--path")

    if identity:
        entry = Identity.from_path(identity)
        report(context.identities().remove(entry),
               f"Removed identity {entry}",
               f"Identity {entry} is not configured")
    elif recipients or paths:
        mapping = context.recipients()
        before = mapping.snapshot()
        changed = mapping.remove(recipients, paths)
        if changed:
            mapping.save()
            context.forget_ciphertexts(mapping.changed_since(before))
        report(changed, "Removed recipients", "No matching recipients are configured")
    else:
        raise click.UsageError("Use --identity, --recipient or --path")


@config.command(name='list')
@click.option('-i', '--identity', 'identities', is_flag=True, help="List identities.")
@click.option('-r', '--recipient', 'recipients', is_flag=True, help="List recipients.")
@click.pass_obj
def list_(context: Context, identities: bool, recipients: bool):
    """List identities or recipients."""
    if identities == recipients:
        raise click.UsageError("Use exactly one of --identity or --recipient")

    if identities:
        echo_identities(context)
    else:
        echo_recipients(context)


file_option = click.option(
    '-f', '--file',
    type=PathType(),
    required=True,
    help="Path of the file relative to the repository root.")

identities_option = click.option(
    '-i', '--identities',
    metavar='IDENTITY',
    multiple=True,
    type=click.STRING,
    help="Additional identities to use.")


@main.command(hidden=True)
@file_option
@click.option(
    '--rules',
    type=PathType(dir_okay=False),
    default=None,
    help="Take recipients from a secrets.nix rules file.")
@click.pass_obj
def clean(context: Context, file: pathlib.Path, rules: typing.Optional[pathlib.Path]):
    """Encrypt files for commit."""
    context.filters(context.recipient_source(rules)).clean(
        file,
        sys.stdin.buffer,
        sys.stdout.buffer)


@main.command(hidden=True)
@file_option
@identities_option
@click.pass_obj
def smudge(context: Context, file: pathlib.Path, identities: typing.Sequence[str]):
    """Decrypt files from checkout."""
    context.filters().smudge(
        file,
        identities,
        sys.stdin.buffer,
        sys.stdout.buffer)


@main.command(hidden=True)
@identities_option
@click.argument('path', type=PathType(dir_okay=False, exists=True))
@click.pass_obj
def textconv(context: Context, identities: typing.Sequence[str], path: pathlib.Path):
    """Decrypt files for diff."""
    context.filters().textconv(
        path,
        identities,
        sys.stdout.buffer)
