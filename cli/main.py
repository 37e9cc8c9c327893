"""CLI entry point for browsing novels and managing backups.

Usage:
  novelstore list                     list local and remote novels
  novelstore show ID [--remote]       show a novel's books and chapters
  novelstore read ID BOOK CHAPTER     print a chapter
  novelstore backup create|list|delete|restore
  novelstore remote configure|test
"""

import asyncio
import logging
import sys

import click

from backup.archiver import BackupManager
from cli.theme import (
    get_console,
    app_header,
    backup_table,
    command_panel,
    novel_summary_panel,
    novel_table,
    structure_tree,
    success_panel,
)
from config.exceptions import NotFoundError, NovelStoreError, RestoreError, public_message
from config.logging_config import setup_logging
from config.settings import Settings
from models.database import Database
from storage.library import NovelLibrary

logger = logging.getLogger(__name__)

console = get_console()


def _init_logging(verbose: bool, settings: Settings):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _run(coro):
    """Run a coroutine; store errors are printed and exit with status 1."""
    try:
        return asyncio.run(coro)
    except NovelStoreError as e:
        logger.debug("Command failed: %s", e)
        console.print(f"[error]{public_message(e)}[/]")
        sys.exit(1)


class AppContext:
    """Objects shared by every subcommand of one invocation."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.database = Database(settings.users_db_path)
        self.library = NovelLibrary(settings, self.database)
        self.backups = BackupManager(settings, self.database)


pass_app = click.make_pass_decorator(AppContext)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """novelstore: local and WebDAV novel libraries."""
    settings = Settings()
    _init_logging(verbose, settings)
    ctx.obj = AppContext(settings)


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------

@cli.command(name="list")
@click.option("--user-id", "-u", default=None, type=int, help="Include this user's remote novels")
@pass_app
def list_novels(app: AppContext, user_id):
    """List local novels, then remote novels if configured."""
    local, remote = _run(app.library.list_all_novels(user_id))

    console.print(app_header())
    if not local and not remote:
        console.print("[warning]No novels yet.[/]")
        return
    if local:
        console.print(novel_table(local, title="Local novels"))
    if remote:
        console.print(novel_table(remote, title="Remote novels"))


@cli.command()
@click.argument("novel_id")
@click.option("--remote", "-r", is_flag=True, help="Read from the remote store")
@click.option("--user-id", "-u", default=None, type=int, help="Owner of the remote credentials")
@pass_app
def show(app: AppContext, novel_id, remote, user_id):
    """Show a novel's summary and book/chapter structure."""
    store = app.library.store(remote, user_id)
    detail = _run(store.get_novel(novel_id))

    console.print(novel_summary_panel(detail.novel))
    console.print(structure_tree(detail))


@cli.command()
@click.argument("novel_id")
@click.argument("book")
@click.argument("chapter")
@click.option("--remote", "-r", is_flag=True, help="Read from the remote store")
@click.option("--user-id", "-u", default=None, type=int, help="Owner of the remote credentials")
@pass_app
def read(app: AppContext, novel_id, book, chapter, remote, user_id):
    """Print a chapter's raw text."""
    store = app.library.store(remote, user_id)
    content = _run(store.read_chapter(novel_id, book, chapter))
    click.echo(content)


# ---------------------------------------------------------------------------
# Backups
# ---------------------------------------------------------------------------

@cli.group()
def backup():
    """Create, list, delete and restore backups."""


@backup.command(name="create")
@pass_app
def backup_create(app: AppContext):
    info = _run(app.backups.create_backup())
    console.print(success_panel("Backup created", f"{info.name}"))


@backup.command(name="list")
@pass_app
def backup_list(app: AppContext):
    backups = _run(app.backups.list_backups())
    if not backups:
        console.print("[warning]No backups yet.[/]")
        return
    console.print(backup_table(backups))


@backup.command(name="delete")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_app
def backup_delete(app: AppContext, name, yes):
    if not yes and not click.confirm(f"Delete backup {name}?"):
        return
    _run(app.backups.delete_backup(name))
    console.print(f"[success]Deleted {name}[/]")


@backup.command(name="restore")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_app
def backup_restore(app: AppContext, name, yes):
    """Replace the local novels and user database with a backup."""
    if not yes and not click.confirm(f"Restore {name}? Current local novels will be replaced"):
        return
    try:
        result = asyncio.run(app.backups.restore_backup(name))
    except RestoreError as e:
        if e.is_partial:
            console.print(
                "[error]Restore failed partway; the store now mixes backup and live data "
                f"(novels restored: {e.novels_restored}, database restored: {e.database_restored}).[/]"
            )
        else:
            console.print(f"[error]{public_message(e)}[/]")
        sys.exit(1)
    except NovelStoreError as e:
        console.print(f"[error]{public_message(e)}[/]")
        sys.exit(1)

    console.print(command_panel("Restored", {
        "Novels": "yes" if result.novels_restored else "not in archive",
        "Database": "yes" if result.database_restored else "not in archive",
    }))


# ---------------------------------------------------------------------------
# Remote (WebDAV) settings
# ---------------------------------------------------------------------------

@cli.group()
def remote():
    """Manage a user's WebDAV connection."""


@remote.command(name="configure")
@click.option("--user-id", "-u", required=True, type=int, help="User to configure")
@click.option("--url", default=None, help="WebDAV base URL")
@click.option("--username", default=None, help="WebDAV username")
@click.option("--password", default=None, help="WebDAV password")
@click.option("--enable/--disable", default=None, help="Turn the remote store on or off")
@pass_app
def remote_configure(app: AppContext, user_id, url, username, password, enable):
    """Update only the given connection fields."""
    if app.database.get_user(user_id) is None:
        console.print(f"[error]{public_message(NotFoundError('User not found'))}[/]")
        sys.exit(1)

    fields = {}
    if url is not None:
        fields["url"] = url
    if username is not None:
        fields["username"] = username
    if password is not None:
        fields["password"] = password
    if enable is not None:
        fields["enabled"] = enable
    config = app.database.update_remote_config(user_id, **fields)

    console.print(command_panel("Remote storage", {
        "Enabled": "yes" if config.enabled else "no",
        "URL": config.url or "-",
        "Username": config.username or "-",
        "Password": "set" if config.password else "-",
    }))


@remote.command(name="test")
@click.option("--user-id", "-u", required=True, type=int, help="User whose connection to test")
@pass_app
def remote_test(app: AppContext, user_id):
    """Connect and count the novels on the server."""
    count = _run(app.library.remote(user_id).test_connection())
    console.print(success_panel("Connected", f"{count} novel(s) found"))


if __name__ == "__main__":
    cli()
