"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

from models.backup import BackupInfo
from models.novel import Novel, NovelDetail
from tools.text_utils import format_bytes

NOVEL_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "origin.local": "green",
    "origin.remote": "magenta",
    "stat.label": "dim",
    "stat.value": "bold",
    "book.name": "bold cyan",
    "chapter.name": "blue",
})


def get_console() -> Console:
    """Return a Console instance with the novel theme applied."""
    return Console(theme=NOVEL_THEME)


def app_header(title: str = "novelstore") -> Rule:
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying labelled values.

    Args:
        title: Panel title.
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def novel_table(novels: list[Novel], title: str = "Novels") -> Table:
    table = Table(title=title, show_lines=True, border_style="dim")
    table.add_column("ID", style="accent")
    table.add_column("Title", style="bold")
    table.add_column("Origin")
    table.add_column("Books", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Last modified", style="muted")

    for n in novels:
        origin = "[origin.remote]remote[/]" if n.remote else "[origin.local]local[/]"
        table.add_row(
            n.id,
            n.title,
            origin,
            str(n.book_count),
            f"{n.word_count:,}",
            n.last_modified or "",
        )
    return table


def novel_summary_panel(novel: Novel) -> Panel:
    """Return a Panel with the novel's cached stats and synopsis."""
    synopsis = novel.synopsis or ""
    if len(synopsis) > 150:
        synopsis = synopsis[:150] + "..."

    body = (
        f"  [stat.label]Words:[/] [stat.value]{novel.word_count:,}[/]  "
        f"[muted]|[/]  [stat.label]Books:[/] [stat.value]{novel.book_count}[/]\n"
        f"  [stat.label]Synopsis:[/] {synopsis}"
    )
    return Panel(
        body,
        title=f"[bold]{novel.title}[/] [muted](ID: {novel.id})[/]",
        box=box.ROUNDED,
        border_style="dim",
        padding=(0, 2),
    )


def structure_tree(detail: NovelDetail) -> Tree:
    """Build a Rich Tree of books and chapters with word counts."""
    tree = Tree("[bold]Structure[/]")
    for book in detail.books:
        branch = tree.add(f"[book.name]{book.name}[/] [muted]({book.word_count:,} words)[/]")
        for chapter in book.chapters:
            branch.add(f"[chapter.name]{chapter.name}[/] [muted]{chapter.word_count:,}[/]")
        if not book.chapters:
            branch.add("[muted](empty)[/]")
    return tree


def backup_table(backups: list[BackupInfo]) -> Table:
    table = Table(title="Backups", show_lines=False, border_style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Created", style="muted")
    for b in backups:
        table.add_row(b.name, format_bytes(b.size), b.created.strftime("%Y-%m-%d %H:%M:%S"))
    return table
