"""tagdb CLI: tag files and find them again with boolean tag queries.

Commands:
    tagdb init                       create the store (~/.tagdb, or ./.tagdb with --local)
    tagdb create TAG...              create empty tags
    tagdb tag +TAG -TAG FILE...      add/remove tags on files (shorthand: tagdb +TAG FILE)
    tagdb query FILE...              tags applied to files (--files: files matching "mp3 & !music")
    tagdb list [PATTERN]             all tags (or files with --files)
    tagdb tags / tagdb files         shorthand for --tags list / --files list
    tagdb clone SRC DST              new element with all relations of SRC
    tagdb merge A B...               share relations between elements
    tagdb rename OLD NEW             move relations to NEW and delete OLD
    tagdb delete NAME...             soft-delete (relations are detached)
    tagdb recover NAME...            undo delete, re-attaching relations
    tagdb status                     store summary
    tagdb check                      report asymmetric relations
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import click

from tagdb import ops
from tagdb.config import Options, TagDBConfig, Verbosity, init_config, load_config
from tagdb.errors import ParseError, StoreError, TagDBError, UsageError
from tagdb.models import EntityKind
from tagdb.paths import to_external, to_internal
from tagdb.store import RelationStore

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from tagdb.setlist import SetList

logger = logging.getLogger("tagdb.cli")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass
class _State:
    cfg: TagDBConfig
    options: Options

    @property
    def store(self) -> RelationStore:
        return RelationStore(self.cfg)


def _configure_logging(verbosity: Verbosity) -> None:
    level = {
        Verbosity.QUIET: logging.ERROR,
        Verbosity.NORMAL: logging.WARNING,
        Verbosity.DEBUG: logging.DEBUG,
    }[verbosity]
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    logging.getLogger("tagdb").setLevel(level)


@contextlib.contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn tagdb errors into click errors (exit code 1)."""
    try:
        yield
    except (UsageError, ParseError) as exc:
        raise click.ClickException(str(exc)) from exc
    except StoreError as exc:
        logger.debug("store error", exc_info=True)
        raise click.ClickException(f"{exc}\nIs the store initialized? Try 'tagdb init'.") from exc
    except TagDBError as exc:
        raise click.ClickException(str(exc)) from exc


def _inputs(values: Iterable[str]) -> list[str]:
    names = [to_internal(v) for v in values]
    if any(not n for n in names):
        raise click.UsageError("Empty argument detected.")
    return names


def _say(state: _State, message: str) -> None:
    """Normal-verbosity status line (suppressed by --quiet)."""
    if not state.options.quiet:
        click.echo(message)


def _output(names: SetList) -> None:
    for name in names:
        click.echo(to_external(name))


def _with_mode(state: _State, mode: EntityKind) -> _State:
    return _State(cfg=state.cfg, options=Options(
        mode=mode,
        verbosity=state.options.verbosity,
        trash=state.options.trash,
    ))


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


class _TagDBGroup(click.Group):
    """Group that routes ``tagdb +tag -tag FILE...`` to the ``tag`` command."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        i = 0
        while i < len(args) and args[i].startswith("--"):
            if args[i] == "--store":
                i += 1
            i += 1
        if (
            i < len(args)
            and args[i][:1] in ("+", "-")
            and len(args[i]) > 1
            and not args[i].startswith("--")
            and args[i] not in self.commands
        ):
            logger.debug("assuming shorthand syntax for operation 'tag'")
            args = [*args[:i], "tag", *args[i:]]
        return super().parse_args(ctx, args)


@click.group(cls=_TagDBGroup)
@click.version_option(package_name="tagdb")
@click.option("--tags", "mode", flag_value=EntityKind.TAG.value, help="Apply operation on tags (default)")
@click.option("--files", "mode", flag_value=EntityKind.FILE.value, help="Apply operation on files")
@click.option("--local", is_flag=True, help="Use the store in the current directory (./.tagdb)")
@click.option("--trash", is_flag=True, help="Restrict listing to deleted elements")
@click.option("--quiet", "verbosity", flag_value=Verbosity.QUIET.name, help="Suppress normal output")
@click.option("--debug", "verbosity", flag_value=Verbosity.DEBUG.name, help="Trace operations to stderr")
@click.option("--store", "store_dir", default=None, type=click.Path(file_okay=False), help="Store directory")
@click.pass_context
def cli(
    ctx: click.Context,
    mode: str | None,
    local: bool,
    trash: bool,
    verbosity: str | None,
    store_dir: str | None,
) -> None:
    """tagdb: tag files and query them by tags."""
    level = Verbosity[verbosity] if verbosity else Verbosity.NORMAL
    _configure_logging(level)
    try:
        cfg = load_config(store_dir, local=local)
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    options = Options(
        mode=EntityKind(mode) if mode else cfg.default_mode,
        verbosity=level,
        trash=trash,
    )
    ctx.obj = _State(cfg=cfg, options=options)

    if ctx.invoked_subcommand != "init" and not cfg.is_initialized():
        click.echo(f"Store not found at {cfg.root}. Try 'tagdb init'.", err=True)


pass_state = click.make_pass_decorator(_State)


# ---------------------------------------------------------------------------
# tagdb init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@pass_state
def init(state: _State, name: str | None) -> None:
    """Create an empty store (tags/ and files/ directories plus tagdb.toml)."""
    cfg = state.cfg
    with _handle_errors():
        created = ops.init_store(cfg)
    with contextlib.suppress(FileExistsError):
        config_path = init_config(cfg.root, name=name)
        _say(state, f"Created {config_path}")
    if created:
        _say(state, f"Store successfully created at {cfg.root}.")
    else:
        _say(state, f"Store already set up at {cfg.root}: nothing to do.")


# ---------------------------------------------------------------------------
# tagdb create / clone / merge / rename
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("names", nargs=-1, required=True)
@pass_state
def create(state: _State, names: tuple[str, ...]) -> None:
    """Create one or more empty tags.

    \b
    tagdb create mp3 music
    """
    with _handle_errors():
        outcome = ops.create(state.store, state.options, _inputs(names))
    _say(state, f"{outcome.done} tag(s) successfully created, {outcome.ignored} tag(s) ignored.")


@cli.command()
@click.argument("source")
@click.argument("target")
@pass_state
def clone(state: _State, source: str, target: str) -> None:
    """Create TARGET with every relation of SOURCE.

    \b
    tagdb clone mp3 audio
    tagdb --files clone a.mp3 b.mp3
    """
    source, target = _inputs((source, target))
    with _handle_errors():
        ops.clone(state.store, state.options, source, target)
    _say(state, f"1 {state.options.mode.label} successfully cloned.")


@cli.command()
@click.argument("names", nargs=-1, required=True)
@pass_state
def merge(state: _State, names: tuple[str, ...]) -> None:
    """Merge elements: relations of each are applied to all."""
    with _handle_errors():
        n = ops.merge(state.store, state.options, _inputs(names))
    if n:
        _say(state, f"{n} {state.options.mode.dirname} successfully merged.")
    else:
        _say(state, "Nothing to do.")


@cli.command()
@click.argument("old")
@click.argument("new")
@pass_state
def rename(state: _State, old: str, new: str) -> None:
    """Rename an element (relations move to the new name)."""
    old, new = _inputs((old, new))
    with _handle_errors():
        ops.rename(state.store, state.options, old, new)
    _say(state, f"1 {state.options.mode.label} successfully renamed.")


# ---------------------------------------------------------------------------
# tagdb delete / recover
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("names", nargs=-1, required=True)
@pass_state
def delete(state: _State, names: tuple[str, ...]) -> None:
    """Delete elements (all relations are detached). Wildcards allowed."""
    label = state.options.mode.label
    with _handle_errors():
        outcome = ops.delete(state.store, state.options, _inputs(names))
    for name in outcome.missing:
        click.echo(f"{label.capitalize()} '{to_external(name)}' not found", err=True)
    _say(state, f"{outcome.done} {label}(s) successfully deleted, {outcome.ignored} {label}(s) ignored.")


@cli.command()
@click.argument("names", nargs=-1, required=True)
@pass_state
def recover(state: _State, names: tuple[str, ...]) -> None:
    """Recover deleted elements and their relations. Wildcards allowed."""
    label = state.options.mode.label
    with _handle_errors():
        outcome = ops.recover(state.store, state.options, _inputs(names))
    for name in outcome.missing:
        click.echo(f"Deleted {label} '{to_external(name)}' not found", err=True)
    _say(state, f"{outcome.done} {label}(s) successfully recovered, {outcome.ignored} {label}(s) ignored.")


# ---------------------------------------------------------------------------
# tagdb tag
# ---------------------------------------------------------------------------


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@pass_state
def tag(state: _State, args: tuple[str, ...]) -> None:
    """Add (+TAG) or remove (-TAG) tags on one or more files.

    \b
    tagdb tag +mp3 +music sound.mp3
    tagdb -music sound.mp3
    tagdb +holiday 'photos/2024-*'
    """
    with _handle_errors():
        summary = ops.tag(state.store, state.options, _inputs(args))
    for name in summary.skipped:
        click.echo(f"Tag '{to_external(name)}' does not exist, not removed", err=True)
    if not summary.files:
        _say(state, "Nothing to do.")
        return
    if summary.tags_created:
        _say(state, f"{summary.tags_created} tag(s) created.")
    if summary.added:
        _say(state, f"{len(summary.added)} tag(s) added to {summary.files} file(s).")
    if summary.removed:
        _say(state, f"{len(summary.removed)} tag(s) removed from {summary.files} file(s).")


# ---------------------------------------------------------------------------
# tagdb list / tags / files
# ---------------------------------------------------------------------------


def _list(state: _State, pattern: str | None) -> None:
    options = state.options
    if pattern is not None:
        (pattern,) = _inputs((pattern,))
    with _handle_errors():
        names = ops.list_elements(state.store, options, pattern)
    if names:
        _output(names)
    elif pattern is not None:
        _say(state, f"No {options.mode.label} with given name in database.")
    elif options.mode is EntityKind.TAG:
        _say(state, "No tag in database.")
    else:
        _say(state, "No file has been tagged yet.")


@cli.command("list")
@click.argument("pattern", required=False)
@pass_state
def list_cmd(state: _State, pattern: str | None) -> None:
    """Show all elements of the current mode, or those matching PATTERN.

    \b
    tagdb list
    tagdb --files list '/home/me/music/*'
    tagdb --trash list
    """
    _list(state, pattern)


@cli.command()
@click.argument("pattern", required=False)
@pass_state
def tags(state: _State, pattern: str | None) -> None:
    """Shorthand for 'tagdb --tags list'."""
    _list(_with_mode(state, EntityKind.TAG), pattern)


@cli.command()
@click.argument("pattern", required=False)
@pass_state
def files(state: _State, pattern: str | None) -> None:
    """Shorthand for 'tagdb --files list'."""
    _list(_with_mode(state, EntityKind.FILE), pattern)


# ---------------------------------------------------------------------------
# tagdb query
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("criteria", nargs=-1)
@pass_state
def query(state: _State, criteria: tuple[str, ...]) -> None:
    """Retrieve elements related to the given criteria.

    In tag mode (default), shows the tags applied to the given files. With
    --files, finds files by tag names, wildcards or boolean queries. Several
    criteria are combined with OR.

    \b
    tagdb query sound.mp3
    tagdb --files query mp3
    tagdb --files query 'mp3 & !music'
    tagdb --files query '{rock&roll} | jazz'
    """
    if not criteria:
        _list(state, None)
        return
    options = state.options
    with _handle_errors():
        names = ops.query(state.store, options, _inputs(criteria))
    if names:
        _output(names)
    elif options.mode is EntityKind.TAG:
        _say(state, "No tag currently applied on given file(s).")
    else:
        _say(state, "No file currently tagged with given tag(s).")


# ---------------------------------------------------------------------------
# tagdb status / check
# ---------------------------------------------------------------------------


@cli.command()
@pass_state
def status(state: _State) -> None:
    """Show store location and element counts."""
    from rich.console import Console
    from rich.table import Table

    cfg = state.cfg
    console = Console()

    table = Table(title=f"tagdb: {cfg.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as _pkg_version
    try:
        _ver = _pkg_version("tagdb")
    except PackageNotFoundError:
        _ver = "unknown"
    table.add_row("Version", _ver)
    table.add_row("Store", str(cfg.root))
    table.add_row("Config", str(cfg.config_path) if cfg.config_path.exists() else "[dim](defaults)[/dim]")
    table.add_row("Default mode", cfg.default_mode.dirname)
    table.add_row("", "")

    if not cfg.is_initialized():
        table.add_row("Records", "[red]no store, run `tagdb init`[/red]")
    else:
        store = state.store
        with _handle_errors():
            for kind in (EntityKind.TAG, EntityKind.FILE):
                table.add_row(kind.dirname.capitalize(), str(len(store.list_all(kind))))
                trashed = len(store.list_trashed(kind))
                if trashed:
                    table.add_row(f"  Deleted {kind.dirname}", f"[yellow]{trashed}[/yellow]")

    console.print(table)


@cli.command()
@pass_state
def check(state: _State) -> None:
    """Report relations not mirrored on both sides (nothing is repaired)."""
    with _handle_errors():
        warnings = ops.check(state.store)
    if not warnings:
        _say(state, "All relations are symmetric.")
        return
    for warning in warnings:
        click.echo(to_external(str(warning)), err=True)
    click.echo(f"{len(warnings)} inconsistent relation(s). Re-run the tag operation to repair.", err=True)
    raise SystemExit(1)


def main() -> None:
    cli(prog_name="tagdb")


if __name__ == "__main__":
    main()


