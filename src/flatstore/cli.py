"""flatstore CLI: maintenance commands over a flat-file sayings table.

Commands:
    flatstore init                      create flatstore.toml + table dir
    flatstore write CONTENT AUTHOR      insert a saying
    flatstore show ID                   print one saying
    flatstore list                      newest first, paged, optional keyword
    flatstore modify ID CONTENT AUTHOR  overwrite a saying
    flatstore delete ID                 remove a saying
    flatstore search PATTERN            LIKE-style search (Mark%, %Tzu, %ar%)
    flatstore build                     rebuild data.json snapshot
    flatstore clear                     remove all records (ids keep counting)
    flatstore last-id                   print the identity counter
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import click

from flatstore.config import StoreConfig, init_config, load_config
from flatstore.errors import StoreError
from flatstore.models import Saying
from flatstore.service import SayingService
from flatstore.store import RecordStore

if TYPE_CHECKING:
    from collections.abc import Iterator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg(ctx: click.Context) -> StoreConfig:
    try:
        return load_config(ctx.obj.get("root"))
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def _service(ctx: click.Context) -> SayingService:
    cfg = _load_cfg(ctx)
    if not ctx.obj.get("verbose"):
        logging.getLogger("flatstore").setLevel(cfg.log_level)
    return SayingService(RecordStore.from_config(cfg))


def _echo_saying(saying: Saying) -> None:
    click.echo(f"{saying.id} / {saying.author} / {saying.content}")


@contextlib.contextmanager
def _store_errors() -> Iterator[None]:
    """Turn store and filesystem errors into ClickException."""
    try:
        yield
    except (StoreError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="flatstore")
@click.option("--dir", "root", default=None, help="Project root (default: search upward from cwd)")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
@click.pass_context
def cli(ctx: click.Context, root: str | None, verbose: bool) -> None:
    """flatstore — flat-file record store."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


# ---------------------------------------------------------------------------
# flatstore init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--table", default=None, help="Table name (default: sayings)")
@click.pass_context
def init(ctx: click.Context, table: str | None) -> None:
    """Create flatstore.toml and the table directory."""
    root_path = Path(ctx.obj.get("root") or ".").resolve()
    try:
        config_path = init_config(root_path, table=table)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("flatstore.toml already exists — skipping init")

    ctx.obj["root"] = str(root_path)
    cfg = _load_cfg(ctx)
    cfg.table_dir.mkdir(parents=True, exist_ok=True)
    click.echo(f"Table dir : {cfg.table_dir}")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("content")
@click.argument("author")
@click.pass_context
def write(ctx: click.Context, content: str, author: str) -> None:
    """Insert a new saying."""
    svc = _service(ctx)
    with _store_errors():
        saying = svc.write(content, author)
    click.echo(f"Saying {saying.id} registered.")


@cli.command()
@click.argument("saying_id", type=int)
@click.pass_context
def show(ctx: click.Context, saying_id: int) -> None:
    """Print one saying."""
    svc = _service(ctx)
    with _store_errors():
        saying = svc.find_by_id(saying_id)
    if saying is None:
        raise click.ClickException(f"Saying {saying_id} does not exist.")
    _echo_saying(saying)


@cli.command("list")
@click.option("--keyword", default="", help="Substring to search for")
@click.option(
    "--type", "keyword_type",
    type=click.Choice(["content", "author", "any"]),
    default="any", show_default=True,
)
@click.option("--page", "page_no", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--page-size", default=5, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def list_(ctx: click.Context, keyword: str, keyword_type: str, page_no: int, page_size: int) -> None:
    """List sayings newest first."""
    svc = _service(ctx)
    with _store_errors():
        page = svc.find_list_desc(keyword, keyword_type, page_size=page_size, page_no=page_no)
    click.echo("id / author / content")
    click.echo("-" * 22)
    for saying in page.items:
        _echo_saying(saying)
    click.echo("-" * 22)
    click.echo(f"page {page.page_no} / {page.total_pages} ({page.total_count} total)")


@cli.command()
@click.argument("saying_id", type=int)
@click.argument("content")
@click.argument("author")
@click.pass_context
def modify(ctx: click.Context, saying_id: int, content: str, author: str) -> None:
    """Overwrite a saying's content and author."""
    svc = _service(ctx)
    with _store_errors():
        saying = svc.find_by_id(saying_id)
        if saying is None:
            raise click.ClickException(f"Saying {saying_id} does not exist.")
        svc.modify(saying, content, author)
    click.echo(f"Saying {saying_id} modified.")


@cli.command()
@click.argument("saying_id", type=int)
@click.pass_context
def delete(ctx: click.Context, saying_id: int) -> None:
    """Delete a saying."""
    svc = _service(ctx)
    with _store_errors():
        deleted = svc.delete(saying_id)
    if not deleted:
        raise click.ClickException(f"Saying {saying_id} does not exist.")
    click.echo(f"Saying {saying_id} deleted.")


@cli.command()
@click.argument("pattern")
@click.option(
    "--field", "field_name",
    type=click.Choice(["author", "content"]),
    default="author", show_default=True,
)
@click.pass_context
def search(ctx: click.Context, pattern: str, field_name: str) -> None:
    """LIKE-style search: PREFIX%, %SUFFIX, %PART%, or an exact value."""
    svc = _service(ctx)
    with _store_errors():
        results = svc.store.find_by_field_like(pattern, field_name)
    for saying in sorted(results, key=lambda s: s.id):
        _echo_saying(saying)
    click.echo(f"{len(results)} match(es)")


# ---------------------------------------------------------------------------
# Table maintenance
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def build(ctx: click.Context) -> None:
    """Rebuild the data.json snapshot from the record files."""
    svc = _service(ctx)
    with _store_errors():
        path = svc.build()
    click.echo(f"Built {path}")


@cli.command()
@click.option("--reset-ids", is_flag=True, help="Also reset the id counter")
@click.confirmation_option(prompt="Delete every record in the table?")
@click.pass_context
def clear(ctx: click.Context, reset_ids: bool) -> None:
    """Remove every record (and the snapshot)."""
    svc = _service(ctx)
    with _store_errors():
        svc.store.clear(reset_ids=reset_ids)
    click.echo(f"Cleared {svc.store.table_dir}")


@cli.command("last-id")
@click.pass_context
def last_id(ctx: click.Context) -> None:
    """Print the highest id issued so far."""
    svc = _service(ctx)
    click.echo(str(svc.store.ids.load_last_id()))
