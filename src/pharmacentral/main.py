"""CLI entrypoint for PharmaCentral."""

import logging
from pathlib import Path

import rich_click as click

from pharmacentral import __version__
from pharmacentral.controllers import (
    AggregateCommand,
    ArticlesCommand,
    CacheCommand,
    LocalizeCommand,
    PharmaCliController,
    RefreshCommand,
    TranslateCommand,
    WatchCommand,
)
from pharmacentral.session import DateRange, SortOrder

click.rich_click.USE_MARKDOWN = True
CONTROLLER = PharmaCliController()

_LANGUAGE_OPTION = click.option(
    "--lang",
    "language",
    type=click.Choice(["en", "ar"]),
    default="en",
    show_default=True,
    help="Language of listings and notifications.",
)
_DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="pharmacentral")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Verbosity of pipeline logs written to stderr.",
)
def pharmacentral(log_level: str) -> None:
    """Pharmaceutical news aggregation and translation CLI."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@pharmacentral.command("refresh")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
def refresh(db_path: Path | None, language: str) -> None:
    """Fetch every configured source once and store the merged articles."""

    _emit_lines(CONTROLLER.refresh(RefreshCommand(db_path=db_path, language=language)))


@pharmacentral.command("articles")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
@click.option("--category", "categories", multiple=True, help="Category filter. Can be repeated.")
@click.option("--source", "sources", multiple=True, help="Source filter. Can be repeated.")
@click.option("--search", default=None, help="Case-insensitive text search.")
@click.option(
    "--since",
    type=click.Choice([item.value for item in DateRange]),
    default=DateRange.ALL.value,
    show_default=True,
    help="Publication date window.",
)
@click.option(
    "--sort",
    type=click.Choice([item.value for item in SortOrder]),
    default=SortOrder.NEWEST.value,
    show_default=True,
    help="Sort order.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Maximum number of articles to print.",
)
def articles(  # noqa: PLR0913
    db_path: Path | None,
    language: str,
    categories: tuple[str, ...],
    sources: tuple[str, ...],
    search: str | None,
    since: str,
    sort: str,
    limit: int,
) -> None:
    """List stored articles; fetches feeds first when no fresh snapshot exists."""

    _emit_lines(
        CONTROLLER.articles(
            ArticlesCommand(
                db_path=db_path,
                categories=categories,
                sources=sources,
                search=search,
                since=DateRange(since),
                sort=SortOrder(sort),
                limit=limit,
                language=language,
            ),
        ),
    )


@pharmacentral.command("categories")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
def categories(db_path: Path | None, language: str) -> None:
    """Show article counts per category."""

    _emit_lines(CONTROLLER.categories(AggregateCommand(db_path=db_path, language=language)))


@pharmacentral.command("sources")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
def sources(db_path: Path | None, language: str) -> None:
    """Show article counts per source."""

    _emit_lines(CONTROLLER.sources(AggregateCommand(db_path=db_path, language=language)))


@pharmacentral.command("translate")
@_DB_PATH_OPTION
@click.argument("text")
@click.option("--source-lang", "source_language", default=None, help="Source language code.")
@click.option("--target-lang", "target_language", default=None, help="Target language code.")
def translate(
    db_path: Path | None,
    text: str,
    source_language: str | None,
    target_language: str | None,
) -> None:
    """Translate one text through cache, providers and the quality gate."""

    _emit_lines(
        CONTROLLER.translate(
            TranslateCommand(
                db_path=db_path,
                text=text,
                source_language=source_language,
                target_language=target_language,
            ),
        ),
    )


@pharmacentral.command("localize")
@_DB_PATH_OPTION
@click.option(
    "--mode",
    type=click.Choice(["visible", "all"]),
    default="visible",
    show_default=True,
    help="`visible` translates one page at a time, `all` batches every article.",
)
@click.option(
    "--pages",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of visible pages for `visible` mode.",
)
def localize(db_path: Path | None, mode: str, pages: int) -> None:
    """Add localized titles and excerpts to stored articles."""

    _emit_lines(CONTROLLER.localize(LocalizeCommand(db_path=db_path, mode=mode, pages=pages)))


@pharmacentral.command("watch")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
def watch(db_path: Path | None, language: str) -> None:
    """Load or refresh articles, then refresh on a fixed interval until interrupted."""

    _emit_lines(CONTROLLER.watch(WatchCommand(db_path=db_path, language=language)))


@pharmacentral.group()
def cache() -> None:
    """Translation cache commands."""


@cache.command("clear")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
def cache_clear(db_path: Path | None, language: str) -> None:
    """Delete every cached translation."""

    _emit_lines(CONTROLLER.cache_clear(CacheCommand(db_path=db_path, language=language)))


@cache.command("stats")
@_DB_PATH_OPTION
@_LANGUAGE_OPTION
def cache_stats(db_path: Path | None, language: str) -> None:
    """Purge expired translations and show cache counters."""

    _emit_lines(CONTROLLER.cache_stats(CacheCommand(db_path=db_path, language=language)))


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pharmacentral()
