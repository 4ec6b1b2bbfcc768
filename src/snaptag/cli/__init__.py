"""SnapTag CLI entry point with lazy command registration."""

from __future__ import annotations

import logging

import click

from snaptag.settings import settings

_COMMANDS_REGISTERED = False


def _register_commands_once() -> None:
    global _COMMANDS_REGISTERED
    if _COMMANDS_REGISTERED:
        return

    from .commands import (
        ingest,
        search,
        suggest,
        tags,
    )

    cli.add_command(tags.init_db_command, name="init-db")
    cli.add_command(ingest.ingest_command, name="ingest")
    cli.add_command(search.search_command, name="search")
    cli.add_command(suggest.suggest_command, name="suggest")
    cli.add_command(suggest.suggest_untagged_command, name="suggest-untagged")
    cli.add_command(tags.recompute_tag_counts_command, name="recompute-tag-counts")

    _COMMANDS_REGISTERED = True


class _LazyCLIGroup(click.Group):
    def list_commands(self, ctx):
        _register_commands_once()
        return super().list_commands(ctx)

    def get_command(self, ctx, cmd_name):
        _register_commands_once()
        return super().get_command(ctx, cmd_name)


@click.group(cls=_LazyCLIGroup)
@click.option('--log-level', default=None, help='Override SNAPTAG_LOG_LEVEL')
def cli(log_level):
    """SnapTag CLI for local cataloguing, search and tag suggestions."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    cli()
