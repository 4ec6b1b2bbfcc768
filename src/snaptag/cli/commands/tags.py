"""Database and tag maintenance commands."""

import click

from snaptag.cli.base import CliCommand
from snaptag.metadata import Base
from snaptag.tag_store import TagStore


@click.command(name='init-db')
def init_db_command():
    """Create the catalogue tables (use alembic for managed databases)."""
    InitDbCommand().execute()


class InitDbCommand(CliCommand):
    def run(self):
        Base.metadata.create_all(self.engine)
        click.echo(f"✓ Created tables: {', '.join(sorted(Base.metadata.tables))}")


@click.command(name='recompute-tag-counts')
def recompute_tag_counts_command():
    """Rebuild tag usage counters from the image links."""
    RecomputeTagCountsCommand().execute()


class RecomputeTagCountsCommand(CliCommand):
    def run(self):
        repaired = TagStore(self.db).recompute_usage_counts()
        click.echo(f"✓ Repaired {repaired} tag counters")
