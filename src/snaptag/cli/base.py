"""Base command class for shared CLI setup/teardown."""

import click
from sqlalchemy.orm import sessionmaker

from snaptag.database import build_engine
from snaptag.exceptions import SnaptagError
from snaptag.settings import settings


class CliCommand:
    """Base class for all CLI commands with shared setup/teardown."""

    def __init__(self):
        self.engine = None
        self.Session = None
        self.db = None

    def setup_db(self):
        """Initialize database connection."""
        self.engine = build_engine(settings.database_url)
        self.Session = sessionmaker(bind=self.engine)
        self.db = self.Session()

    def cleanup_db(self):
        """Close database connection."""
        if self.db:
            self.db.close()
        if self.engine:
            self.engine.dispose()

    def run(self):
        """Execute command - override in subclasses."""
        raise NotImplementedError

    def execute(self):
        """Run with a database session, reporting domain errors as click errors."""
        self.setup_db()
        try:
            return self.run()
        except SnaptagError as exc:
            raise click.ClickException(f"{exc.kind}: {exc.message}") from exc
        finally:
            self.cleanup_db()
