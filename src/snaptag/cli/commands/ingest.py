"""Image ingestion command."""

import logging
from pathlib import Path
from typing import List, Optional

import click

from snaptag.cli.base import CliCommand
from snaptag.exceptions import Conflict, ValidationError
from snaptag.image import ImageProcessor
from snaptag.images import ImageRepository

logger = logging.getLogger(__name__)


@click.command(name='ingest')
@click.argument('path', type=click.Path(exists=True))
@click.option('--tag', 'tags', multiple=True, help='Global tag to apply (repeatable)')
@click.option('--source-url', default=None, help='Page or image URL the file came from (single file only)')
@click.option('--title', default=None, help='Display title (single file only)')
@click.option('--description', default=None, help='Free-text description')
@click.option('--recursive/--no-recursive', default=True, help='Process subdirectories')
def ingest_command(path: str, tags: tuple, source_url: Optional[str], title: Optional[str],
                   description: Optional[str], recursive: bool):
    """Catalogue an image file, or every image in a directory."""
    if not Path(path).is_file():
        for flag, value in (('--source-url', source_url), ('--title', title)):
            if value is not None:
                raise click.UsageError(f"{flag} applies to a single file, not a directory")
    cmd = IngestCommand(path, list(tags), source_url, title, description, recursive)
    cmd.execute()


class IngestCommand(CliCommand):
    """Command to catalogue images from the local filesystem."""

    def __init__(self, path: str, tags: List[str], source_url: Optional[str] = None,
                 title: Optional[str] = None, description: Optional[str] = None, recursive: bool = True):
        super().__init__()
        self.path = Path(path)
        self.tags = tags
        self.source_url = source_url
        self.title = title
        self.description = description
        self.recursive = recursive
        self.processor = ImageProcessor()

    def run(self):
        """Execute ingest command."""
        files = self._find_images()
        click.echo(f"Found {len(files)} images in {self.path}")
        if not files:
            return

        repo = ImageRepository(self.db)
        created = skipped = failed = 0
        for image_path in files:
            try:
                image = self._ingest_one(repo, image_path)
            except Conflict as exc:
                skipped += 1
                click.echo(f"  skipped {image_path.name}: {exc.message}")
                continue
            except ValidationError as exc:
                failed += 1
                click.echo(f"  failed {image_path.name}: {exc.message}", err=True)
                continue
            created += 1
            click.echo(f"  #{image.id} {image.filename} ({image.width}x{image.height}) tags={image.tag_names}")

        click.echo(f"\n✓ Created {created}, skipped {skipped} duplicates, {failed} failed")

    def _find_images(self) -> List[Path]:
        if self.path.is_file():
            return [self.path] if self.processor.is_supported(self.path.name) else []
        pattern = '**/*' if self.recursive else '*'
        return sorted(
            p for p in self.path.glob(pattern)
            if p.is_file() and self.processor.is_supported(p.name)
        )

    def _ingest_one(self, repo: ImageRepository, image_path: Path):
        data = image_path.read_bytes()
        info = self.processor.extract_info(data, image_path.name)
        payload = {
            "filename": image_path.name,
            "original_name": image_path.name,
            "title": self.title or image_path.stem,
            "description": self.description,
            "source_url": self.source_url,
            **info,
        }
        return repo.create(payload, tags=self.tags)
