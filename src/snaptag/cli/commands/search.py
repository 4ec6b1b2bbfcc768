"""Search command."""

from typing import Optional

import click

from snaptag.cli.base import CliCommand
from snaptag.search import search_images


@click.command(name='search')
@click.argument('term', required=False)
@click.option('--tag', 'tags', multiple=True, help='Required tag (repeatable)')
@click.option('--source', 'sources', multiple=True, help='Source URL substring (repeatable)')
@click.option('--sort-by', default='upload_date', help='upload_date, title, filename, file_size, width or height')
@click.option('--sort-order', default='desc', type=click.Choice(['asc', 'desc'], case_sensitive=False))
@click.option('--limit', default=None, type=int, help='Maximum number of results')
def search_command(term: Optional[str], tags: tuple, sources: tuple, sort_by: str, sort_order: str,
                   limit: Optional[int]):
    """Search the catalogue by free text and/or required tags."""
    cmd = SearchCommand(term, list(tags), list(sources), sort_by, sort_order, limit)
    cmd.execute()


class SearchCommand(CliCommand):
    def __init__(self, term, tags, sources, sort_by, sort_order, limit):
        super().__init__()
        self.request = {
            "searchTerm": term,
            "tags": tags or None,
            "sources": sources or None,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "limit": limit,
        }

    def run(self):
        images = search_images(self.db, self.request)
        click.echo(f"{len(images)} images")
        for image in images:
            focused = [ft.tag_name for ft in image.focused_tags]
            line = f"#{image.id:<6} {image.filename:<40} tags={', '.join(image.tag_names)}"
            if focused:
                line += f" focused={', '.join(focused)}"
            click.echo(line)
