"""Tag suggestion commands."""

import click

from snaptag.cli.base import CliCommand
from snaptag.images import ImageRepository
from snaptag.settings import settings
from snaptag.suggestions import SuggestionConfig, SuggestionEngine, VisualOracle
from snaptag.tag_store import TagStore


def _echo_suggestions(suggestions):
    if not suggestions:
        click.echo("    (no suggestions)")
    for suggestion in suggestions:
        click.echo(
            f"    [{suggestion.tier}] {suggestion.tag:<24} {suggestion.confidence:>3}%  {suggestion.reason}"
        )


class SuggestCommandBase(CliCommand):
    def suggestion_engine(self) -> SuggestionEngine:
        return SuggestionEngine(
            self.db,
            config=SuggestionConfig.from_settings(settings),
            oracle=VisualOracle.from_settings(settings),
        )


@click.command(name='suggest')
@click.argument('image_id', type=int)
@click.option('--apply', 'apply_count', default=0, type=int, help='Link the top N suggestions to the image')
def suggest_command(image_id: int, apply_count: int):
    """Show ranked tag suggestions for one image."""
    SuggestCommand(image_id, apply_count).execute()


class SuggestCommand(SuggestCommandBase):
    def __init__(self, image_id: int, apply_count: int = 0):
        super().__init__()
        self.image_id = image_id
        self.apply_count = apply_count

    def run(self):
        engine = self.suggestion_engine()
        suggestions = engine.suggest_for_image_id(self.image_id)
        image = ImageRepository(self.db).get(self.image_id)
        click.echo(f"#{image.id} {image.filename}")
        _echo_suggestions(suggestions)

        if self.apply_count > 0 and suggestions:
            chosen = [s.tag for s in suggestions[:self.apply_count]]
            TagStore(self.db).link_tags(self.image_id, chosen)
            click.echo(f"✓ Applied {', '.join(chosen)}")


@click.command(name='suggest-untagged')
@click.option('--limit', default=None, type=int, help='Maximum images to process (defaults to batch_size)')
@click.option('--include-tagged', is_flag=True, default=False, help='Also process images that already have tags')
def suggest_untagged_command(limit, include_tagged: bool):
    """Show suggestions for images that have no tags yet."""
    SuggestUntaggedCommand(limit or settings.batch_size, include_tagged).execute()


class SuggestUntaggedCommand(SuggestCommandBase):
    def __init__(self, limit: int, include_tagged: bool = False):
        super().__init__()
        self.limit = limit
        self.include_tagged = include_tagged

    def run(self):
        repo = ImageRepository(self.db)
        if self.include_tagged:
            image_ids = repo.list_ids()[:self.limit]
        else:
            image_ids = [image.id for image in repo.list_untagged(limit=self.limit)]
        click.echo(f"Generating suggestions for {len(image_ids)} images")

        results = self.suggestion_engine().bulk_suggest(image_ids, include_tagged=self.include_tagged)
        for image_id, suggestions in results.items():
            click.echo(f"\n#{image_id}")
            _echo_suggestions(suggestions)
