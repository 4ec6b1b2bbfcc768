"""Search predicate tree.

A search request is turned into a small tree of predicate nodes before it
touches the database. The same tree can be translated to SQL
(:mod:`snaptag.search.filter_builder`) or evaluated directly against an
:class:`ImageView`, so matching rules can be checked without a store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union

CONTENT_FIELDS = ("title", "description", "filename", "original_name")
TAG_FIELDS = ("tag", "focused_tag")
ALL_FIELDS = CONTENT_FIELDS + TAG_FIELDS

MIN_CONTENT_TOKEN_LENGTH = 3
MIN_TAG_TOKEN_LENGTH = 2

STOP_WORDS = frozenset([
    # English
    "a", "an", "the", "and", "or", "but", "of", "in", "on", "at", "to", "for",
    "with", "by", "from", "up", "about", "into", "through", "over", "under",
    "is", "are", "as", "it", "its", "this", "that",
    # Spanish
    "el", "la", "los", "las", "un", "una", "unos", "unas", "y", "o", "de",
    "del", "al", "en", "con", "por", "para", "que",
    # French
    "le", "les", "une", "des", "du", "et", "ou", "au", "aux", "avec", "pour",
    "sur", "dans",
    # Italian
    "il", "lo", "gli", "di", "da", "della", "dello", "degli", "delle", "nel",
    "nella", "con", "per", "su", "tra", "fra",
    # Portuguese
    "os", "um", "uma", "do", "da", "dos", "das", "no", "na", "nos", "nas",
    "em", "com", "ao", "aos",
])


@dataclass(frozen=True)
class ExactPhrase:
    """Whole search term as a case-insensitive substring of any field."""

    term: str
    fields: Tuple[str, ...] = ALL_FIELDS


@dataclass(frozen=True)
class TokenMatch:
    """One search word as a case-insensitive substring of the given fields."""

    token: str
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class TagCountThreshold:
    """Requested tag names matched per namespace, summed, compared to a threshold.

    Each requested name contributes one match if some global tag carries it and
    one more if some focused tag carries it.
    """

    tags: Tuple[str, ...]
    threshold: int


@dataclass(frozen=True)
class SourceMatch:
    """Source URL contains any of the patterns."""

    patterns: Tuple[str, ...]


@dataclass(frozen=True)
class DateRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class AnyOf:
    children: Tuple["Predicate", ...]


@dataclass(frozen=True)
class AllOf:
    children: Tuple["Predicate", ...]


Predicate = Union[ExactPhrase, TokenMatch, TagCountThreshold, SourceMatch, DateRange, AnyOf, AllOf]


@dataclass
class ImageView:
    """Plain view of the image attributes a predicate can inspect."""

    title: Optional[str] = None
    description: Optional[str] = None
    filename: Optional[str] = None
    original_name: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    focused_tags: List[str] = field(default_factory=list)
    source_url: Optional[str] = None
    upload_date: Optional[datetime] = None

    @classmethod
    def from_image(cls, image) -> "ImageView":
        return cls(
            title=image.title,
            description=image.description,
            filename=image.filename,
            original_name=image.original_name,
            tags=list(image.tag_names),
            focused_tags=[ft.tag_name for ft in image.focused_tags],
            source_url=image.source_url,
            upload_date=image.upload_date,
        )

    def field_values(self, name: str) -> List[str]:
        if name == "tag":
            return list(self.tags)
        if name == "focused_tag":
            return list(self.focused_tags)
        value = getattr(self, name)
        return [value] if value else []


def is_stop_word(token: str) -> bool:
    return token.lower() in STOP_WORDS


def token_fields(token: str) -> Tuple[str, ...]:
    """Fields a single search word is allowed to probe; empty when none."""
    if is_stop_word(token):
        return ()
    fields: Tuple[str, ...] = ()
    if len(token) >= MIN_CONTENT_TOKEN_LENGTH:
        fields += CONTENT_FIELDS
    if len(token) >= MIN_TAG_TOKEN_LENGTH:
        fields += TAG_FIELDS
    return fields


def text_predicate(search_term: Optional[str]) -> Optional[Predicate]:
    """Build the free-text predicate for ``search_term``.

    The exact phrase always participates. Individual words are added only
    when the term has more than one word.
    """
    term = (search_term or "").strip()
    if not term:
        return None

    words = term.split()
    children: List[Predicate] = [ExactPhrase(term)]
    if len(words) > 1:
        seen = set()
        for word in words:
            key = word.lower()
            if key in seen:
                continue
            seen.add(key)
            fields = token_fields(word)
            if fields:
                children.append(TokenMatch(word, fields))
    return AnyOf(tuple(children))


def normalize_tag_names(tags: Iterable[str]) -> Tuple[str, ...]:
    """Trim, drop blanks and case-insensitive repeats, keeping first spelling."""
    seen = set()
    result = []
    for tag in tags or []:
        cleaned = str(tag).strip()
        key = cleaned.lower()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return tuple(result)


def tag_predicate(tags: Iterable[str]) -> Optional[Predicate]:
    names = normalize_tag_names(tags)
    if not names:
        return None
    return TagCountThreshold(names, len(names))


def build_predicate(
    search_term: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    sources: Optional[Iterable[str]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Optional[Predicate]:
    """AND together every filter that is present; None means no filtering."""
    parts: List[Predicate] = []

    text = text_predicate(search_term)
    if text is not None:
        parts.append(text)

    tag_filter = tag_predicate(tags or [])
    if tag_filter is not None:
        parts.append(tag_filter)

    patterns = tuple(s.strip() for s in (sources or []) if s and s.strip())
    if patterns:
        parts.append(SourceMatch(patterns))

    if start is not None or end is not None:
        parts.append(DateRange(start, end))

    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return AllOf(tuple(parts))


def _contains(values: Iterable[str], needle: str) -> bool:
    needle = needle.lower()
    return any(needle in (value or "").lower() for value in values)


def evaluate(predicate: Optional[Predicate], view: ImageView) -> bool:
    """Evaluate ``predicate`` in memory; a missing predicate matches everything."""
    if predicate is None:
        return True

    if isinstance(predicate, ExactPhrase):
        return any(_contains(view.field_values(name), predicate.term) for name in predicate.fields)

    if isinstance(predicate, TokenMatch):
        return any(_contains(view.field_values(name), predicate.token) for name in predicate.fields)

    if isinstance(predicate, TagCountThreshold):
        wanted = [name.lower() for name in predicate.tags]
        global_names = {name.strip().lower() for name in view.tags}
        focused_names = {name.strip().lower() for name in view.focused_tags}
        matching = sum(1 for name in wanted if name in global_names)
        matching += sum(1 for name in wanted if name in focused_names)
        return matching >= predicate.threshold

    if isinstance(predicate, SourceMatch):
        return any(_contains([view.source_url], pattern) for pattern in predicate.patterns)

    if isinstance(predicate, DateRange):
        if view.upload_date is None:
            return False
        if predicate.start is not None and view.upload_date < predicate.start:
            return False
        if predicate.end is not None and view.upload_date > predicate.end:
            return False
        return True

    if isinstance(predicate, AnyOf):
        return any(evaluate(child, view) for child in predicate.children)

    if isinstance(predicate, AllOf):
        return all(evaluate(child, view) for child in predicate.children)

    raise TypeError(f"Unknown predicate node: {predicate!r}")
