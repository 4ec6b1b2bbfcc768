"""Independent signal sources feeding the suggestion engine.

Each signal looks at one image and returns candidate tags with a confidence
(0-1), a reason and a tier. Signals read the store through ``read_guard`` so
database faults surface as StoreError.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from snaptag.database import read_guard
from snaptag.images import source_domain
from snaptag.metadata import Image, ImageTag, Tag
from snaptag.search.filter_builder import LIKE_ESCAPE, contains_pattern
from snaptag.suggestions.vocabulary import KeywordRule, Vocabulary

logger = logging.getLogger(__name__)

TIER_VISUAL = 0
TIER_FOLDER = 1
TIER_SOURCE = 2
TIER_DESCRIPTIVE = 3
TIER_PEER = 4
TIER_GENERAL = 5

SOURCE_LIMIT = 10
PEER_LIMIT = 5
GENERAL_LIMIT = 5
VOCABULARY_MIN_LENGTH = 3
DESCRIPTION_CONFIDENCE = 0.7
VOCABULARY_CONFIDENCE = 0.8
GENERAL_CONFIDENCE = 0.3
BASELINE_CONFIDENCE = 0.2

_EXTENSION_RE = re.compile(r"\.(jpe?g|png|gif|webp|heic|heif|tiff?|bmp|avif)$", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class Candidate:
    tag: str
    confidence: float
    reason: str
    tier: int


def normalize_text(value: Optional[str], strip_extension: bool = False) -> str:
    """Lower-case, optionally drop an image extension, collapse non-alphanumerics."""
    text = (value or "").strip().lower()
    if strip_extension:
        text = _EXTENSION_RE.sub("", text)
    return _NON_ALNUM_RE.sub(" ", text).strip()


def contains_word(text: str, phrase: str) -> bool:
    """Word-bounded containment of an already-normalized phrase."""
    if not text or not phrase:
        return False
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


class Signal:
    """Base class for suggestion signals."""

    name = "signal"

    def collect(self, image: Image) -> List[Candidate]:
        raise NotImplementedError


class VisualSignal(Signal):
    """Tier 0: tags proposed by the visual oracle for the image URL."""

    name = "visual"

    def __init__(self, oracle, url_resolver: Optional[Callable[[Image], Optional[str]]] = None):
        self.oracle = oracle
        self.url_resolver = url_resolver or (lambda image: image.source_url)

    def collect(self, image: Image) -> List[Candidate]:
        if self.oracle is None:
            return []
        image_url = self.url_resolver(image)
        if not image_url:
            return []
        return [
            Candidate(item["tag"], item["confidence"], item["reason"], TIER_VISUAL)
            for item in self.oracle.suggest_tags(image_url)
        ]


class SourceDomainSignal(Signal):
    """Tier 2: tags used on other images from the same domain, plus static hints."""

    name = "source_domain"

    def __init__(self, db: Session, vocabulary: Vocabulary):
        self.db = db
        self.vocabulary = vocabulary

    def collect(self, image: Image) -> List[Candidate]:
        domain = source_domain(image.source_url)
        if not domain:
            return []

        frequency = func.count(ImageTag.id)
        with read_guard():
            rows = (
                self.db.query(Tag.name, frequency)
                .join(ImageTag, ImageTag.tag_id == Tag.id)
                .join(Image, Image.id == ImageTag.image_id)
                .filter(
                    Image.id != image.id,
                    Image.source_url.ilike(contains_pattern(domain), escape=LIKE_ESCAPE),
                )
                .group_by(Tag.name)
                .order_by(frequency.desc(), Tag.name.asc())
                .limit(SOURCE_LIMIT)
                .all()
            )

        candidates = [
            Candidate(name, min(0.8, 0.1 * count), f"Common in images from {domain}", TIER_SOURCE)
            for name, count in rows
        ]
        for hint in self.vocabulary.domain_hints:
            if hint.domain.lower() in domain:
                candidates.append(
                    Candidate(hint.tag, hint.confidence, hint.reason or f"{hint.domain} source", TIER_SOURCE)
                )
                break
        return candidates


def _keyword_candidates(
    text: str,
    rules: List[KeywordRule],
    tier: int,
    reason_template: str,
    confidence: Optional[float] = None,
) -> List[Candidate]:
    found = []
    for rule in rules:
        if contains_word(text, normalize_text(rule.keyword)):
            found.append(Candidate(
                rule.suggested_tag,
                rule.confidence if confidence is None else confidence,
                reason_template.format(rule.keyword),
                tier,
            ))
    return found


class FilenameSignal(Signal):
    """Tiers 1 and 3: keywords, synonyms and known tag names in the filename."""

    name = "filename"

    def __init__(self, vocabulary: Vocabulary, known_tags: Callable[[], List[str]]):
        self.vocabulary = vocabulary
        self.known_tags = known_tags

    def collect(self, image: Image) -> List[Candidate]:
        text = normalize_text(image.filename, strip_extension=True)
        if not text:
            return []

        reason = 'Filename contains "{}"'
        candidates = _keyword_candidates(text, self.vocabulary.folder_keywords, TIER_FOLDER, reason)
        candidates += _keyword_candidates(text, self.vocabulary.descriptive_keywords, TIER_DESCRIPTIVE, reason)

        for synonym in self.vocabulary.synonyms:
            match = synonym.compiled().search(text)
            if match:
                candidates.append(Candidate(
                    synonym.tag, synonym.confidence, f'Filename mentions "{match.group(0)}"', TIER_DESCRIPTIVE
                ))

        for name in self.known_tags():
            phrase = normalize_text(name)
            if len(phrase) >= VOCABULARY_MIN_LENGTH and contains_word(text, phrase):
                candidates.append(Candidate(name, VOCABULARY_CONFIDENCE, f'Filename contains "{phrase}"', TIER_DESCRIPTIVE))
        return candidates


class DescriptionSignal(Signal):
    """Tier 3: keyword tiers and known tag names mentioned in the description."""

    name = "description"

    def __init__(self, vocabulary: Vocabulary, known_tags: Callable[[], List[str]]):
        self.vocabulary = vocabulary
        self.known_tags = known_tags

    def collect(self, image: Image) -> List[Candidate]:
        text = normalize_text(image.description)
        if not text:
            return []

        reason = 'Description mentions "{}"'
        candidates = _keyword_candidates(
            text, self.vocabulary.folder_keywords, TIER_DESCRIPTIVE, reason, DESCRIPTION_CONFIDENCE
        )
        candidates += _keyword_candidates(
            text, self.vocabulary.descriptive_keywords, TIER_DESCRIPTIVE, reason, DESCRIPTION_CONFIDENCE
        )
        for name in self.known_tags():
            phrase = normalize_text(name)
            if len(phrase) >= VOCABULARY_MIN_LENGTH and contains_word(text, phrase):
                candidates.append(Candidate(name, DESCRIPTION_CONFIDENCE, reason.format(phrase), TIER_DESCRIPTIVE))
        return candidates


class PeerSignal(Signal):
    """Tier 4: tags on other images saved from the exact same URL."""

    name = "peer"

    def __init__(self, db: Session):
        self.db = db

    def collect(self, image: Image) -> List[Candidate]:
        if not image.source_url:
            return []

        frequency = func.count(ImageTag.id)
        with read_guard():
            rows = (
                self.db.query(Tag.name, frequency)
                .join(ImageTag, ImageTag.tag_id == Tag.id)
                .join(Image, Image.id == ImageTag.image_id)
                .filter(Image.source_url == image.source_url, Image.id != image.id)
                .group_by(Tag.name)
                .order_by(frequency.desc(), Tag.name.asc())
                .limit(PEER_LIMIT)
                .all()
            )
        return [
            Candidate(name, min(0.6, 0.2 * count), "Common in other images from same source", TIER_PEER)
            for name, count in rows
        ]


class GeneralSignal(Signal):
    """Tier 5: globally popular tags and baseline categories."""

    name = "general"

    def __init__(self, tag_store, vocabulary: Vocabulary):
        self.tag_store = tag_store
        self.vocabulary = vocabulary

    def collect(self, image: Image) -> List[Candidate]:
        candidates = [
            Candidate(name, GENERAL_CONFIDENCE, f"Commonly used tag ({count} times)", TIER_GENERAL)
            for name, count in self.tag_store.popular_tags(GENERAL_LIMIT)
        ]
        candidates += [
            Candidate(name, BASELINE_CONFIDENCE, "Baseline category", TIER_GENERAL)
            for name in self.vocabulary.baseline_categories
        ]
        return candidates
