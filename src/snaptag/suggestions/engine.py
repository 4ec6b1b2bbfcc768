"""Tag suggestion ranking.

Signals run one after another, every candidate they return is pooled, and
the pool is consolidated into a short ranked list:

- candidates for the same tag (exact spelling) collapse into one entry; each
  extra source adds 0.1 to the best confidence seen, but the bonus cannot
  lift it above 0.95. A merged entry never drops below its best source, so
  a 0.98 from one source stays 0.98 when another source agrees
- the collapsed entry keeps the best (lowest) tier
- tags the image already carries and excluded filing tags are dropped
- entries sort by tier, then confidence, and the list is cut to the limit
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from snaptag.database import read_guard
from snaptag.exceptions import NotFound, StoreError, UpstreamUnavailable
from snaptag.metadata import Image, ImageTag
from snaptag.suggestions.signals import (
    Candidate,
    DescriptionSignal,
    FilenameSignal,
    GeneralSignal,
    PeerSignal,
    Signal,
    SourceDomainSignal,
    VisualSignal,
)
from snaptag.suggestions.vocabulary import Vocabulary, default_vocabulary, load_vocabulary
from snaptag.tag_store import TagStore

logger = logging.getLogger(__name__)

MAX_CONFIDENCE = 0.95
AGREEMENT_BONUS = 0.1
DEFAULT_EXCLUDED_TAGS = ("precedent", "archier", "texture", "materials")


@dataclass
class SuggestionConfig:
    max_suggestions: int = 8
    excluded_tags: Tuple[str, ...] = DEFAULT_EXCLUDED_TAGS
    vocabulary: Vocabulary = field(default_factory=default_vocabulary)

    @classmethod
    def from_settings(cls, settings) -> "SuggestionConfig":
        vocabulary = (
            load_vocabulary(settings.suggestion_vocabulary_file)
            if settings.suggestion_vocabulary_file
            else default_vocabulary()
        )
        return cls(
            max_suggestions=settings.suggestion_limit,
            excluded_tags=tuple(settings.suggestion_excluded_tags),
            vocabulary=vocabulary,
        )


@dataclass
class Suggestion:
    tag: str
    confidence: int  # percent, 0-100
    reason: str
    tier: int

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "confidence": self.confidence,
            "reason": self.reason,
            "tier": self.tier,
        }


def to_percent(confidence: float) -> int:
    """Round a 0-1 confidence to a whole percentage, halves rounding up."""
    percent = int(math.floor(confidence * 100 + 0.5))
    return max(0, min(100, percent))


def consolidate(
    candidates: Iterable[Candidate],
    existing_tags: Iterable[str] = (),
    excluded_tags: Iterable[str] = (),
    limit: int = 8,
) -> List[Suggestion]:
    """Collapse, filter, rank and truncate raw candidates."""
    merged: Dict[str, dict] = {}
    for candidate in candidates:
        tag = (candidate.tag or "").strip()
        if not tag:
            continue
        entry = merged.get(tag)
        if entry is None:
            merged[tag] = {
                "tag": tag,
                "confidence": candidate.confidence,
                "tier": candidate.tier,
                "reasons": [candidate.reason],
            }
            continue
        best = max(entry["confidence"], candidate.confidence)
        entry["confidence"] = max(best, min(MAX_CONFIDENCE, best + AGREEMENT_BONUS))
        entry["tier"] = min(entry["tier"], candidate.tier)
        entry["reasons"].append(candidate.reason)

    blocked = {name.strip().lower() for name in existing_tags}
    blocked.update(name.strip().lower() for name in excluded_tags)

    ranked = [entry for entry in merged.values() if entry["tag"].lower() not in blocked]
    # sort() is stable, so first-seen order breaks exact ties.
    ranked.sort(key=lambda entry: (entry["tier"], -entry["confidence"]))

    return [
        Suggestion(
            tag=entry["tag"],
            confidence=to_percent(entry["confidence"]),
            reason=entry["reasons"][0],
            tier=entry["tier"],
        )
        for entry in ranked[:max(limit, 0)]
    ]


class SuggestionEngine:
    """Proposes tags for one image by combining independent signals."""

    def __init__(
        self,
        db: Session,
        config: Optional[SuggestionConfig] = None,
        oracle=None,
        url_resolver: Optional[Callable[[Image], Optional[str]]] = None,
        signals: Optional[List[Signal]] = None,
    ):
        self.db = db
        self.config = config or SuggestionConfig()
        self.tag_store = TagStore(db)
        self._vocabulary_cache: Optional[List[str]] = None
        self.signals = signals if signals is not None else self._default_signals(oracle, url_resolver)

    def _default_signals(self, oracle, url_resolver) -> List[Signal]:
        vocabulary = self.config.vocabulary
        return [
            VisualSignal(oracle, url_resolver),
            SourceDomainSignal(self.db, vocabulary),
            FilenameSignal(vocabulary, self._known_tags),
            DescriptionSignal(vocabulary, self._known_tags),
            PeerSignal(self.db),
            GeneralSignal(self.tag_store, vocabulary),
        ]

    def _known_tags(self) -> List[str]:
        if self._vocabulary_cache is None:
            self._vocabulary_cache = self.tag_store.vocabulary()
        return self._vocabulary_cache

    def suggest(self, image: Image) -> List[Suggestion]:
        """Ranked suggestions for ``image``; a failing signal is skipped."""
        self._vocabulary_cache = None
        candidates: List[Candidate] = []
        for signal in self.signals:
            try:
                found = signal.collect(image)
            except StoreError:
                raise
            except UpstreamUnavailable as exc:
                logger.warning("Skipping %s signal for image %s: %s", signal.name, image.id, exc)
                continue
            except Exception:
                logger.exception("Signal %s failed for image %s", signal.name, image.id)
                continue
            logger.debug("Signal %s produced %d candidates for image %s", signal.name, len(found), image.id)
            candidates.extend(found)

        suggestions = consolidate(
            candidates,
            existing_tags=image.effective_tag_names,
            excluded_tags=self.config.excluded_tags,
            limit=self.config.max_suggestions,
        )
        logger.info(
            "Image %s: %d suggestions from %d candidates",
            image.id, len(suggestions), len(candidates),
        )
        return suggestions

    def _load_image(self, image_id: int) -> Optional[Image]:
        with read_guard():
            return (
                self.db.query(Image)
                .options(selectinload(Image.tags), selectinload(Image.focused_tags))
                .filter(Image.id == image_id)
                .first()
            )

    def suggest_for_image_id(self, image_id: int) -> List[Suggestion]:
        image = self._load_image(image_id)
        if image is None:
            raise NotFound(f"Image {image_id} not found")
        return self.suggest(image)

    def bulk_suggest(self, image_ids: Iterable[int], include_tagged: bool = False) -> Dict[int, List[Suggestion]]:
        """Suggestions per image id, computed one image at a time.

        Tagged images are skipped unless ``include_tagged``; unknown ids are
        left out of the result.
        """
        ids = list(dict.fromkeys(image_ids or []))
        if not include_tagged and ids:
            with read_guard():
                tagged = {
                    row[0]
                    for row in self.db.query(ImageTag.image_id)
                    .filter(ImageTag.image_id.in_(ids))
                    .distinct()
                    .all()
                }
            skipped = [image_id for image_id in ids if image_id in tagged]
            if skipped:
                logger.info("Skipping %d already tagged images", len(skipped))
            ids = [image_id for image_id in ids if image_id not in tagged]

        results: Dict[int, List[Suggestion]] = {}
        for image_id in ids:
            try:
                results[image_id] = self.suggest_for_image_id(image_id)
            except NotFound:
                logger.warning("Image %s not found, skipping", image_id)
            except StoreError:
                raise
            except Exception:
                logger.exception("Suggestion run failed for image %s", image_id)
                results[image_id] = []
        return results
