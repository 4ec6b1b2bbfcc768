"""Keyword tables used by the text-based suggestion signals.

Defaults ship in code. A YAML file with the same shape can replace them::

    folder_keywords:
      - {keyword: kitchens, confidence: 0.9}
    descriptive_keywords:
      - {keyword: facade, confidence: 0.8}
    synonyms:
      - {pattern: "outdoor|outside|garden", tag: exterior, confidence: 0.75}
    domain_hints:
      - {domain: archdaily, tag: architecture, confidence: 0.9}
    baseline_categories: [architecture, interiors]
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from snaptag.exceptions import ValidationError

logger = logging.getLogger(__name__)


class KeywordRule(BaseModel):
    """A word that, when present, suggests ``tag`` (the word itself by default)."""

    keyword: str
    tag: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)

    @property
    def suggested_tag(self) -> str:
        return self.tag or self.keyword


class SynonymPattern(BaseModel):
    pattern: str
    tag: str
    confidence: float = Field(default=0.75, ge=0.0, le=1.0)

    @field_validator("pattern")
    @classmethod
    def _must_compile(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid pattern {value!r}: {exc}")
        return value

    def compiled(self) -> "re.Pattern":
        return re.compile(rf"\b(?:{self.pattern})\b", re.IGNORECASE)


class DomainHint(BaseModel):
    """Static tag implied by a known source domain (substring match)."""

    domain: str
    tag: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: Optional[str] = None


class Vocabulary(BaseModel):
    folder_keywords: List[KeywordRule] = Field(default_factory=list)
    descriptive_keywords: List[KeywordRule] = Field(default_factory=list)
    synonyms: List[SynonymPattern] = Field(default_factory=list)
    domain_hints: List[DomainHint] = Field(default_factory=list)
    baseline_categories: List[str] = Field(default_factory=list)


def _rules(confidence: float, *keywords: str) -> List[KeywordRule]:
    return [KeywordRule(keyword=keyword, confidence=confidence) for keyword in keywords]


def default_vocabulary() -> Vocabulary:
    return Vocabulary(
        # Filing structure: precedent categories, material categories, status words.
        folder_keywords=(
            _rules(
                0.9,
                "art", "bathrooms", "details", "doors", "exterior", "exteriors",
                "furniture", "interiors", "joinery", "kitchens", "landscape",
                "lighting", "spatial", "stairs", "structure",
            )
            + _rules(0.85, "brick", "carpet", "concrete", "fabric", "metal", "stone", "tile", "wood")
            + _rules(0.8, "final", "wip")
        ),
        descriptive_keywords=(
            _rules(0.8, "facade", "interior", "bathroom", "kitchen")
            + _rules(0.7, "stair", "glass", "timber", "steel", "detail", "courtyard")
            + _rules(0.65, "window", "roof", "ceiling", "balcony", "pool", "terrace")
            + _rules(0.6, "modern", "minimal", "residential", "brutalist", "sketch", "plan", "section")
        ),
        synonyms=[
            SynonymPattern(pattern="outdoor|outside|garden|yard|patio", tag="exterior", confidence=0.75),
            SynonymPattern(pattern="indoor|inside|living|bedroom|lounge", tag="interiors", confidence=0.75),
            SynonymPattern(pattern="staircase|stairway|steps", tag="stairs", confidence=0.75),
            SynonymPattern(pattern="oak|plywood|veneer", tag="wood", confidence=0.7),
            SynonymPattern(pattern="shower|vanity|basin|toilet", tag="bathrooms", confidence=0.7),
            SynonymPattern(pattern="cabinetry|cupboard|shelving|millwork", tag="joinery", confidence=0.7),
            SynonymPattern(pattern="lamp|pendant|sconce", tag="lighting", confidence=0.7),
        ],
        domain_hints=[
            DomainHint(domain="architizer", tag="architecture", confidence=0.9, reason="Architizer source"),
            DomainHint(domain="archdaily", tag="architecture", confidence=0.9, reason="ArchDaily source"),
            DomainHint(domain="dezeen", tag="design", confidence=0.9, reason="Dezeen source"),
            DomainHint(domain="pinterest", tag="precedents", confidence=0.7, reason="Pinterest source"),
        ],
        baseline_categories=["architecture", "interiors", "exteriors", "details"],
    )


def load_vocabulary(path) -> Vocabulary:
    """Load keyword tables from YAML; sections left out keep their defaults."""
    vocab_path = Path(path)
    if not vocab_path.exists():
        raise ValidationError(f"Vocabulary file not found: {vocab_path}")

    payload = yaml.safe_load(vocab_path.read_text()) or {}
    if not isinstance(payload, dict):
        raise ValidationError(f"Vocabulary file must contain a mapping: {vocab_path}")

    defaults = default_vocabulary().model_dump()
    defaults.update({key: value for key, value in payload.items() if key in defaults and value is not None})
    try:
        vocabulary = Vocabulary.model_validate(defaults)
    except ValueError as exc:
        raise ValidationError(f"Invalid vocabulary file {vocab_path}: {exc}") from exc

    logger.info(
        "Loaded vocabulary from %s (%d folder, %d descriptive keywords)",
        vocab_path, len(vocabulary.folder_keywords), len(vocabulary.descriptive_keywords),
    )
    return vocabulary
