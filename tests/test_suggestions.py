"""Tests for suggestion signals, consolidation and the engine."""

from datetime import datetime

import pytest

from snaptag.exceptions import NotFound, StoreError, UpstreamUnavailable
from snaptag.metadata import Image
from snaptag.suggestions import Candidate, SuggestionConfig, SuggestionEngine, consolidate, default_vocabulary
from snaptag.suggestions.engine import to_percent
from snaptag.suggestions.signals import (
    TIER_DESCRIPTIVE,
    TIER_FOLDER,
    TIER_GENERAL,
    TIER_PEER,
    TIER_SOURCE,
    TIER_VISUAL,
    DescriptionSignal,
    FilenameSignal,
    PeerSignal,
    Signal,
    SourceDomainSignal,
    VisualSignal,
    contains_word,
    normalize_text,
)


class StaticSignal(Signal):
    name = "static"

    def __init__(self, candidates):
        self.candidates = candidates

    def collect(self, image):
        return list(self.candidates)


class FailingSignal(Signal):
    name = "failing"

    def __init__(self, error):
        self.error = error

    def collect(self, image):
        raise self.error


class FakeOracle:
    def __init__(self, tags=None, error=None):
        self.tags = tags or []
        self.error = error
        self.urls = []

    def suggest_tags(self, image_url):
        self.urls.append(image_url)
        if self.error:
            raise self.error
        return self.tags


def _tags(suggestions):
    return [s.tag for s in suggestions]


class TestConsolidate:

    def test_agreement_raises_confidence_up_to_cap(self):
        suggestions = consolidate([
            Candidate("timber", 0.7, "filename", TIER_DESCRIPTIVE),
            Candidate("timber", 0.8, "description", TIER_DESCRIPTIVE),
            Candidate("timber", 0.6, "visual", TIER_VISUAL),
        ])

        assert len(suggestions) == 1
        assert suggestions[0].confidence == 95
        assert suggestions[0].tier == TIER_VISUAL
        assert suggestions[0].reason == "filename"

    def test_agreement_never_lowers_confidence(self):
        suggestions = consolidate([
            Candidate("glass", 0.98, "visual", TIER_VISUAL),
            Candidate("glass", 0.2, "baseline", TIER_GENERAL),
        ])
        assert suggestions[0].confidence == 98

    def test_orders_by_tier_then_confidence(self):
        suggestions = consolidate([
            Candidate("baseline", 0.2, "r", TIER_GENERAL),
            Candidate("low", 0.5, "r", TIER_DESCRIPTIVE),
            Candidate("high", 0.8, "r", TIER_DESCRIPTIVE),
            Candidate("folder", 0.3, "r", TIER_FOLDER),
        ])
        assert _tags(suggestions) == ["folder", "high", "low", "baseline"]

    def test_ties_keep_first_seen_order(self):
        suggestions = consolidate([
            Candidate("beta", 0.5, "r", TIER_PEER),
            Candidate("alpha", 0.5, "r", TIER_PEER),
        ])
        assert _tags(suggestions) == ["beta", "alpha"]

    def test_existing_and_excluded_filtered_before_truncation(self):
        candidates = [Candidate(f"tag{i}", 0.9 - i * 0.01, "r", TIER_DESCRIPTIVE) for i in range(10)]
        candidates.insert(0, Candidate("Texture", 0.99, "r", TIER_VISUAL))

        suggestions = consolidate(
            candidates,
            existing_tags=["TAG0", "tag1"],
            excluded_tags=["texture"],
            limit=8,
        )

        assert _tags(suggestions) == [f"tag{i}" for i in range(2, 10)]

    def test_limit(self):
        candidates = [Candidate(f"t{i}", 0.5, "r", TIER_GENERAL) for i in range(12)]
        assert len(consolidate(candidates, limit=8)) == 8
        assert consolidate(candidates, limit=0) == []

    def test_collapse_is_case_sensitive(self):
        suggestions = consolidate([
            Candidate("Kitchens", 0.8, "vocabulary", TIER_DESCRIPTIVE),
            Candidate("kitchens", 0.9, "folder", TIER_FOLDER),
        ])
        assert [(s.tag, s.tier) for s in suggestions] == [("kitchens", TIER_FOLDER), ("Kitchens", TIER_DESCRIPTIVE)]

    def test_blank_tags_dropped(self):
        assert consolidate([Candidate("  ", 0.9, "r", TIER_VISUAL)]) == []

    def test_percent_rounds_half_up(self):
        assert to_percent(0.125) == 13
        assert to_percent(0.375) == 38
        assert to_percent(0.5) == 50
        assert to_percent(1.2) == 100


class TestTextHelpers:

    def test_normalize_text(self):
        assert normalize_text("Kitchens_Oak-Cabinetry.JPG", strip_extension=True) == "kitchens oak cabinetry"
        assert normalize_text(None) == ""

    def test_contains_word_is_bounded(self):
        assert contains_word("kitchens oak", "kitchens")
        assert not contains_word("kitchens oak", "kitchen")
        assert contains_word("warm timber cladding", "timber cladding")


class TestSignals:

    def test_filename_keywords_and_synonyms(self):
        signal = FilenameSignal(default_vocabulary(), lambda: [])
        image = Image(filename="kitchens_oak_cabinetry.jpg")

        found = {c.tag: c for c in signal.collect(image)}

        assert found["kitchens"].tier == TIER_FOLDER
        assert found["kitchens"].confidence == 0.9
        assert found["wood"].tier == TIER_DESCRIPTIVE
        assert found["joinery"].reason == 'Filename mentions "cabinetry"'
        assert "kitchen" not in found

    def test_filename_known_tags(self):
        signal = FilenameSignal(default_vocabulary(), lambda: ["Rammed Earth", "ox"])
        image = Image(filename="rammed-earth-wall.png")

        found = {c.tag: c for c in signal.collect(image)}

        assert found["Rammed Earth"].confidence == 0.8
        assert found["Rammed Earth"].tier == TIER_DESCRIPTIVE
        assert "ox" not in found

    def test_description_signal(self):
        signal = DescriptionSignal(default_vocabulary(), lambda: ["cladding"])
        image = Image(description="Warm timber cladding around a courtyard.")

        found = {c.tag: c for c in signal.collect(image)}

        assert set(found) == {"timber", "courtyard", "cladding"}
        assert all(c.confidence == 0.7 and c.tier == TIER_DESCRIPTIVE for c in found.values())

    def test_visual_signal_without_oracle(self):
        assert VisualSignal(None).collect(Image(source_url="https://example.com/a.jpg")) == []

    def test_visual_signal_uses_resolver(self):
        oracle = FakeOracle(tags=[{"tag": "concrete", "confidence": 0.9, "reason": "Board-formed walls"}])
        signal = VisualSignal(oracle, url_resolver=lambda image: f"https://cdn.example.com/{image.filename}")

        found = signal.collect(Image(filename="a.jpg"))

        assert oracle.urls == ["https://cdn.example.com/a.jpg"]
        assert found == [Candidate("concrete", 0.9, "Board-formed walls", TIER_VISUAL)]

    def test_visual_signal_skips_images_without_url(self):
        oracle = FakeOracle(tags=[{"tag": "x", "confidence": 1, "reason": "r"}])
        assert VisualSignal(oracle).collect(Image(filename="a.jpg")) == []
        assert oracle.urls == []

    def test_source_domain_signal(self, test_db, make_image):
        make_image(tags=["timber"], source_url="https://www.archdaily.com/a")
        make_image(tags=["timber", "glass"], source_url="https://archdaily.com/b")
        target = make_image(source_url="https://archdaily.com/c")

        found = SourceDomainSignal(test_db, default_vocabulary()).collect(target)

        assert [(c.tag, c.confidence) for c in found] == [
            ("timber", 0.2),
            ("glass", 0.1),
            ("architecture", 0.9),
        ]
        assert all(c.tier == TIER_SOURCE for c in found)
        assert found[0].reason == "Common in images from archdaily.com"

    def test_peer_signal(self, test_db, make_image):
        url = "https://example.com/project"
        make_image(tags=["stone", "tile"], source_url=url)
        # Same URL saved twice predates the duplicate guard.
        peer = Image(filename="again.jpg", original_name="again.jpg", source_url=url)
        test_db.add(peer)
        test_db.commit()

        found = PeerSignal(test_db).collect(peer)

        assert [(c.tag, c.confidence, c.tier) for c in found] == [
            ("stone", 0.2, TIER_PEER),
            ("tile", 0.2, TIER_PEER),
        ]
        assert found[0].reason == "Common in other images from same source"


class TestSuggestionEngine:

    def test_default_signals_for_untagged_image(self, test_db, make_image):
        image = make_image(filename="kitchens_oak_cabinetry.jpg")

        suggestions = SuggestionEngine(test_db).suggest(image)

        assert [(s.tag, s.confidence, s.tier) for s in suggestions] == [
            ("kitchens", 90, TIER_FOLDER),
            ("wood", 70, TIER_DESCRIPTIVE),
            ("joinery", 70, TIER_DESCRIPTIVE),
            ("architecture", 20, TIER_GENERAL),
            ("interiors", 20, TIER_GENERAL),
            ("exteriors", 20, TIER_GENERAL),
            ("details", 20, TIER_GENERAL),
        ]

    def test_source_and_baseline_agree(self, test_db, make_image):
        make_image(tags=["timber"], source_url="https://www.archdaily.com/a")
        target = make_image(source_url="https://archdaily.com/b")

        suggestions = SuggestionEngine(test_db).suggest(target)

        assert [(s.tag, s.confidence, s.tier) for s in suggestions[:2]] == [
            ("architecture", 95, TIER_SOURCE),
            ("timber", 40, TIER_SOURCE),
        ]

    def test_existing_tags_never_suggested(self, test_db, make_image):
        image = make_image(filename="kitchens_oak.jpg", tags=["Kitchens"], focused=["wood"])

        suggestions = SuggestionEngine(test_db).suggest(image)

        assert "kitchens" not in [t.lower() for t in _tags(suggestions)]
        assert "wood" not in _tags(suggestions)

    def test_failing_oracle_is_skipped(self, test_db, make_image):
        image = make_image(filename="kitchens.jpg", source_url="https://example.com/k.jpg")
        oracle = FakeOracle(error=UpstreamUnavailable("timed out"))

        suggestions = SuggestionEngine(test_db, oracle=oracle).suggest(image)

        assert oracle.urls == ["https://example.com/k.jpg"]
        assert _tags(suggestions)[0] == "kitchens"

    def test_oracle_suggestions_rank_first(self, test_db, make_image):
        image = make_image(filename="kitchens.jpg", source_url="https://example.com/k.jpg")
        oracle = FakeOracle(tags=[{"tag": "terrazzo", "confidence": 0.55, "reason": "Speckled floor"}])

        suggestions = SuggestionEngine(test_db, oracle=oracle).suggest(image)

        assert suggestions[0].to_dict() == {
            "tag": "terrazzo", "confidence": 55, "reason": "Speckled floor", "tier": TIER_VISUAL,
        }

    def test_unexpected_signal_error_is_skipped(self, test_db, make_image):
        image = make_image()
        engine = SuggestionEngine(test_db, signals=[
            FailingSignal(RuntimeError("bug")),
            StaticSignal([Candidate("glass", 0.5, "r", TIER_PEER)]),
        ])

        assert _tags(engine.suggest(image)) == ["glass"]

    def test_store_error_propagates(self, test_db, make_image):
        image = make_image()
        engine = SuggestionEngine(test_db, signals=[FailingSignal(StoreError("db down"))])

        with pytest.raises(StoreError):
            engine.suggest(image)

    def test_config_limits_and_exclusions(self, test_db, make_image):
        image = make_image()
        config = SuggestionConfig(max_suggestions=2, excluded_tags=("glass",))
        engine = SuggestionEngine(test_db, config=config, signals=[StaticSignal([
            Candidate("glass", 0.9, "r", TIER_VISUAL),
            Candidate("steel", 0.8, "r", TIER_VISUAL),
            Candidate("stone", 0.7, "r", TIER_VISUAL),
            Candidate("brick", 0.6, "r", TIER_VISUAL),
        ])])

        assert _tags(engine.suggest(image)) == ["steel", "stone"]

    def test_unknown_image(self, test_db):
        with pytest.raises(NotFound):
            SuggestionEngine(test_db).suggest_for_image_id(4040)


class TestBulkSuggest:

    @pytest.fixture
    def engine(self, test_db):
        return SuggestionEngine(test_db, signals=[StaticSignal([Candidate("glass", 0.5, "r", TIER_PEER)])])

    def test_skips_tagged_and_missing(self, engine, make_image):
        tagged = make_image(tags=["stone"])
        untagged = make_image()

        results = engine.bulk_suggest([tagged.id, untagged.id, 999])

        assert list(results) == [untagged.id]
        assert _tags(results[untagged.id]) == ["glass"]

    def test_include_tagged(self, engine, make_image):
        tagged = make_image(tags=["stone"])
        untagged = make_image()

        results = engine.bulk_suggest([tagged.id, untagged.id, tagged.id], include_tagged=True)

        assert list(results) == [tagged.id, untagged.id]

    def test_one_failure_gives_empty_list(self, engine, make_image, monkeypatch):
        first, second = make_image(), make_image()
        original = engine.suggest

        def _suggest(image):
            if image.id == first.id:
                raise RuntimeError("boom")
            return original(image)

        monkeypatch.setattr(engine, "suggest", _suggest)

        results = engine.bulk_suggest([first.id, second.id])

        assert results[first.id] == []
        assert _tags(results[second.id]) == ["glass"]

    def test_store_error_aborts_batch(self, test_db, make_image):
        image = make_image()
        engine = SuggestionEngine(test_db, signals=[FailingSignal(StoreError("db down"))])

        with pytest.raises(StoreError):
            engine.bulk_suggest([image.id])

    def test_empty_ids(self, engine):
        assert engine.bulk_suggest([]) == {}


def test_uploaded_at_does_not_affect_ranking(test_db, make_image):
    older = make_image(filename="stairs_a.jpg", upload_date=datetime(2020, 1, 1))
    newer = make_image(filename="stairs_b.jpg", upload_date=datetime(2025, 1, 1))
    engine = SuggestionEngine(test_db)

    assert _tags(engine.suggest(older)) == _tags(engine.suggest(newer))
