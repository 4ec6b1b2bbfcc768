"""Tests for SQL-backed image search."""

from datetime import datetime

import pytest

from snaptag.exceptions import ValidationError
from snaptag.search import ImageView, SearchQueryBuilder, evaluate, search_images
from snaptag.search.query_builder import parse_search_request, request_predicate


def _filenames(images):
    return [image.filename for image in images]


@pytest.fixture
def catalogue(make_image, scenario_image):
    """A handful of images covering each searchable field."""
    return {
        "house_a": scenario_image,
        "kitchen": make_image(
            filename="kitchen_01.jpg",
            title="Oak Kitchen",
            description="Kitchen with oak joinery",
            tags=["interior", "timber"],
            source_url="https://www.archdaily.com/1/kitchen",
            upload_date=datetime(2024, 2, 10),
        ),
        "facade": make_image(
            filename="facade.png",
            title="Brick Facade",
            tags=["Brick", "exterior"],
            focused=["door", "window"],
            source_url="https://dezeen.com/facade",
            upload_date=datetime(2024, 3, 5),
        ),
        "wildcard": make_image(
            filename="render_100%_final.jpg",
            title="Render",
            upload_date=datetime(2024, 4, 1),
        ),
    }


class TestTagFilter:

    def test_global_plus_focused_tags(self, test_db, catalogue):
        results = search_images(test_db, {"tags": ["timber", "window"]})
        assert _filenames(results) == ["house_a.jpg"]

    def test_all_three_tags(self, test_db, catalogue):
        results = search_images(test_db, {"tags": ["timber", "exterior", "window"]})
        assert _filenames(results) == ["house_a.jpg"]

    def test_missing_tag_excludes(self, test_db, catalogue):
        assert search_images(test_db, {"tags": ["timber", "door"]}) == []

    def test_tag_names_case_insensitive(self, test_db, catalogue):
        results = search_images(test_db, {"tags": ["BRICK", "Door"]})
        assert _filenames(results) == ["facade.png"]

    def test_repeated_request_tags_do_not_raise_threshold(self, test_db, catalogue):
        results = search_images(test_db, {"tags": ["interior", "Interior"]})
        assert _filenames(results) == ["kitchen_01.jpg"]

    def test_blank_tags_ignored(self, test_db, catalogue):
        results = search_images(test_db, {"tags": ["", "   "]})
        assert len(results) == 4

    def test_same_name_in_both_namespaces_counts_twice(self, test_db, make_image):
        make_image(filename="double.jpg", tags=["timber"], focused=["timber"])

        results = search_images(test_db, {"tags": ["timber", "door"]})

        assert _filenames(results) == ["double.jpg"]

    def test_non_ascii_tag_names_fold_case(self, test_db, make_image):
        image = make_image(filename="lamp.jpg", tags=["Ébène"], focused=["Éclairage"])

        for payload in ({"tags": ["éclairage"]}, {"tags": ["ébène", "ÉCLAIRAGE"]}, {"searchTerm": "éclairage"}):
            predicate = request_predicate(parse_search_request(payload))
            assert evaluate(predicate, ImageView.from_image(image))
            assert _filenames(search_images(test_db, payload)) == ["lamp.jpg"]

    def test_tags_must_be_array(self, test_db, catalogue):
        with pytest.raises(ValidationError):
            search_images(test_db, {"tags": "timber"})

    def test_body_must_be_object(self, test_db):
        with pytest.raises(ValidationError):
            search_images(test_db, ["timber"])


class TestFreeText:

    def test_phrase_is_case_insensitive(self, test_db, catalogue):
        for term in ("oak kitchen", "OAK KITCHEN", "Oak Kitchen"):
            assert _filenames(search_images(test_db, {"searchTerm": term})) == ["kitchen_01.jpg"]

    def test_matches_global_tag_names(self, test_db, catalogue):
        results = search_images(test_db, {"searchTerm": "INTERIOR"})
        assert _filenames(results) == ["kitchen_01.jpg"]

    def test_matches_focused_tag_names(self, test_db, catalogue):
        results = search_images(test_db, {"searchTerm": "door", "sortBy": "filename", "sortOrder": "asc"})
        assert _filenames(results) == ["facade.png"]

    def test_any_word_matches(self, test_db, catalogue):
        results = search_images(test_db, {"searchTerm": "brick joinery", "sortBy": "filename", "sortOrder": "asc"})
        assert _filenames(results) == ["facade.png", "kitchen_01.jpg"]

    def test_stop_words_do_not_match_everything(self, test_db, catalogue):
        assert search_images(test_db, {"searchTerm": "the of"}) == []

    def test_wildcards_are_literal(self, test_db, catalogue):
        assert _filenames(search_images(test_db, {"searchTerm": "100%"})) == ["render_100%_final.jpg"]
        assert search_images(test_db, {"searchTerm": "%"}) == search_images(test_db, {"searchTerm": "100%"})
        assert _filenames(search_images(test_db, {"searchTerm": "_final"})) == ["render_100%_final.jpg"]

    def test_blank_term_returns_everything(self, test_db, catalogue):
        assert len(search_images(test_db, {"searchTerm": "   "})) == 4


class TestOtherFilters:

    def test_sources_case_insensitive(self, test_db, catalogue):
        results = search_images(test_db, {"sources": ["ARCHDAILY", "dezeen"], "sortBy": "filename", "sortOrder": "asc"})
        assert _filenames(results) == ["facade.png", "kitchen_01.jpg"]

    def test_date_range(self, test_db, catalogue):
        results = search_images(test_db, {
            "dateRange": {"start": "2024-02-01T00:00:00", "end": "2024-03-31T00:00:00"},
            "sortBy": "upload_date",
            "sortOrder": "asc",
        })
        assert _filenames(results) == ["kitchen_01.jpg", "facade.png"]

    def test_filters_combine(self, test_db, catalogue):
        results = search_images(test_db, {"searchTerm": "facade", "tags": ["brick"], "sources": ["archdaily"]})
        assert results == []

    def test_no_filters_returns_all_with_tags(self, test_db, catalogue):
        results = search_images(test_db, {})
        assert len(results) == 4
        house = next(image for image in results if image.filename == "house_a.jpg")
        assert sorted(house.tag_names) == ["exterior", "timber"]
        assert [ft.tag_name for ft in house.focused_tags] == ["window"]

    def test_none_payload(self, test_db, catalogue):
        assert len(search_images(test_db, None)) == 4


class TestOrdering:

    def test_default_is_newest_first(self, test_db, catalogue):
        results = search_images(test_db, {})
        dates = [image.upload_date for image in results]
        assert dates == sorted(dates, reverse=True)

    def test_sort_by_title_ascending(self, test_db, catalogue):
        results = search_images(test_db, {"sortBy": "title", "sortOrder": "ASC"})
        assert [image.title for image in results] == ["Brick Facade", "House A", "Oak Kitchen", "Render"]

    def test_name_is_title_alias(self, test_db, catalogue):
        by_name = search_images(test_db, {"sortBy": "name", "sortOrder": "asc"})
        by_title = search_images(test_db, {"sortBy": "title", "sortOrder": "asc"})
        assert _filenames(by_name) == _filenames(by_title)

    def test_unknown_column_falls_back(self, test_db):
        builder = SearchQueryBuilder(test_db, sort_by="id; DROP TABLE images", sort_order="asc")
        assert builder.sort_by == "upload_date"
        assert builder.sort_order == "desc"

    def test_invalid_direction_defaults_desc(self, test_db):
        builder = SearchQueryBuilder(test_db, sort_by="filename", sort_order="sideways")
        assert builder.sort_order == "desc"

    def test_limit_and_offset(self, test_db, catalogue):
        ordered = _filenames(search_images(test_db, {"sortBy": "filename", "sortOrder": "asc"}))
        page = search_images(test_db, {"sortBy": "filename", "sortOrder": "asc", "limit": 2, "offset": 1})
        assert _filenames(page) == ordered[1:3]


@pytest.mark.parametrize("payload", [
    {"searchTerm": "timber"},
    {"searchTerm": "oak facade"},
    {"tags": ["exterior"]},
    {"tags": ["window", "brick"]},
    {"sources": ["dezeen"]},
    {"searchTerm": "render", "tags": []},
])
def test_sql_matches_in_memory_evaluation(test_db, catalogue, payload):
    request = parse_search_request(payload)
    predicate = request_predicate(request)

    expected = sorted(
        image.filename for image in catalogue.values()
        if evaluate(predicate, ImageView.from_image(image))
    )

    assert sorted(_filenames(search_images(test_db, payload))) == expected
