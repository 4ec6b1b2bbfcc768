"""Image search: predicate construction, SQL translation and execution."""

from snaptag.search.predicates import (
    AllOf,
    AnyOf,
    DateRange,
    ExactPhrase,
    ImageView,
    SourceMatch,
    TagCountThreshold,
    TokenMatch,
    build_predicate,
    evaluate,
)
from snaptag.search.query_builder import SearchQueryBuilder, parse_search_request, search_images

__all__ = [
    "AllOf",
    "AnyOf",
    "DateRange",
    "ExactPhrase",
    "ImageView",
    "SourceMatch",
    "TagCountThreshold",
    "TokenMatch",
    "build_predicate",
    "evaluate",
    "SearchQueryBuilder",
    "parse_search_request",
    "search_images",
]
