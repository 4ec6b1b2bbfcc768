"""Pydantic models for API requests."""

from snaptag.models.requests import (
    ApplySuggestionsRequest,
    BulkDeleteRequest,
    BulkSuggestionsRequest,
    CreateTagRequest,
    DuplicateCheckRequest,
    FocusedTagIn,
    MergeTagsRequest,
    RenameTagRequest,
    SearchDateRange,
    SearchRequest,
    UpdateTagsRequest,
)

__all__ = [
    "ApplySuggestionsRequest",
    "BulkDeleteRequest",
    "BulkSuggestionsRequest",
    "CreateTagRequest",
    "DuplicateCheckRequest",
    "FocusedTagIn",
    "MergeTagsRequest",
    "RenameTagRequest",
    "SearchDateRange",
    "SearchRequest",
    "UpdateTagsRequest",
]
