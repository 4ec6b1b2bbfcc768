"""Pydantic request models for API endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _string_list(value, field_name: str):
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{field_name} must be an array of strings")
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"{field_name} must be an array of strings")
    return list(value)


class SearchDateRange(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SearchRequest(BaseModel):
    """Body of the image search endpoint (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    search_term: Optional[str] = Field(default=None, alias="searchTerm")
    tags: Optional[List[str]] = None
    sort_by: Optional[str] = Field(default="upload_date", alias="sortBy")
    sort_order: Optional[str] = Field(default="desc", alias="sortOrder")
    sources: Optional[List[str]] = None
    date_range: Optional[SearchDateRange] = Field(default=None, alias="dateRange")
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_must_be_list(cls, value):
        return _string_list(value, "tags")

    @field_validator("sources", mode="before")
    @classmethod
    def _sources_must_be_list(cls, value):
        return _string_list(value, "sources")


class FocusedTagIn(BaseModel):
    tag_name: str
    x_coordinate: float
    y_coordinate: float
    width: Optional[float] = None
    height: Optional[float] = None


class UpdateTagsRequest(BaseModel):
    """Full replacement of an image's tags, plus optional metadata edits."""

    tags: List[str] = Field(default_factory=list)
    focused_tags: List[FocusedTagIn] = Field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_ids: List[int] = Field(alias="imageIds")


class DuplicateCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_url: Optional[str] = Field(default=None, alias="sourceUrl")
    content_hash: Optional[str] = Field(default=None, alias="contentHash")


class BulkSuggestionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_ids: List[int] = Field(alias="imageIds")
    include_tagged: bool = Field(default=False, alias="includeTagged")


class ApplySuggestionsRequest(BaseModel):
    tags: List[str]


class CreateTagRequest(BaseModel):
    name: str
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


class RenameTagRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_name: str = Field(alias="newName")


class MergeTagsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_tag_id: int = Field(alias="sourceTagId")
    target_tag_id: int = Field(alias="targetTagId")
