"""Catalog records and search payloads.

Attributes are snake_case in Python and camelCase on the wire; every model
accepts either spelling on input and the API serializes by alias.
"""

from datetime import datetime
from decimal import Decimal
from decimal import InvalidOperation
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic.alias_generators import to_camel

MAX_SEARCH_RESULTS = 5


class CatalogModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NewTool(CatalogModel):
    """Insert shape for a tool."""

    name: str
    description: str
    company_name: str
    logo_url: str
    image_url: str
    rating: str = Field(description="Decimal rating between 0 and 5, kept as text (e.g. '4.8')")
    pricing: str
    website_url: str
    featured: bool = False

    @field_validator("rating")
    @classmethod
    def _rating_is_decimal(cls, value: str) -> str:
        value = value.strip()
        try:
            parsed = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"rating must be a decimal string, got {value!r}")
        if not parsed.is_finite() or not Decimal(0) <= parsed <= Decimal(5):
            raise ValueError(f"rating must be between 0 and 5, got {value!r}")
        return value


class Tool(NewTool):
    model_config = ConfigDict(frozen=True)

    id: int
    created_at: Optional[datetime] = None


class DecoratedTool(Tool):
    """Tool with the names of its categories and tags attached."""

    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class NewCategory(CatalogModel):
    name: str
    icon: str
    description: str


class Category(NewCategory):
    model_config = ConfigDict(frozen=True)

    id: int


class NewTag(CatalogModel):
    name: str


class Tag(NewTag):
    model_config = ConfigDict(frozen=True)

    id: int


class ToolCategory(CatalogModel):
    id: int
    tool_id: int
    category_id: int


class ToolTag(CatalogModel):
    id: int
    tool_id: int
    tag_id: int


class SearchContext(CatalogModel):
    heading: str
    description: str


class SearchResult(CatalogModel):
    tools: List[DecoratedTool] = Field(max_length=MAX_SEARCH_RESULTS)
    context: SearchContext


class RankingResponse(BaseModel):
    """JSON object the completion model is asked to return."""

    tools: List[int] = Field(description="Tool ids, most relevant first")
    context: SearchContext


class SearchQuery(BaseModel):
    query: str = Field(min_length=1)

    @field_validator("query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Search query cannot be empty")
        return value
