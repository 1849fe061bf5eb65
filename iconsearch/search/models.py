"""Search data models."""

from enum import Enum

from pydantic import BaseModel, Field

from iconsearch.catalog.models import Icon


class SearchResult(BaseModel):
    """An icon and its relevance score.

    Attributes:
        icon: The matched icon.
        score: Similarity in [0, 1] for vector hits, 0 for substring and
            no-query results.
    """

    icon: Icon = Field(description="Matched icon")
    score: float = Field(default=0.0, description="Relevance score")


class SearchOutcome(str, Enum):
    """Which search path produced a result set."""

    NO_QUERY = "no_query"
    VECTOR = "vector"
    REMOTE_VECTOR = "remote_vector"
    SUBSTRING = "substring"
    SUBSTRING_FALLBACK = "substring_fallback"


class SearchReport(BaseModel):
    """Results of one search together with the path that produced them."""

    results: list[SearchResult] = Field(default_factory=list)
    outcome: SearchOutcome = Field(description="Search path taken")


class IconEmbedding(BaseModel):
    """An icon paired with a precomputed embedding."""

    icon: Icon
    embedding: list[float] = Field(min_length=1)
