"""Pydantic schemas for the collaborative-filtering API."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


ItemId = Union[int, str]

MetricName = Literal[
    "manhattan",
    "euclidean",
    "minkowski",
    "pearson",
    "cosine",
    "jaccard_distance",
    "jaccard_index",
]


class NeighborsRequest(BaseModel):
    """Request for the k nearest neighbours of a user."""

    userId: int = Field(..., description="userId from the ratings data")
    k: int = Field(10, ge=1, le=500, description="Number of neighbors to return")
    metric: Optional[MetricName] = Field(None, description="Metric; defaults to the configured one")
    grade: Optional[int] = Field(None, ge=1, description="Minkowski grade (only with metric=minkowski)")
    min_common_rated: Optional[int] = Field(None, ge=0, le=1000, description="Min number of commonly-rated items")


class NeighborItem(BaseModel):
    userId: int
    score: float


class NeighborsResponse(BaseModel):
    userId: int
    metric: str
    k: int
    results: list[NeighborItem]


class PredictRequest(BaseModel):
    userId: int
    itemId: ItemId
    k: Optional[int] = Field(None, ge=1, le=500, description="Neighbors to use; defaults to config")


class PredictResponse(BaseModel):
    userId: int
    itemId: ItemId
    prediction: Optional[float] = Field(None, description="None when no neighbor rated the item")


class RecommendRequest(BaseModel):
    userId: int
    top_n: int = Field(10, ge=1, le=100, description="Number of items to return")
    k: Optional[int] = Field(None, ge=1, le=500, description="Neighbors to use; defaults to config")


class RecommendationItem(BaseModel):
    itemId: ItemId
    score: float
    support: int


class RecommendResponse(BaseModel):
    userId: int
    top_n: int
    results: list[RecommendationItem]


class ItemSimilarityRequest(BaseModel):
    itemId: ItemId
    otherItemId: Optional[ItemId] = Field(None, description="Return the pairwise similarity to this item")
    top_n: int = Field(10, ge=1, le=100, description="Number of similar items to return")


class SimilarItem(BaseModel):
    itemId: ItemId
    similarity: float


class ItemSimilarityResponse(BaseModel):
    itemId: ItemId
    similarity: Optional[float] = Field(None, description="Pairwise similarity; None if undefined or not asked")
    results: list[SimilarItem]
