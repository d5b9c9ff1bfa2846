from typing import Any

from pydantic import BaseModel


class ClothingOut(BaseModel):
    id: str
    name: str
    category: str
    color: str
    brand: str | None = None
    price: float | None = None
    seasons: list[str] = []
    tags: list[str] = []
    occasions: list[str] = []
    image_path: str | None = None
    has_image: bool = False
    favorite: bool = False
    wear_count: int = 0
    last_worn_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ApiResponse(BaseModel):
    success: bool = True
    data: Any = None
    message: str | None = None
    error: str | None = None


class TryOnResponse(BaseModel):
    success: bool
    status: str
    provider: str
    task_id: str | None = None
    result_url: str | None = None
    fallback: bool = False
    message: str | None = None
    error: str | None = None


class RecommendationOut(BaseModel):
    items: list[ClothingOut]
    reason: str
    score: float
