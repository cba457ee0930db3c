"""Admin request schemas"""
from pydantic import BaseModel, Field


class IdsRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class CategoryIdsRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class CascadeResponse(BaseModel):
    deleted: int
    refreshed_users: int = 0


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    hex_color: str = Field("#000000", pattern=r"^#[0-9a-fA-F]{6}$")


class CategoryResponse(BaseModel):
    id: int
    name: str
    hex_color: str

    model_config = {"from_attributes": True}
