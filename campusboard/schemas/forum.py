"""Forum and comment schemas"""
from datetime import datetime
from pydantic import BaseModel, Field


# ============ Forums ============

class ForumCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    is_anonymous: bool = False
    category_ids: list[int] = Field(default_factory=list)
    image_refs: list[str] = Field(default_factory=list)


class ForumUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    category_ids: list[int] | None = None
    image_refs: list[str] | None = None


class ForumResponse(BaseModel):
    id: str
    title: str
    description: str
    author_id: str
    is_anonymous: bool
    image_refs: list[str] = []
    category_ids: list[int] = []
    like_count: int = 0
    favorite_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LikeRequest(BaseModel):
    is_like: bool


class FavoriteRequest(BaseModel):
    is_favorite: bool


class ToggleResponse(BaseModel):
    active: bool
    count: int


# ============ Comments ============

class CommentCreate(BaseModel):
    forum_id: str
    parent_id: str | None = Field(None, description="top-level comment being replied to")
    text: str = Field(..., min_length=1)
    is_anonymous: bool = False
    image_refs: list[str] = Field(default_factory=list)


class CommentUpdate(BaseModel):
    text: str | None = Field(None, min_length=1)
    image_refs: list[str] | None = None


class CommentResponse(BaseModel):
    id: str
    forum_id: str
    parent_id: str | None = None
    author_id: str
    text: str
    is_anonymous: bool
    image_refs: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CommentView(BaseModel):
    """A comment as a given viewer sees it; anonymous authors are masked"""
    id: str
    forum_id: str
    parent_id: str | None = None
    author_id: str
    author_name: str
    author_image_url: str
    is_anonymous: bool
    text: str
    image_urls: list[str] = []
    like_count: int = 0
    is_liked: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    replies: list["CommentView"] = []


class CommentListResponse(BaseModel):
    items: list[CommentView]
    total: int
