from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from datetime import datetime


# --- Comment ---

# Integer fields are strict: booleans, floats and numeric strings are rejected.

class CommentBase(BaseModel):
    # Trailing/leading whitespace never counts as content.
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1)
    status: StrictInt | None = None
    parent_id: StrictInt | None = None


class CommentCreate(CommentBase):
    post_id: StrictInt
    user_id: StrictInt


class CommentUpdate(CommentBase):
    post_id: StrictInt | None = None
    user_id: StrictInt | None = None

    @field_validator("post_id", "user_id", "status")
    @classmethod
    def not_null(cls, value):
        # Omitted fields keep their default and never reach this validator.
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int
    content: str
    status: int
    parent_id: int | None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_comments: int
    root_comments: int
    replies: int
    cache_info: dict = {}


# --- Health ---

class HealthResponse(BaseModel):
    status: str
    version: str
    store: bool
    cache: bool
