from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Generic, Optional, TypeVar

DataT = TypeVar("DataT")

class CamelModel(BaseModel):
    """Schema exchanged as camelCase JSON, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class BaseResponse(BaseModel):
    """Base response model."""

    success: bool = True
    message: Optional[str] = None

class DataResponse(BaseResponse, Generic[DataT]):
    """Success envelope wrapping a payload."""

    data: Optional[DataT] = None


class Pagination(BaseModel):
    """Pagination block for list responses."""

    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=(total + limit - 1) // limit if limit else 0)
