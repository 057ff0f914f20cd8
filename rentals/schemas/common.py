"""
Sobres de respuesta compartidos por los endpoints.
"""
import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            totalPages=total_pages,
            hasNext=page < total_pages,
            hasPrev=page > 1,
        )


class Meta(BaseModel):
    pagination: PaginationMeta


class Page(BaseModel, Generic[T]):
    """Listado paginado: { data, meta: { pagination } }"""
    data: List[T]
    meta: Meta


class DataResponse(BaseModel, Generic[T]):
    message: Optional[str] = None
    data: T


class MessageResponse(BaseModel):
    message: str


class CatalogItem(BaseModel):
    codigo: str
    nombre: str


class CatalogResponse(BaseModel):
    data: List[CatalogItem]
