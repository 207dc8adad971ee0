"""Pydantic schemas used by the API."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductFields(BaseModel):
    """Editable product fields; omitted fields are left untouched on edit."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    lot: Optional[str] = None
    expiry_text: Optional[str] = Field(default=None, alias="expiryText")

    def as_kwargs(self, *, fill: bool = False) -> Dict[str, Any]:
        values = self.model_dump(
            include={"name", "lot", "expiry_text"}, exclude_unset=not fill
        )
        if fill:
            return {key: value or "" for key, value in values.items()}
        return values


class ProductCreate(ProductFields):
    row: Optional[int] = None
    col: Optional[int] = None


class PositionUpdate(BaseModel):
    """Target cell; both ``None`` sends the product back to the shelf."""

    row: Optional[int] = None
    col: Optional[int] = None


class UndoResult(BaseModel):
    undone: bool
    remaining: int


class ImportSummary(BaseModel):
    imported: int
    dropped: int
    reassigned_ids: int
    unplaced: int


class HealthStatus(BaseModel):
    status: str = "ok"
    environment: str
    products: int


__all__ = [
    "ProductFields",
    "ProductCreate",
    "PositionUpdate",
    "UndoResult",
    "ImportSummary",
    "HealthStatus",
]
