# -*- coding: utf-8 -*-
"""Reference data — Pydantic models."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class ReferenceRangeCreateRequest(BaseModel):
    user_id: str = Field("local", min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    unit: Optional[str] = Field(None, max_length=32)
    description: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ReferenceRangeCreateRequest":
        if self.value_min is not None and self.value_max is not None and self.value_min > self.value_max:
            raise ValueError("value_min must not exceed value_max")
        return self


class ReferenceRangeUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    unit: Optional[str] = Field(None, max_length=32)
    description: Optional[str] = Field(None, max_length=2000)


class ReferenceRange(BaseModel):
    id: str
    user_id: str
    name: str
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    created_at: str
    updated_at: str


class ReferenceRangeListResponse(BaseModel):
    count: int
    items: List[ReferenceRange]
