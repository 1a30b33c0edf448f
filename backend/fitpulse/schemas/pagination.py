"""Shared pagination schema for list endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Items plus total and offset info."""

    items: list[T]
    total: int
    limit: int
    offset: int
    has_more: bool
