"""Shared schema bases and the success envelope."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the web clients send them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope: ``{success, message, data}``."""

    success: bool = True
    message: str | None = None
    data: T | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
