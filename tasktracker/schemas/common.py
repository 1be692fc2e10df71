from math import ceil
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, total_pages=ceil(total / limit) if total else 0)


def dump(model: BaseModel) -> dict:
    return model.model_dump(by_alias=True, mode="json")


def envelope(message: Optional[str] = None, **data: Any) -> dict:
    """Build the ``{success, message?, data?}`` body of a successful response."""
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data:
        body["data"] = data
    return body
