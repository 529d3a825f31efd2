"""
Shared schema base classes.

The public API speaks camelCase JSON (``utilizationPercentage``,
``hourlyRate``) while Python code uses snake_case attributes.
``APIModel`` bridges the two with an alias generator; models can be
populated by either name and are serialised by alias in responses.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(APIModel):
    page: int = Field(..., examples=[1])
    limit: int = Field(..., examples=[10])
    total: int = Field(..., examples=[42])
    total_pages: int = Field(..., examples=[5])


class MessageResponse(APIModel):
    """Generic acknowledgement with an optional payload."""

    message: str = Field(..., examples=["Operation completed successfully"])
    data: Dict[str, Any] = Field(default_factory=dict)
