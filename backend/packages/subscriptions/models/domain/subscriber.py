"""
Polymorphic subscription owner.
"""

from typing import Union

from pydantic import BaseModel, Field, field_validator


class SubscriberRef(BaseModel):
    """
    (type, id) pair identifying whoever owns a subscription.

    The engine never loads the owner; the type tag is an opaque string such
    as "user" or "team" and the id is stored as text.
    """

    type: str = Field(min_length=1, max_length=255)
    id: str = Field(min_length=1, max_length=255)

    class Config:
        frozen = True

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Union[str, int]) -> str:
        return str(value)

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"
