# insegnami/schemas/base.py
from datetime import datetime
from typing import ClassVar, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..utils.timeutils import to_naive_utc


class RequestSchema(BaseModel):
    """Request bodies accept both ``snake_case`` and ``camelCase`` keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    # Fields that may be omitted but never sent as an explicit null
    not_nullable: ClassVar[Tuple[str, ...]] = ()

    @field_validator('*', mode='after')
    @classmethod
    def normalize_datetimes(cls, v):
        # Columns store naive UTC
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v

    @model_validator(mode='after')
    def reject_explicit_nulls(self):
        nulls = [
            name for name in self.not_nullable
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self
