from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, ValidationError, field_validator

from recuerdos.core.errors import InvalidInput

ModelT = TypeVar("ModelT", bound=BaseModel)

ASCENDING_ORDERS = {"antiguo", "asc"}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Password = Annotated[str, StringConstraints(min_length=1, max_length=128)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
OptionalText = Annotated[str | None, BeforeValidator(_blank_to_none)]
OptionalYear = Annotated[Annotated[int, Field(ge=1, le=9999)] | None, BeforeValidator(_blank_to_none)]
OptionalMonth = Annotated[Annotated[int, Field(ge=1, le=12)] | None, BeforeValidator(_blank_to_none)]


def describe_validation_error(exc: Any) -> str:
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        if loc:
            fields.append(".".join(loc))
    if not fields:
        return "Faltan datos"
    return "Faltan datos o son inválidos: " + ", ".join(dict.fromkeys(fields))


def parse_input(model: type[ModelT], **data: Any) -> ModelT:
    """Validate boundary data, turning pydantic failures into ``InvalidInput``."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidInput(describe_validation_error(exc)) from exc


class Credentials(BaseModel):
    username: Username
    password: Password


class MemoryFilters(BaseModel):
    search: OptionalText = None
    year: OptionalYear = None
    month: OptionalMonth = None
    order: OptionalText = None

    @property
    def ascending(self) -> bool:
        return (self.order or "").lower() in ASCENDING_ORDERS


class MemoryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Title = Field(alias="titulo")
    description: OptionalText = Field(default=None, alias="descripcion")
    date: dt.date = Field(alias="fecha")


class MemoryUpdate(BaseModel):
    """Partial update; only the fields the client sent are applied."""

    model_config = ConfigDict(populate_by_name=True)

    title: Title | None = Field(default=None, alias="titulo")
    description: OptionalText = Field(default=None, alias="descripcion")
    date: dt.date | None = Field(default=None, alias="fecha")

    @field_validator("title", "date")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("must not be empty")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
