import re
from datetime import date
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PatientIn(_CamelModel):
    """Fields accepted when adding a patient. Unknown keys (including `id`) are ignored."""

    name: str = Field(min_length=1)
    age: int = Field(ge=0, strict=True)
    gender: str = Field(min_length=1)
    address: Optional[str] = None
    contact_number: Optional[str] = None


class TestIn(_CamelModel):
    """Fields accepted when recording a test. The patient comes from the call, not the body."""

    test_type: str = Field(min_length=1)
    test_date: date
    result: str = Field(min_length=1)

    @field_validator("test_date", mode="before")
    @classmethod
    def reject_non_iso_date(cls, value):
        # lax date parsing would read integers and digit strings as unix timestamps
        if isinstance(value, date):
            return value
        if not isinstance(value, str) or not ISO_DATE.fullmatch(value.strip()):
            raise ValueError("testDate must be an ISO date string (YYYY-MM-DD)")
        return value.strip()


class PatientOut(_CamelModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    age: int
    gender: str = Field(min_length=1)
    address: Optional[str] = None
    contact_number: Optional[str] = None


class TestOut(_CamelModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    patient_id: str
    test_type: str
    test_date: date
    result: str


class PatientHistory(_CamelModel):
    model_config = ConfigDict(frozen=True)

    patient: PatientOut
    tests: List[TestOut]


def validate_input(model: Type[ModelT], data: Any) -> ModelT:
    """Validate `data` into `model`, translating pydantic errors into ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "body",
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        raise ValidationError(f"Invalid {model.__name__} data: {summary}", errors) from exc
