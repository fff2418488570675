"""Pydantic schemas for the ranking query parameters."""
from typing import Annotated, Any, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError
from trending.domain.errors import InvalidQuery
from trending.domain.models import TimeRange


DEFAULT_PAGE_SIZE = 9
MAX_PAGE_SIZE = 100

FullName = Annotated[str, StringConstraints(pattern=r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$")]

_full_name_adapter = TypeAdapter(FullName)


class TrendingQuery(BaseModel):
    """Request model for one page of a trending ranking.

    Accepts both the wire names (timeRange, pageSize) and the field names.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time_range: TimeRange = Field(alias="timeRange")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize")
    language: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> 'TrendingQuery':
        """Validate raw parameters; empty and missing values take their defaults.

        Raises:
            InvalidQuery: When a parameter is missing or out of range
        """
        present = {key: value for key, value in data.items() if value is not None and value != ""}
        try:
            return cls.model_validate(present)
        except ValidationError as e:
            raise InvalidQuery(describe_errors(e)) from e


def parse_full_name(value: Any) -> str:
    """Validate an owner/name pair.

    Raises:
        InvalidQuery: When the value is not of the form owner/name
    """
    try:
        return _full_name_adapter.validate_python(value)
    except ValidationError as e:
        raise InvalidQuery(f"Invalid repository name {value!r}, expected owner/name") from e


def describe_errors(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in detail['loc']) or 'query'}: {detail['msg']}"
        for detail in error.errors()
    )
