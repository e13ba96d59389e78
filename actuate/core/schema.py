"""
Actuate — Schema Validation

Validators are compiled once per action definition from any type pydantic can
adapt (a BaseModel subclass, a TypedDict, a dataclass, a plain annotation).
The compiled SchemaValidator satisfies the validator contract the executor
relies on: check(value) -> bool and errors(value) -> list[FieldError].

Transport locations:
  Fields can be bound to a request location (query, path, header, cookie,
  body) through json_schema_extra. Query and path parameters are input-only;
  declaring one in an output schema is a contract violation caught when the
  action is defined, not when it runs.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from actuate.core.errors import FieldError, SchemaContractError

_LOCATION_KEY = "http"


class HttpLocation(enum.StrEnum):
    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    COOKIE = "cookie"
    BODY = "body"


INPUT_ONLY_LOCATIONS: frozenset[HttpLocation] = frozenset({
    HttpLocation.QUERY,
    HttpLocation.PATH,
})


def http_field(location: HttpLocation, name: str | None = None, **kwargs: Any) -> Any:
    """A pydantic Field bound to an HTTP request/response location."""
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra[_LOCATION_KEY] = {"location": location.value, "name": name}
    return Field(json_schema_extra=extra, **kwargs)


def query(name: str | None = None, **kwargs: Any) -> Any:
    return http_field(HttpLocation.QUERY, name, **kwargs)


def path(name: str | None = None, **kwargs: Any) -> Any:
    return http_field(HttpLocation.PATH, name, **kwargs)


def header(name: str | None = None, **kwargs: Any) -> Any:
    return http_field(HttpLocation.HEADER, name, **kwargs)


def cookie(name: str | None = None, **kwargs: Any) -> Any:
    return http_field(HttpLocation.COOKIE, name, **kwargs)


def field_location(schema: Any, field_name: str) -> HttpLocation | None:
    """Return the HTTP location a model field is bound to, if any."""
    if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        return None
    info = schema.model_fields.get(field_name)
    if info is None or not isinstance(info.json_schema_extra, dict):
        return None
    meta = info.json_schema_extra.get(_LOCATION_KEY)
    if not isinstance(meta, dict) or "location" not in meta:
        return None
    return HttpLocation(meta["location"])


def check_output_schema(schema: Any) -> None:
    """Reject output schemas that bind fields to input-only locations."""
    if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        return
    for field_name in schema.model_fields:
        location = field_location(schema, field_name)
        if location in INPUT_ONLY_LOCATIONS:
            raise SchemaContractError(
                f"Invalid output schema: field {field_name!r} is bound to "
                f"http.{location.value}, which is only valid in input schemas. "
                "Query and path parameters cannot be set in a response."
            )


def _format_loc(loc: tuple[int | str, ...]) -> str:
    return "/" + "/".join(str(part) for part in loc) if loc else "/"


class SchemaValidator:
    """A schema compiled once into a pydantic TypeAdapter."""

    def __init__(self, schema: Any) -> None:
        self.schema = schema
        self._adapter: TypeAdapter[Any] = TypeAdapter(schema)

    def check(self, value: Any) -> bool:
        try:
            self._adapter.validate_python(value)
        except ValidationError:
            return False
        return True

    def errors(self, value: Any) -> list[FieldError]:
        try:
            self._adapter.validate_python(value)
        except ValidationError as exc:
            return field_errors(exc)
        return []

    def validate(self, value: Any) -> Any:
        """Validate and coerce; raises pydantic.ValidationError on mismatch."""
        return self._adapter.validate_python(value)

    def dump(self, value: Any) -> Any:
        """Normalise a validated value to JSON-compatible data."""
        return self._adapter.dump_python(value, mode="json")

    def json_schema(self) -> dict[str, Any]:
        return self._adapter.json_schema()

    def __repr__(self) -> str:
        return f"<SchemaValidator schema={getattr(self.schema, '__name__', self.schema)!r}>"


def field_errors(exc: ValidationError) -> list[FieldError]:
    return [
        FieldError(path=_format_loc(tuple(err["loc"])), message=err["msg"])
        for err in exc.errors()
    ]
