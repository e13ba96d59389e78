"""
Actuate — Transport Metadata

A handler may attach transport-specific directives to its output under the
`_meta` key: an HTTP status or headers, an MCP format hint, event priority, a
cron reschedule. The envelope is a side channel. It is stripped before output
validation, reattached to the validated result, and never schema-checked.

Each transport reads only its own section:

    return with_meta(
        {"id": user.id},
        {"http": {"status": 201, "headers": {"Location": f"/users/{user.id}"}}},
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from actuate.primitives.common import ActuateBaseModel

META_KEY = "_meta"

TransportSection = Literal["http", "mcp", "event", "cron"]


class HttpCookie(ActuateBaseModel):
    name: str
    value: str
    http_only: bool = False
    secure: bool = False
    same_site: Literal["strict", "lax", "none"] | None = None
    path: str | None = None
    domain: str | None = None
    max_age: int | None = None
    expires: datetime | None = None


class HttpTransportMeta(ActuateBaseModel):
    status: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    cookies: list[HttpCookie] = Field(default_factory=list)


class McpTransportMeta(ActuateBaseModel):
    format: Literal["text", "json", "structured"] | None = None
    include_schema: bool = False
    is_streaming: bool = False


class EventTransportMeta(ActuateBaseModel):
    broadcast: bool = False
    priority: int | None = None
    delay_ms: int | None = None


class CronTransportMeta(ActuateBaseModel):
    reschedule: str | None = None
    skip_next: bool = False
    run_once: bool = False


class TransportMetadata(ActuateBaseModel):
    """Unified container. Only the section matching the trigger type is read."""

    http: HttpTransportMeta | None = None
    mcp: McpTransportMeta | None = None
    event: EventTransportMeta | None = None
    cron: CronTransportMeta | None = None


def _coerce_meta(meta: TransportMetadata | Mapping[str, Any] | None) -> TransportMetadata:
    if meta is None:
        return TransportMetadata()
    if isinstance(meta, TransportMetadata):
        return meta
    return TransportMetadata.model_validate(dict(meta))


def with_meta(
    data: Mapping[str, Any] | BaseModel,
    meta: TransportMetadata | Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Return a copy of `data` carrying the transport envelope."""
    if isinstance(data, BaseModel):
        payload = data.model_dump()
    elif isinstance(data, Mapping):
        payload = dict(data)
    else:
        raise TypeError(
            f"with_meta() needs a mapping or model to attach metadata to, got {type(data).__name__}"
        )
    payload[META_KEY] = _coerce_meta(meta)
    return payload


def split_meta(output: Any) -> tuple[Any, TransportMetadata | None]:
    """Separate the transport envelope from the output data."""
    if not isinstance(output, Mapping) or META_KEY not in output:
        return output, None
    data = {k: v for k, v in output.items() if k != META_KEY}
    return data, _coerce_meta(output[META_KEY])


def attach_meta(data: Any, meta: TransportMetadata | None) -> Any:
    """Reattach an envelope removed by split_meta()."""
    if meta is None:
        return data
    if not isinstance(data, Mapping):
        # Non-mapping outputs have nowhere to carry the envelope
        return data
    return {**data, META_KEY: meta}


def transport_meta(output: Any, section: TransportSection) -> BaseModel | None:
    """Read one transport's section from an action output."""
    _, meta = split_meta(output)
    if meta is None:
        return None
    return getattr(meta, section)
