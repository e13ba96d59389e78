"""
Unit tests for action definition: the decorator, the validation wrapper,
schema contracts, triggers and retry policy.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import BaseModel, ValidationError

from actuate.core import triggers
from actuate.core.action import action, define
from actuate.core.errors import ActionValidationError, SchemaContractError
from actuate.core.guards.execution import Sequential
from actuate.core.meta import META_KEY, TransportMetadata
from actuate.core.schema import HttpLocation, SchemaValidator, field_location, header, path, query
from actuate.core.types import ActionConfig, ActionDefinition, RetryConfig


class EchoInput(BaseModel):
    message: str


class EchoOutput(BaseModel):
    echoed: str


class StampedOutput(BaseModel):
    at: datetime


# ─── Tests: Definition ────────────────────────────────────────────


def test_decorator_returns_definition():
    @action("echo", input=EchoInput, output=EchoOutput, description="Echo it back")
    async def echo(data: EchoInput, ctx) -> dict:
        return {"echoed": data.message}

    assert isinstance(echo, ActionDefinition)
    assert echo.name == "echo"
    assert echo.config.description == "Echo it back"
    assert echo.config.retry == RetryConfig()
    assert echo.handler.__name__ == "echo"


@pytest.mark.parametrize("name", ["", "users.create"])
def test_invalid_action_names_rejected(name):
    with pytest.raises(ValueError):
        action(name, input=dict, output=dict)


def test_retry_accepts_mapping():
    @action("r", input=dict, output=dict, retry={"max_attempts": 3, "backoff": "fixed"})
    async def r(data, ctx):
        return {}

    assert r.config.retry.max_attempts == 3
    assert r.config.retry.backoff == "fixed"


def test_retry_rejects_zero_attempts():
    with pytest.raises(ValidationError):
        RetryConfig(max_attempts=0)


def test_define_rejects_non_callable_handler():
    config = ActionConfig(name="x", input=dict, output=dict, guards=None)
    with pytest.raises(TypeError):
        define(config, "not a function")



def test_define_defaults_to_no_guards():
    definition = define(ActionConfig(name="ping", input=dict, output=dict), lambda data, ctx: {})

    assert definition.config.guards == Sequential()
    assert definition.config.retry == RetryConfig()


def test_define_normalizes_shorthand_guards_and_retry():
    def allow(ctx):
        return None

    config = ActionConfig(
        name="sync",
        input=dict,
        output=dict,
        guards=[allow],
        retry={"max_attempts": 3, "backoff": "fixed"},
    )
    definition = define(config, lambda data, ctx: {})

    assert definition.config.guards == Sequential((allow,))
    assert isinstance(definition.config.retry, RetryConfig)
    assert definition.config.retry.max_attempts == 3


def test_output_schema_with_query_field_is_rejected():
    class BadOutput(BaseModel):
        page: int = query()

    with pytest.raises(SchemaContractError, match="only valid in input schemas"):
        action("list", input=dict, output=BadOutput)(lambda data, ctx: {})


def test_output_schema_with_path_field_is_rejected():
    class BadOutput(BaseModel):
        id: str = path()

    with pytest.raises(SchemaContractError):
        action("get", input=dict, output=BadOutput)(lambda data, ctx: {})


def test_output_schema_with_header_field_is_allowed():
    class Output(BaseModel):
        etag: str = header("ETag")

    definition = action("get", input=dict, output=Output)(lambda data, ctx: {"etag": "x"})
    assert field_location(Output, "etag") == HttpLocation.HEADER
    assert definition.output_validator.schema is Output


# ─── Tests: Validation Wrapper ────────────────────────────────────


@pytest.mark.asyncio
async def test_handler_receives_validated_model():
    seen: list[object] = []

    @action("echo", input=EchoInput, output=EchoOutput)
    async def echo(data: EchoInput, ctx) -> dict:
        seen.append(data)
        return {"echoed": data.message}

    result = await echo.handler({"message": "hi"}, None)

    assert isinstance(seen[0], EchoInput)
    assert result == {"echoed": "hi"}


@pytest.mark.asyncio
async def test_invalid_input_raises_validation_error():
    @action("echo", input=EchoInput, output=EchoOutput)
    async def echo(data: EchoInput, ctx) -> dict:
        return {"echoed": data.message}

    with pytest.raises(ActionValidationError) as exc_info:
        await echo.handler({"message": None}, None)

    err = exc_info.value
    assert err.phase == "input"
    assert err.status_code == 400
    assert err.field_errors[0].path == "/message"
    assert str(err).startswith("Action input validation failed")


@pytest.mark.asyncio
async def test_invalid_output_raises_validation_error():
    @action("echo", input=EchoInput, output=EchoOutput)
    async def echo(data: EchoInput, ctx) -> dict:
        return {"wrong": True}

    with pytest.raises(ActionValidationError) as exc_info:
        await echo.handler({"message": "hi"}, None)

    assert exc_info.value.phase == "output"
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_model_output_is_normalised_to_json_data():
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    @action("stamp", input=dict, output=StampedOutput)
    def stamp(data: dict, ctx) -> StampedOutput:
        return StampedOutput(at=moment)

    result = await stamp.handler({}, None)

    assert result == {"at": "2024-01-02T03:04:05Z"}


@pytest.mark.asyncio
async def test_meta_is_stripped_before_validation_and_reattached():
    @action("create", input=dict, output=EchoOutput)
    async def create(data: dict, ctx) -> dict:
        return {"echoed": "x", META_KEY: {"http": {"status": 201}}}

    result = await create.handler({}, None)

    assert result["echoed"] == "x"
    assert isinstance(result[META_KEY], TransportMetadata)
    assert result[META_KEY].http.status == 201


# ─── Tests: Schema Validator ──────────────────────────────────────


def test_schema_validator_check_and_errors():
    validator = SchemaValidator(EchoInput)

    assert validator.check({"message": "ok"}) is True
    assert validator.check({}) is False
    assert validator.errors({"message": "ok"}) == []

    errors = validator.errors({})
    assert len(errors) == 1
    assert errors[0].path == "/message"


def test_schema_validator_json_schema():
    schema = SchemaValidator(EchoInput).json_schema()
    assert schema["properties"]["message"]["type"] == "string"


# ─── Tests: Triggers ──────────────────────────────────────────────


def test_api_trigger_requires_leading_slash():
    assert triggers.api("GET", "/users").path == "/users"
    with pytest.raises(ValueError):
        triggers.api("GET", "users")


def test_webhook_trigger_requires_leading_slash():
    with pytest.raises(ValueError):
        triggers.webhook("hooks/stripe")


def test_cron_trigger_field_count():
    assert triggers.cron("0 * * * *").schedule == "0 * * * *"
    assert triggers.cron("0 0 * * * *").type == "cron"
    with pytest.raises(ValueError):
        triggers.cron("* * *")


def test_tool_and_event_triggers():
    tool = triggers.tool("search", "Search documents")
    assert tool.type == "tool"
    assert tool.description == "Search documents"

    event = triggers.event("order.paid", map=lambda payload: payload["order"])
    assert event.type == "event"
    assert event.map({"order": 1}) == 1


# ─── Tests: Retry Policy ──────────────────────────────────────────


def test_exponential_delay_doubles_and_caps():
    retry = RetryConfig(max_attempts=10, backoff="exponential", backoff_ms=100, max_backoff_ms=500)
    assert [retry.delay_ms(n) for n in range(1, 6)] == [100, 200, 400, 500, 500]


def test_fixed_delay_is_constant():
    retry = RetryConfig(backoff="fixed", backoff_ms=300)
    assert retry.delay_ms(1) == retry.delay_ms(7) == 300
