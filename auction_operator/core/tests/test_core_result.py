"""
Unit tests for Result/Option values and result-returning tasks.
"""

import asyncio

import pytest

from auction_operator.core.errors import (
    ContractError,
    ErrorHandler,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from auction_operator.core.result import Err, Nothing, Ok, Some, from_nullable, sequence
from auction_operator.core.task import attempt, chain_task, fail, gather, map_task, succeed


class TestResult:
    """Test Ok/Err behaviour."""

    def test_map_only_touches_ok(self):
        """Test map transforms Ok and passes Err through."""
        assert Ok(2).map(lambda x: x * 3) == Ok(6)
        err = Err(ValidationError("bad"))
        assert err.map(lambda x: x * 3) is err

    def test_and_then_short_circuits(self):
        """Test and_then stops at the first Err."""
        assert Ok(2).and_then(lambda x: Ok(x + 1)) == Ok(3)
        assert Ok(2).and_then(lambda x: Err("no")) == Err("no")
        assert Err("first").and_then(lambda x: Ok(x)) == Err("first")

    def test_fold(self):
        """Test fold dispatches on the case."""
        assert Ok(1).fold(lambda e: "err", lambda v: f"ok {v}") == "ok 1"
        assert Err("x").fold(lambda e: f"err {e}", lambda v: "ok") == "err x"

    def test_unwrap_or(self):
        """Test unwrap_or returns the default for Err only."""
        assert Ok(5).unwrap_or(0) == 5
        assert Err("x").unwrap_or(0) == 0

    def test_sequence(self):
        """Test sequence collects values or returns the first Err."""
        assert sequence([Ok(1), Ok(2)]) == Ok([1, 2])
        assert sequence([Ok(1), Err("a"), Err("b")]) == Err("a")


class TestOption:
    """Test Some/Nothing behaviour."""

    def test_from_nullable(self):
        """Test None becomes Nothing."""
        assert from_nullable(None) == Nothing()
        assert from_nullable(0) == Some(0)

    def test_map_and_unwrap(self):
        """Test map and unwrap_or on both cases."""
        assert Some(2).map(str) == Some("2")
        assert Nothing().map(str) == Nothing()
        assert Nothing().unwrap_or("default") == "default"
        assert Some(1).is_some() and Nothing().is_nothing()


class TestErrorHandler:
    """Test classification of raw exceptions."""

    @pytest.fixture
    def handler(self):
        return ErrorHandler()

    @pytest.mark.parametrize("message,expected", [
        ("429 Too Many Requests", RateLimitError),
        ("execution reverted: not manager", ContractError),
        ("connection refused", NetworkError),
        ("nonce too low", NetworkError),
        ("invalid argument 0", ValidationError),
        ("something odd", NetworkError),
    ])
    def test_to_operator_error(self, handler, message, expected):
        """Test message keywords map to the right error type."""
        error = handler.to_operator_error(Exception(message), "read")
        assert type(error) is expected
        assert error.message == f"read: {message}"

    def test_timeout_is_network(self, handler):
        """Test asyncio timeouts classify as network errors."""
        assert handler.classify_error(asyncio.TimeoutError()) == "network"

    def test_operator_errors_pass_through(self, handler):
        """Test already-typed errors are returned unchanged."""
        error = ContractError("reverted")
        assert handler.to_operator_error(error, "ctx") is error

    def test_retryable_flags(self):
        """Test which kinds are transient."""
        assert ValidationError("x").retryable is False
        assert ContractError("x").retryable is False
        assert NetworkError("x").retryable is True
        assert RateLimitError("x", retry_after=1.0).retry_after == 1.0


class TestTasks:
    """Test suspended result-returning computations."""

    @pytest.mark.asyncio
    async def test_attempt_converts_exceptions(self):
        """Test attempt turns a raised exception into Err."""

        async def boom():
            raise ConnectionError("connection reset")

        result = await attempt(boom, "read slot0")()
        assert isinstance(result, Err)
        assert isinstance(result.error, NetworkError)
        assert "read slot0" in result.error.message

    @pytest.mark.asyncio
    async def test_attempt_is_lazy(self):
        """Test nothing runs until the task is awaited."""
        calls = []

        async def work():
            calls.append(1)
            return 7

        task = attempt(work, "work")
        assert calls == []
        assert await task() == Ok(7)
        assert await task() == Ok(7)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_attempt_propagates_cancellation(self):
        """Test cancellation is not turned into an Err."""

        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await attempt(cancelled, "cancelled")()

    @pytest.mark.asyncio
    async def test_map_and_chain(self):
        """Test task combinators."""
        assert await map_task(succeed(2), lambda x: x * 10)() == Ok(20)
        assert await chain_task(succeed(2), lambda x: succeed(x + 1))() == Ok(3)
        error = ValidationError("no")
        assert await chain_task(fail(error), lambda x: succeed(x))() == Err(error)

    @pytest.mark.asyncio
    async def test_gather(self):
        """Test gather returns all values in order or the first Err."""
        assert await gather(succeed(1), succeed(2)) == Ok((1, 2))

        first = NetworkError("first")
        second = NetworkError("second")
        assert await gather(succeed(1), fail(first), fail(second)) == Err(first)
