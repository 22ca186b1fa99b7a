"""
Error taxonomy for operator operations.

This module provides the typed error values carried inside ``Err`` results
and the classification utilities that turn raw RPC / web3 exceptions into
them, so retry decisions are made on error kind rather than on strings
scattered across call sites.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound


class OperatorError(Exception):
    """Base exception for operator operations."""

    kind = "unknown"
    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __eq__(self, other):
        return (
            type(self) is type(other)
            and self.message == other.message
        )

    def __hash__(self):
        return hash((type(self).__name__, self.message))


class ValidationError(OperatorError):
    """Raised when input validation fails. Never retried."""

    kind = "validation"
    retryable = False


class NetworkError(OperatorError):
    """Raised when network-related errors occur (timeouts, node errors)."""

    kind = "network"


class RateLimitError(NetworkError):
    """Raised when rate limit is hit."""

    kind = "rate_limit"

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 retry_after: Optional[float] = None):
        super().__init__(message, cause)
        self.retry_after = retry_after


class ContractError(OperatorError):
    """Raised when a contract call reverts or gas estimation fails."""

    kind = "contract"
    retryable = False


class TransactionError(OperatorError):
    """Raised when a submitted transaction cannot be tracked to a receipt."""

    kind = "transaction"

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 retryable: bool = True):
        super().__init__(message, cause)
        self.retryable = retryable


class ErrorHandler:
    """
    Centralized error handling for ledger operations.

    Provides classification, conversion and logging for the various
    errors encountered while talking to the node.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def classify_error(self, error: BaseException) -> str:
        """
        Classify an error into a category for appropriate handling.

        Args:
            error: Exception to classify

        Returns:
            Error category string
        """
        if isinstance(error, OperatorError):
            return error.kind

        if isinstance(error, ContractLogicError):
            return 'contract'

        if isinstance(error, (TimeExhausted, TransactionNotFound, asyncio.TimeoutError, ConnectionError)):
            return 'network'

        error_str = str(error).lower()

        # Rate limiting errors
        if any(keyword in error_str for keyword in ['rate limit', 'too many requests', '429']):
            return 'rate_limit'

        # Contract execution errors
        if any(keyword in error_str for keyword in ['revert', 'execution reverted', 'out of gas']):
            return 'contract'

        # Network connectivity errors
        if any(keyword in error_str for keyword in ['connection', 'timeout', 'network', 'dns']):
            return 'network'

        # Nonce / fee races resolve on a later attempt
        if any(keyword in error_str for keyword in ['nonce too low', 'replacement transaction underpriced', 'already known']):
            return 'network'

        # Validation errors
        if any(keyword in error_str for keyword in ['invalid', 'bad request', '400']):
            return 'validation'

        return 'unknown'

    def to_operator_error(self, error: BaseException, context: str) -> OperatorError:
        """
        Convert a raw exception into a typed operator error.

        Args:
            error: Exception raised by the underlying call
            context: Short description of the failed operation

        Returns:
            OperatorError subclass matching the error category
        """
        if isinstance(error, OperatorError):
            return error

        message = f"{context}: {error}"
        category = self.classify_error(error)

        if category == 'rate_limit':
            return RateLimitError(message, error)
        if category == 'network':
            return NetworkError(message, error)
        if category == 'contract':
            return ContractError(message, error)
        if category == 'validation':
            return ValidationError(message, error)

        # Unknown errors are treated as transient node errors
        return NetworkError(message, error)

    def log_error(self, error: BaseException, context: Dict[str, Any]):
        """
        Log error with appropriate level and context.

        Args:
            error: Exception to log
            context: Additional context for logging
        """
        error_category = self.classify_error(error)

        log_data = {
            'error_type': type(error).__name__,
            'error_category': error_category,
            'error_message': str(error),
            **context
        }

        # Log validation errors as warnings
        if error_category == 'validation':
            self.logger.warning(f"Validation error occurred: {error}", extra=log_data)
        # Log contract errors as errors
        elif error_category == 'contract':
            self.logger.error(f"Contract execution failed: {error}", extra=log_data)
        # Log rate limit as info (expected)
        elif error_category == 'rate_limit':
            self.logger.info(f"Rate limit encountered: {error}", extra=log_data)
        # Everything else as warning
        else:
            self.logger.warning(f"Ledger operation error: {error}", extra=log_data)
