"""
Unified error handling for shootops.

This module provides the error hierarchy shared by the orchestration layer
and the standardized exit codes used by the CLI.

Exit Codes:
- 0: Success
- 1: Warning (advisory, operation succeeded with warnings)
- 2: Blocked (precondition not met, e.g. required extensions missing)
- 10: Configuration error
- 11: Provider error (API/store failure)
- 12: Validation error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, Iterable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    BLOCKED = 2
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class ShootOpsError(Exception):
    """Base exception for shootops errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ShootOpsError):
    """Raised for configuration problems detected before anything is deployed."""

    exit_code = ExitCode.CONFIG_ERROR


class ProviderError(ShootOpsError):
    """Raised when the resource API or another external service fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class ValidationError(ShootOpsError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class BlockedError(ShootOpsError):
    """Raised when an operation is blocked by an unmet precondition."""

    exit_code = ExitCode.BLOCKED


class MissingExtensionsError(BlockedError):
    """Raised by the readiness gate, naming every missing (kind, type) pair."""

    def __init__(self, missing: Iterable[tuple[str, str]]):
        self.missing = sorted(set(missing))
        pairs = ", ".join(f"{kind}/{type_}" for kind, type_ in self.missing)
        super().__init__(
            f"required extensions are not installed or not healthy: {pairs}",
            details={"missing_count": len(self.missing)},
        )


class MultiError(ShootOpsError):
    """Aggregate of every failure of a fan-out; no error masks another."""

    def __init__(self, errors: Iterable[BaseException], message: str | None = None):
        self.errors = list(errors)
        header = message or f"{len(self.errors)} error(s) occurred"
        lines = "\n".join(f"* {err}" for err in self.errors)
        super().__init__(f"{header}:\n{lines}" if lines else header)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)


def flatten_errors(errors: Iterable[BaseException]) -> list[BaseException]:
    """Expand nested MultiErrors into a flat list."""
    flat: list[BaseException] = []
    for err in errors:
        if isinstance(err, MultiError):
            flat.extend(flatten_errors(err.errors))
        else:
            flat.append(err)
    return flat


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Exit codes:
        - ShootOpsError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ShootOpsError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ShootOpsError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
