"""Structured error taxonomy for SnifferDeck."""
#
# PURPOSE:
# Every failure that can reach the sync controller is one of two kinds:
# the control service could not be reached or answered badly (NetworkFailure),
# or an import payload could not be understood (ParseFailure). Guards that
# refuse an operation are NOT errors and never raise.
#
# ERROR CODE FORMAT:
# - NET_XXX: control service / transport errors
# - PARSE_XXX: import document errors
# - CONFIG_XXX: configuration errors
#
# USAGE:
#   from snifferdeck.base.errors import NetworkFailure, ErrorCode
#
#   raise NetworkFailure(
#       ErrorCode.NET_BAD_STATUS,
#       "Control service rejected start",
#       details={"port": 8080},
#       status_code=409,
#   )
#
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Network Errors
    NET_UNREACHABLE = "NET_001"
    NET_TIMEOUT = "NET_002"
    NET_BAD_STATUS = "NET_003"
    NET_PROTOCOL_ERROR = "NET_004"

    # Parse Errors
    PARSE_INVALID_JSON = "PARSE_001"
    PARSE_NOT_AN_ARRAY = "PARSE_002"
    PARSE_INVALID_ENTRY = "PARSE_003"
    PARSE_UNREADABLE = "PARSE_004"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class SnifferDeckError(Exception):
    """
    Base exception carrying a searchable code, a human message and context.

    Attributes:
        code: ErrorCode enum value (e.g. "NET_003")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class NetworkFailure(SnifferDeckError):
    """A control service call rejected: transport error, non-2xx or garbage body."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(code, message, details)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class ParseFailure(SnifferDeckError):
    """An import document is not a JSON array of sniffer configurations."""


def handle_error(error: Exception, context: Optional[str] = None) -> SnifferDeckError:
    """
    Convert a generic exception to a SnifferDeckError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while starting port 8080")

    Returns:
        The error itself when already structured, otherwise a wrapped
        SYSTEM_INTERNAL_ERROR keeping the original type and message.
    """
    if isinstance(error, SnifferDeckError):
        return error

    message = str(error)
    if context:
        message = f"{context}: {message}"

    return SnifferDeckError(
        ErrorCode.SYSTEM_INTERNAL_ERROR,
        message,
        details={
            "original_type": type(error).__name__,
            "original_message": str(error),
        },
    )


__all__ = ["ErrorCode", "SnifferDeckError", "NetworkFailure", "ParseFailure", "handle_error"]
