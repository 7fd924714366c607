"""
Error types for nounkit.

This module defines all exception types raised by the library:
- NounKitError: Base exception
- AlreadyInitializedError: Lifecycle initialized twice without reset
- NotInitializedError: Backend accessed before init() outside lazy mode
- InvalidEndpointError: Malformed or empty remote endpoint
- UnknownVerbError: Verb not declared or disabled for an entity type
- NotFoundError: update or verb target id does not exist
- SchemaError: Invalid entity type declaration
- DuplicateRegistrationError: Entity type name registered twice
- QueryError: Unsupported filter operator
- RemoteProviderError: Remote backend call failed

Errors raised by before-hooks are never wrapped; they reach the
caller as the exact exception object the hook raised.

Invariants:
    - All errors inherit from NounKitError
    - Every error carries a stable ``code`` for programmatic handling
    - get/delete/find report absence with None/False/[], never NotFoundError
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class NounKitError(Exception):
    """Base exception for all nounkit errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "NOUNKIT_ERROR"
        self.details = details or {}


class AlreadyInitializedError(NounKitError):
    """init() was called while a backend is already active.

    Call reset() first, or use reconfigure() to swap backends.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or "nounkit is already initialized. Call reset() first or use reconfigure().",
            code="ALREADY_INITIALIZED",
        )


class NotInitializedError(NounKitError):
    """A backend was required before init() and lazy mode is off."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message or "nounkit is not initialized. Call init() or enable_lazy() first.",
            code="NOT_INITIALIZED",
        )


class InvalidEndpointError(NounKitError):
    """Endpoint is empty or not an absolute http(s) URL."""

    def __init__(self, endpoint: Any, reason: str) -> None:
        super().__init__(
            f"Invalid endpoint {endpoint!r}: {reason}",
            code="INVALID_ENDPOINT",
            details={"endpoint": endpoint, "reason": reason},
        )
        self.endpoint = endpoint
        self.reason = reason


class UnknownVerbError(NounKitError):
    """Verb is not declared on the entity type, or is disabled."""

    def __init__(self, type_name: str, verb: str, disabled: bool = False) -> None:
        if disabled:
            msg = f"Verb '{verb}' is disabled on {type_name}"
        else:
            msg = f"Unknown verb '{verb}' on {type_name}"
        super().__init__(
            msg,
            code="UNKNOWN_VERB",
            details={"type": type_name, "verb": verb, "disabled": disabled},
        )
        self.type_name = type_name
        self.verb = verb
        self.disabled = disabled


class NotFoundError(NounKitError):
    """Target instance of an update or verb does not exist."""

    def __init__(self, type_name: str, entity_id: str) -> None:
        super().__init__(
            f"{type_name} not found: {entity_id}",
            code="NOT_FOUND",
            details={"type": type_name, "id": entity_id},
        )
        self.type_name = type_name
        self.entity_id = entity_id


class SchemaError(NounKitError):
    """Entity type declaration is invalid.

    Raised when:
    - A name is used by more than one of fields, relationships and verbs
    - A declaration string cannot be parsed
    """

    def __init__(self, message: str, type_name: Optional[str] = None) -> None:
        super().__init__(message, code="SCHEMA_ERROR", details={"type": type_name})
        self.type_name = type_name


class DuplicateRegistrationError(NounKitError):
    """Entity type name is already registered."""

    def __init__(self, type_name: str) -> None:
        super().__init__(
            f"Entity type '{type_name}' is already registered",
            code="DUPLICATE_REGISTRATION",
            details={"type": type_name},
        )
        self.type_name = type_name


class QueryError(NounKitError):
    """Filter uses an operator the evaluator does not support."""

    def __init__(self, message: str, operator: Optional[str] = None) -> None:
        super().__init__(message, code="QUERY_ERROR", details={"operator": operator})
        self.operator = operator


class RemoteProviderError(NounKitError):
    """Remote backend returned an error or could not be reached.

    Attributes:
        status_code: HTTP status, None for transport failures
        url: Request URL
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="REMOTE_ERROR",
            details={"status_code": status_code, "url": url},
        )
        self.status_code = status_code
        self.url = url
