"""Error Hierarchy — typed, categorized exceptions for all entigraph failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Configuration errors are fatal at registration/validation time
    - Data and hydration problems inside the core are logged or signalled with None,
      never raised out of merge / GC / read paths
    - to_response() produces the REST envelope used by the API error handlers

Design Decisions:
    - Single hierarchy with EntiGraphError base: the FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    CONFIGURATION = "configuration"
    DATA = "data"
    HYDRATION = "hydration"
    PERSISTENCE = "persistence"
    STORAGE = "storage"
    VALIDATION = "validation"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    type_key: str | None = None
    entity_id: str | None = None
    channel: str | None = None
    debug_info: dict[str, Any] | None = None


class EntiGraphError(Exception):
    """Base exception for all entigraph errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "type_key": self.context.type_key,
                    "entity_id": self.context.entity_id,
                    "channel": self.context.channel,
                },
            }
        }


# ─── Configuration Errors ───────────────────────────────────────

class SchemaNotRegisteredError(EntiGraphError):
    """A type key was used without a registered schema."""
    def __init__(self, type_key: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.type_key = type_key
        super().__init__(
            f"No schema registered for type '{type_key}'",
            "SCHEMA_NOT_REGISTERED", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, ctx, 404,
        )
        self.type_key = type_key


class DuplicateSchemaError(EntiGraphError):
    """A second schema was registered for an existing type key."""
    def __init__(self, type_key: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.type_key = type_key
        super().__init__(
            f"Schema for type '{type_key}' is already registered",
            "DUPLICATE_SCHEMA", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.type_key = type_key


class RegistryValidationError(EntiGraphError):
    """Relations point at type keys that have no schema."""
    def __init__(self, dangling: list[str], context: ErrorContext | None = None):
        super().__init__(
            f"Relations reference unregistered types: {', '.join(dangling)}",
            "REGISTRY_INVALID", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.dangling = dangling


class GCPolicyError(EntiGraphError):
    """GC policy table is inconsistent with itself or with the registry."""
    def __init__(self, message: str, type_key: str | None = None,
                 context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.type_key = type_key
        super().__init__(
            message, "GC_POLICY_INVALID", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, ctx, 500,
        )


# ─── Data / Hydration Errors ────────────────────────────────────

class MissingEntityIdError(EntiGraphError):
    """A raw record carries no usable id for its schema."""
    def __init__(self, type_key: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.type_key = type_key
        super().__init__(
            f"Record of type '{type_key}' has no usable id",
            "MISSING_ENTITY_ID", ErrorCategory.DATA,
            ErrorSeverity.WARNING, ctx, 400,
        )
        self.type_key = type_key


class EntityNotFoundError(EntiGraphError):
    """Requested entity does not exist (evicted or never merged)."""
    def __init__(self, type_key: str, entity_id: str,
                 context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.type_key = type_key
        ctx.entity_id = entity_id
        super().__init__(
            f"{type_key} '{entity_id}' not found",
            "ENTITY_NOT_FOUND", ErrorCategory.HYDRATION,
            ErrorSeverity.INFO, ctx, 404,
        )


# ─── Persistence / Storage Errors ───────────────────────────────

class PersistenceError(EntiGraphError):
    """Stored blob is malformed and cannot be restored."""
    def __init__(self, message: str, channel: str | None = None,
                 context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.channel = channel
        super().__init__(
            message, "PERSISTENCE_MALFORMED", ErrorCategory.PERSISTENCE,
            ErrorSeverity.WARNING, ctx, 500,
        )
        self.channel = channel


class StorageError(EntiGraphError):
    """Storage backend operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Storage {operation} failed: {message}",
            "STORAGE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
