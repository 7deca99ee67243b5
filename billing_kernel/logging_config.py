"""
Module: billing_kernel.logging_config
Responsibility: One-line JSON logs for billing runs.  Every record carries
    the billing scope it was emitted under (job, panel, month, event) so a
    month regeneration can be followed panel by panel.
Architecture position: Kernel > cross-cutting.  No imports from the rest of
    the kernel.

Record layout:
    ts, level, logger, message
    scope fields in SCOPE_FIELDS order (correlation_id .. event_id)
    extras passed through ``extra=``
    exc_* fields and traceback when exc_info is set

Rendering:
    - Decimal values are amounts: rendered with at least two decimals
      ("37.7" -> "37.70", "40" -> "40.00"), longer precision kept as is.
    - Enum values are rendered by value.
    - UUID, date and datetime are rendered as strings.
"""

__all__ = [
    "SCOPE_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "billing_kernel"

# Order in which scope fields appear in every record
SCOPE_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "job_id",
    "panel_id",
    "month_key",
    "event_id",
)

_scope: ContextVar[dict[str, str] | None] = ContextVar("billing_log_scope", default=None)


# ---------------------------------------------------------------------------
# Billing scope
# ---------------------------------------------------------------------------


def _merged(fields: dict[str, Any]) -> dict[str, str]:
    unknown = set(fields) - set(SCOPE_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log scope field(s): {', '.join(sorted(unknown))}")
    merged = dict(_scope.get() or {})
    merged.update({k: str(v) for k, v in fields.items() if v is not None})
    return merged


class LogContext:
    """
    Billing scope attached to every record emitted in the current context.

    Backed by a single ContextVar, so worker threads and async tasks each
    see their own scope.  Values are stored as strings; None is ignored.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Merge fields into the current scope."""
        _scope.set(_merged(fields))

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Merge fields for the duration of the block, then restore."""
        token = _scope.set(_merged(fields))
        try:
            yield
        finally:
            _scope.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        current = _scope.get() or {}
        return {name: current[name] for name in SCOPE_FIELDS if name in current}

    @staticmethod
    def clear() -> None:
        _scope.set(None)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}

_CENT = Decimal("0.01")


def _render(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        if value.is_finite() and value.as_tuple().exponent > -2:
            value = value.quantize(_CENT)
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class _JSONEncoder(json.JSONEncoder):
    """Nested values get the same rendering as top-level ones."""

    def default(self, obj: Any) -> Any:
        rendered = _render(obj)
        if rendered is obj:
            return super().default(obj)
        return rendered


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """exc_type, exc_message, plus exc_code and public attributes of kernel errors."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, val in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = _render(val)
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each record as one JSON line: envelope, billing scope, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Scope from context wins over a same-named extra
        extras = {k: v for k, v in vars(record).items() if k not in _STDLIB_KEYS}
        scope = LogContext.get_all()
        for name in SCOPE_FIELDS:
            if name in scope:
                payload[name] = scope[name]
            elif extras.get(name) is not None:
                payload[name] = _render(extras[name])

        for key, val in extras.items():
            if key not in payload:
                payload[key] = _render(val)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder, default=str)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the billing_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _is_billing_handler(handler: logging.Handler) -> bool:
    return getattr(handler, "_billing_handler", False)


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the billing_kernel logger.

    A second call is a no-op while a billing handler is attached; handlers
    added by anything else (test capture, the host application) are not
    counted and not touched.
    """
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    if any(_is_billing_handler(h) for h in root_logger.handlers):
        return

    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    h._billing_handler = True
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Detach the billing handler and restore the default level. For tests."""
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    for h in [h for h in root_logger.handlers if _is_billing_handler(h)]:
        root_logger.removeHandler(h)
    root_logger.setLevel(logging.WARNING)
    root_logger.propagate = True
