"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Billing runs unattended over hundreds of panels per month. Callers (the
orchestrator, the bulk regenerator, the CLI) must decide per error whether to
abort, skip a panel, retry, or just log. Parsing messages for that is fragile,
so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, report-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        orchestrator.recalculate_month(panel_id, "2025-01")
    except ConfigurationMissingError as e:
        log.error("no rate", extra={"year": e.year, "code": e.code})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- ConfigurationError
    |   +-- ConfigurationMissingError
    |
    +-- PanelError
    |   +-- PanelNotFoundError
    |   +-- PanelCodeExistsError
    |   +-- PanelCodeMismatchError
    |
    +-- EventError
    |   +-- EventNotFoundError
    |   +-- EventAlreadyDeletedError
    |   +-- InvalidEventError
    |   +-- InvalidEventDateError
    |
    +-- MonthError
    |   +-- InvalidMonthKeyError
    |   +-- MonthLockedError
    |   +-- MonthAlreadyExistsError
    |   +-- SummaryNotFoundError
    |
    +-- StoreError
    |   +-- TransientStoreError
    |
    +-- CascadeError
        +-- CascadeFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_MISSING       | No standard rate for a year (fatal)
----------------|-----------------------------|-----------------------------------------
Panel           | PANEL_NOT_FOUND             | Referenced panel absent
                | PANEL_CODE_EXISTS           | Duplicate human code at intake
                | PANEL_CODE_MISMATCH         | Panel delete not confirmed by its code
----------------|-----------------------------|-----------------------------------------
Event           | EVENT_NOT_FOUND             | Event ID doesn't exist
                | EVENT_ALREADY_DELETED       | Soft-deleting a deleted event
                | INVALID_EVENT               | Missing/invalid monetary field for action
                | INVALID_EVENT_DATE          | Day-of-month not extractable
----------------|-----------------------------|-----------------------------------------
Month           | INVALID_MONTH_KEY           | Not a YYYY-MM key
                | MONTH_LOCKED                | Writing to or deleting a locked month
                | MONTH_ALREADY_EXISTS        | Opening a month twice
                | SUMMARY_NOT_FOUND           | Month summary doesn't exist
----------------|-----------------------------|-----------------------------------------
Store           | TRANSIENT_STORE_ERROR       | Contention/timeout on commit (retry)
----------------|-----------------------------|-----------------------------------------
Cascade         | CASCADE_FAILURE             | Summary recompute failed (logged only)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. TransientStoreError is retryable with the same idempotent call.
2. CascadeFailureError never propagates out of recalculation; the billing
   record is the source of truth and the summary is repaired by a re-run.
3. Bulk operations catch BillingKernelError per panel and report ``e.code``
   in their structured result instead of raising.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Configuration-related exceptions


class ConfigurationError(BillingKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class ConfigurationMissingError(ConfigurationError):
    """
    No standard rate is configured for the requested year.

    Billing must not proceed with a guessed rate.
    """

    code: str = "CONFIGURATION_MISSING"

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"No standard rate configured for year {year}")


# Panel-related exceptions


class PanelError(BillingKernelError):
    """Base exception for panel errors."""

    code: str = "PANEL_ERROR"


class PanelNotFoundError(PanelError):
    """Referenced panel does not exist."""

    code: str = "PANEL_NOT_FOUND"

    def __init__(self, panel_id: str):
        self.panel_id = panel_id
        super().__init__(f"Panel not found: {panel_id}")


class PanelCodeExistsError(PanelError):
    """A panel with the same human code is already registered."""

    code: str = "PANEL_CODE_EXISTS"

    def __init__(self, panel_code: str):
        self.panel_code = panel_code
        super().__init__(f"Panel code already registered: {panel_code}")


class PanelCodeMismatchError(PanelError):
    """A destructive panel action was not confirmed with the panel's code."""

    code: str = "PANEL_CODE_MISMATCH"

    def __init__(self, panel_code: str, confirm_code: str):
        self.panel_code = panel_code
        self.confirm_code = confirm_code
        super().__init__(
            f"Confirmation code {confirm_code!r} does not match panel {panel_code}"
        )


# Event-related exceptions


class EventError(BillingKernelError):
    """Base exception for panel event errors."""

    code: str = "EVENT_ERROR"


class EventNotFoundError(EventError):
    """Event with given ID was not found."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class EventAlreadyDeletedError(EventError):
    """Event is already soft-deleted."""

    code: str = "EVENT_ALREADY_DELETED"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event already deleted: {event_id}")


class InvalidEventError(EventError):
    """Event fields are inconsistent with its action."""

    code: str = "INVALID_EVENT"

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"Invalid {action} event: {reason}")


class InvalidEventDateError(EventError):
    """Day-of-month cannot be extracted from the local date string."""

    code: str = "INVALID_EVENT_DATE"

    def __init__(self, effective_date_local: str):
        self.effective_date_local = effective_date_local
        super().__init__(
            f"Cannot extract day of month from {effective_date_local!r}"
        )


# Month-related exceptions


class MonthError(BillingKernelError):
    """Base exception for month-level errors."""

    code: str = "MONTH_ERROR"


class InvalidMonthKeyError(MonthError):
    """Month key is not a valid YYYY-MM string."""

    code: str = "INVALID_MONTH_KEY"

    def __init__(self, month_key: str):
        self.month_key = month_key
        super().__init__(f"Invalid month key (expected YYYY-MM): {month_key!r}")


class MonthLockedError(MonthError):
    """The month is closed; its event log no longer accepts changes."""

    code: str = "MONTH_LOCKED"

    def __init__(self, month_key: str, operation: str):
        self.month_key = month_key
        self.operation = operation
        super().__init__(f"Cannot {operation}: month {month_key} is locked")


class MonthAlreadyExistsError(MonthError):
    """The month has already been opened."""

    code: str = "MONTH_ALREADY_EXISTS"

    def __init__(self, month_key: str):
        self.month_key = month_key
        super().__init__(f"Month {month_key} already exists")


class SummaryNotFoundError(MonthError):
    """No summary exists for the month."""

    code: str = "SUMMARY_NOT_FOUND"

    def __init__(self, month_key: str):
        self.month_key = month_key
        super().__init__(f"No billing summary for month {month_key}")


# Store-related exceptions


class StoreError(BillingKernelError):
    """Base exception for backing-store failures."""

    code: str = "STORE_ERROR"


class TransientStoreError(StoreError):
    """
    Write contention or timeout against the store.

    Safe to retry: recalculation fully overwrites its own output.
    """

    code: str = "TRANSIENT_STORE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Transient store failure during {operation}: {detail}")


# Cascade-related exceptions


class CascadeError(BillingKernelError):
    """Base exception for month summary cascade errors."""

    code: str = "CASCADE_ERROR"


class CascadeFailureError(CascadeError):
    """Summary recompute failed after the panel record was committed."""

    code: str = "CASCADE_FAILURE"

    def __init__(self, month_key: str, detail: str):
        self.month_key = month_key
        self.detail = detail
        super().__init__(f"Summary recompute failed for {month_key}: {detail}")
