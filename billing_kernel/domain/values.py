"""
Values -- status and action vocabularies shared by the ORM and the pure core.

Architecture position:
    Kernel > Domain -- zero I/O, zero imports from the rest of the kernel.
    The only domain module that models/ may import.
"""

from enum import Enum
from uuid import UUID


class PanelStatus(str, Enum):
    """Billing status of a panel.

    Contract: RETIRED/REMOVED --activation--> ACTIVE --deactivation-->
    REMOVED|RETIRED.  Redundant transitions are status no-ops.
    """

    ACTIVE = "ACTIVE"
    REMOVED = "REMOVED"
    RETIRED = "RETIRED"


class EventAction(str, Enum):
    """Kinds of fact a panel event can record."""

    INITIAL_INTAKE = "INITIAL_INTAKE"
    REACTIVATION = "REACTIVATION"
    REINSTALLATION = "REINSTALLATION"
    REMOVAL = "REMOVAL"
    RETIREMENT = "RETIREMENT"
    RATE_CHANGE = "RATE_CHANGE"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
    INTERVENTION = "INTERVENTION"


class InterventionKind(str, Enum):
    """Reason category of an INTERVENTION event."""

    REPAIR = "REPAIR"
    INSTALLATION = "INSTALLATION"
    MAINTENANCE = "MAINTENANCE"
    VANDALISM = "VANDALISM"
    OTHER = "OTHER"


ACTIVATION_ACTIONS: frozenset[EventAction] = frozenset({
    EventAction.INITIAL_INTAKE,
    EventAction.REACTIVATION,
    EventAction.REINSTALLATION,
})

DEACTIVATION_ACTIONS: dict[EventAction, PanelStatus] = {
    EventAction.REMOVAL: PanelStatus.REMOVED,
    EventAction.RETIREMENT: PanelStatus.RETIRED,
}

AMOUNT_ACTIONS: frozenset[EventAction] = frozenset({
    EventAction.MANUAL_ADJUSTMENT,
    EventAction.INTERVENTION,
})

# Actor recorded on rows the engine writes on its own behalf
SYSTEM_ACTOR_ID = UUID(int=0)

# Version stamped on persisted billing documents
SCHEMA_VERSION = 1
