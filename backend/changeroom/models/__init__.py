from .tenancy import Store, TeamMember, StoreSequence
from .sessions import FittingSession, SessionItem
from .baskets import Basket
from .dispositions import BackOfHouseEntry, ShrinkageEntry
from .audit import AuditEvent

__all__ = [
    'Store', 'TeamMember', 'StoreSequence',
    'FittingSession', 'SessionItem',
    'Basket',
    'BackOfHouseEntry', 'ShrinkageEntry',
    'AuditEvent',
]
