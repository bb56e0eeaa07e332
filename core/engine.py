"""
Wiring of the booking engine components.

One dispatcher, account store and aggregate maintainer are shared by the
availability index, the lifecycle state machine and the review gate.
"""

from .accounts import AccountStore
from .aggregates import AggregateMaintainer
from .availability import AvailabilityIndex
from .lifecycle import ReservationLifecycle
from .notifications import SignalDispatcher
from .reviews import ReviewGate


class BookingEngine:

    def __init__(self, dispatcher=None, accounts=None, clock=None):
        self.dispatcher = dispatcher if dispatcher is not None else SignalDispatcher()
        self.accounts = accounts or AccountStore()
        self.maintainer = AggregateMaintainer()

        self.availability = AvailabilityIndex(
            accounts=self.accounts,
            maintainer=self.maintainer,
            dispatcher=self.dispatcher,
            clock=clock,
        )
        self.lifecycle = ReservationLifecycle(
            maintainer=self.maintainer,
            dispatcher=self.dispatcher,
            clock=clock,
        )
        self.reviews = ReviewGate(
            maintainer=self.maintainer,
            dispatcher=self.dispatcher,
            clock=clock,
        )
