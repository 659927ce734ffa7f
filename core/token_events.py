"""
Token Events for the Token Ledger Model.

This module defines the events a token ledger emits on successful state
changes and a simple in-memory event log standing in for the chain's event
storage.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union


class EventKind(Enum):
    """
    Kinds of events emitted by the ledger.

    Off-chain indexers use these to rebuild balance and allowance histories.
    """
    TRANSFER = 0  # Balance moved from one account to another
    APPROVAL = 1  # Allowance of a spender was set


@dataclass(frozen=True)
class Transfer:
    """Emitted when `value` moves from `from_` to `to`."""
    from_: str
    to: str
    value: int

    kind = EventKind.TRANSFER


@dataclass(frozen=True)
class Approval:
    """Emitted when `owner` sets the allowance of `spender` to `value`."""
    owner: str
    spender: str
    value: int

    kind = EventKind.APPROVAL


Event = Union[Transfer, Approval]


@dataclass(frozen=True)
class EventRecord:
    """An event together with where it was committed."""
    block_number: int
    extrinsic_index: int
    event: Event


class EventBuffer:
    """
    Collects events emitted during a single call.

    The host flushes the buffer into its log when the call succeeds and
    drops it otherwise.
    """

    def __init__(self):
        self.events: List[Event] = []

    def deposit_event(self, event: Event):
        self.events.append(event)

    def drain(self) -> List[Event]:
        events, self.events = self.events, []
        return events


class EventLog:
    """
    Simulates the chain's event storage.

    Records are appended in commit order and never modified.
    """

    def __init__(self):
        self.records: List[EventRecord] = []

    def deposit_event(self, event: Event, block_number: int = 0, extrinsic_index: int = 0):
        self.records.append(EventRecord(block_number, extrinsic_index, event))

    def events(self, kind: Optional[EventKind] = None) -> List[Event]:
        """
        Returns committed events, optionally only those of one kind.

        Args:
            kind: EventKind to filter by, or None for all events

        Returns:
            List of events in commit order
        """
        return [r.event for r in self.records if kind is None or r.event.kind == kind]

    def records_in_block(self, block_number: int) -> List[EventRecord]:
        return [r for r in self.records if r.block_number == block_number]

    def last(self) -> Optional[Event]:
        return self.records[-1].event if self.records else None

    def clear(self):
        self.records = []

    def __len__(self):
        return len(self.records)
