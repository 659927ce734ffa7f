"""
Token Runtime Model.

This module simulates the execution host a token ledger runs inside. The host
is responsible for everything the ledger itself leaves out:

1. Authenticating callers and turning call origins into verified accounts
2. Seeding the initial state (total supply and genesis balances)
3. Running each call inside a storage transaction, committing its writes on
   success and discarding them on failure
4. Storing committed events together with their block and call index

Calls are applied strictly one at a time against a single state.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from token_config import TokenConfig
from token_events import EventBuffer, EventLog
from token_ledger import LedgerError, TokenLedger, require_account, require_u256
from token_storage import KeyValueStore, LedgerState

logger = logging.getLogger(__name__)

CALLS = ("transfer", "approve", "transfer_from")


class OriginKind(Enum):
    """Who submitted a call."""
    SIGNED = 0  # An account that signed the call
    NONE = 1    # Unsigned call
    ROOT = 2    # The chain itself (governance, sudo)


@dataclass(frozen=True)
class Origin:
    kind: OriginKind
    account: Optional[str] = None

    @classmethod
    def signed(cls, account):
        require_account(account)
        return cls(OriginKind.SIGNED, account)

    @classmethod
    def none(cls):
        return cls(OriginKind.NONE)

    @classmethod
    def root(cls):
        return cls(OriginKind.ROOT)


class BadOrigin(ValueError):
    """The call requires a signed origin."""


def ensure_signed(origin):
    """
    Returns the verified account behind a signed origin.

    Raises:
        BadOrigin: the origin is unsigned or root
    """
    if origin.kind != OriginKind.SIGNED:
        raise BadOrigin(f"Call requires a signed origin, got {origin.kind.name.lower()}")
    return origin.account


@dataclass
class GenesisConfig:
    """
    Initial state of the ledger.

    The sum of the genesis balances may not exceed the total supply; any
    difference is supply held outside the tracked accounts.
    """
    total_supply: int = 0
    balances: Dict[str, int] = field(default_factory=dict)

    def validate(self):
        require_u256(self.total_supply, "Total supply")

        allocated = 0
        for account, balance in self.balances.items():
            require_account(account)
            require_u256(balance, f"Genesis balance of {account}")
            allocated += balance

        if allocated > self.total_supply:
            raise ValueError(
                f"Genesis balances ({allocated}) exceed total supply ({self.total_supply})"
            )


@dataclass
class DispatchResult:
    """Outcome of dispatching one call."""
    call: str
    ok: bool
    error: Optional[Exception] = None
    events: List = field(default_factory=list)

    @property
    def error_name(self):
        return type(self.error).__name__ if self.error is not None else None


class TokenRuntime:
    """
    Simulates a chain runtime hosting a single token ledger.
    """

    def __init__(self, config=None, genesis=None):
        self.config = config if config is not None else TokenConfig()

        self.store = KeyValueStore()
        self.state = LedgerState(self.store)
        self.event_log = EventLog()

        # Events of the call in progress; flushed to the log on success
        self._pending_events = EventBuffer()
        self.ledger = TokenLedger(self.state, self._pending_events, self.config)

        # Block bookkeeping
        self.block_number = 1
        self.extrinsic_index = 0

        self._apply_genesis(genesis if genesis is not None else GenesisConfig())

    def _apply_genesis(self, genesis):
        genesis.validate()

        self.state.total_supply.set(genesis.total_supply)
        for account, balance in genesis.balances.items():
            self.state.balances.insert(account, balance)

        logger.info("genesis: total supply %d across %d accounts",
                    genesis.total_supply, len(genesis.balances))

    def next_block(self):
        """Closes the current block and starts the next one."""
        self.block_number += 1
        self.extrinsic_index = 0
        return self.block_number

    def total_supply(self):
        return self.ledger.total_supply()

    def balance_of(self, account):
        return self.ledger.balance_of(account)

    def allowance(self, owner, spender):
        return self.ledger.allowance(owner, spender)

    def dispatch(self, origin, call, **kwargs):
        """
        Runs a ledger call on behalf of an origin.

        Ledger failures and bad origins are captured in the result; their
        writes and events are discarded. Malformed arguments roll back as
        well but propagate as ValueError.

        Args:
            origin: Origin submitting the call
            call: One of "transfer", "approve" or "transfer_from"
            kwargs: Arguments of the call, without the caller

        Returns:
            DispatchResult describing the outcome
        """
        if call not in CALLS:
            raise ValueError(f"Unknown call: {call}")

        index = self.extrinsic_index
        self.extrinsic_index += 1
        self._pending_events.drain()

        try:
            with self.store.transaction():
                caller = ensure_signed(origin)
                getattr(self.ledger, call)(caller, **kwargs)
        except (LedgerError, BadOrigin) as e:
            self._pending_events.drain()
            logger.debug("dispatch %s #%d failed: %s", call, index, e)
            return DispatchResult(call=call, ok=False, error=e)
        except Exception:
            self._pending_events.drain()
            raise

        events = self._pending_events.drain()
        for event in events:
            self.event_log.deposit_event(event, self.block_number, index)

        logger.debug("dispatch %s #%d ok, %d events", call, index, len(events))
        return DispatchResult(call=call, ok=True, events=events)

    def transfer(self, caller, to, value):
        return self._dispatch_or_raise(Origin.signed(caller), "transfer", to=to, value=value)

    def approve(self, caller, spender, value):
        return self._dispatch_or_raise(Origin.signed(caller), "approve",
                                       spender=spender, value=value)

    def transfer_from(self, caller, from_, to, value):
        return self._dispatch_or_raise(Origin.signed(caller), "transfer_from",
                                       from_=from_, to=to, value=value)

    def _dispatch_or_raise(self, origin, call, **kwargs):
        result = self.dispatch(origin, call, **kwargs)
        if not result.ok:
            raise result.error
        return result
