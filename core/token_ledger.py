"""
Token Ledger Model.

This module simulates a fungible-token contract holding a single asset. It
tracks balances and delegated spending allowances and handles direct
transfers, approvals and delegated transfers (transfer_from).

The ledger never authenticates callers, persists state or stores events
itself; the host hands it a verified caller, a LedgerState and an event sink.
Every operation checks all of its preconditions before its first write, so a
failed call leaves the state exactly as it found it.
"""

import logging

from token_config import TokenConfig
from token_events import Approval, Transfer
from token_storage import U256_MAX, LedgerState

logger = logging.getLogger(__name__)


class LedgerError(ValueError):
    """Base class for failures reported by ledger operations."""


class InsufficientBalance(LedgerError):
    """The debited account holds less than the requested value."""

    def __init__(self, account, available, requested):
        self.account = account
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance: {account} has {available}, requested {requested}"
        )


class InsufficientAllowance(LedgerError):
    """The spender's allowance from the owner is less than the requested value."""

    def __init__(self, owner, spender, available, requested):
        self.owner = owner
        self.spender = spender
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient allowance: {spender} may spend {available} "
            f"of {owner}'s tokens, requested {requested}"
        )


class BalanceOverflow(LedgerError):
    """Crediting the account would exceed the u256 range."""

    def __init__(self, account, balance, credit):
        self.account = account
        self.balance = balance
        self.credit = credit
        super().__init__(f"Balance overflow: crediting {credit} to {account} holding {balance}")


def require_u256(value, what="Value"):
    """Rejects anything that is not an int in [0, 2**256 - 1]."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{what} must be an integer, got {type(value).__name__}")

    if value < 0 or value > U256_MAX:
        raise ValueError(f"{what} out of u256 range: {value}")


def require_account(account, what="Account"):
    if not isinstance(account, str) or not account:
        raise ValueError(f"{what} must be a non-empty string")


class TokenLedger:
    """
    Simulates the token contract's balance and allowance bookkeeping.
    """

    def __init__(self, state=None, event_sink=None, config=None):
        # Balances, allowances and total supply
        self.state = state if state is not None else LedgerState()

        # Receives Transfer and Approval events (anything with deposit_event)
        self.event_sink = event_sink

        # Token metadata
        self.config = config if config is not None else TokenConfig()

    def name(self):
        return self.config.name

    def symbol(self):
        return self.config.symbol

    def decimals(self):
        return self.config.decimals

    def total_supply(self):
        """Returns the total supply, or zero if it was never set."""
        return self.state.total_supply.get()

    def balance_of(self, account):
        """Returns the token balance of the given account."""
        require_account(account)
        return self.state.balances.get(account)

    def allowance(self, owner, spender):
        """Returns how much `spender` may still transfer out of `owner`'s balance."""
        require_account(owner, "Owner")
        require_account(spender, "Spender")
        return self.state.allowances.get(owner, spender)

    def transfer(self, caller, to, value):
        """
        Transfers tokens from the caller to a recipient.

        Args:
            caller: Verified account sending the tokens
            to: Account receiving the tokens
            value: Amount of tokens to transfer

        Raises:
            InsufficientBalance: caller holds less than value
            BalanceOverflow: the recipient's balance would leave the u256 range
        """
        require_account(caller, "Caller")
        require_account(to, "Recipient")
        require_u256(value)

        from_balance = self._check_transfer(caller, to, value)
        self._move(caller, to, value, from_balance)

    def approve(self, caller, spender, value):
        """
        Sets the amount `spender` may transfer out of the caller's balance.

        The new value replaces any previous allowance; approving zero revokes
        it.

        Args:
            caller: Verified account granting the allowance
            spender: Account allowed to spend
            value: New allowance
        """
        require_account(caller, "Caller")
        require_account(spender, "Spender")
        require_u256(value)

        self._set_allowance(caller, spender, value)

    def transfer_from(self, caller, from_, to, value):
        """
        Transfers tokens out of another account using the caller's allowance.

        The balance move and the allowance reduction take effect together or
        not at all.

        Args:
            caller: Verified account spending the allowance
            from_: Account whose tokens are moved
            to: Account receiving the tokens
            value: Amount of tokens to transfer

        Raises:
            InsufficientAllowance: allowance of caller from from_ is below value
            InsufficientBalance: from_ holds less than value
            BalanceOverflow: the recipient's balance would leave the u256 range
        """
        require_account(caller, "Caller")
        require_account(from_, "Owner")
        require_account(to, "Recipient")
        require_u256(value)

        allowance = self.state.allowances.get(from_, caller)
        if value > allowance:
            logger.info("transfer_from rejected: %s may spend %d of %s, requested %d",
                        caller, allowance, from_, value)
            raise InsufficientAllowance(from_, caller, allowance, value)

        from_balance = self._check_transfer(from_, to, value)

        # All checks passed; nothing below can fail
        self._move(from_, to, value, from_balance)
        self._set_allowance(from_, caller, allowance - value)

    def _check_transfer(self, sender, recipient, value):
        """
        Validates a balance move without writing anything.

        Returns:
            The sender's current balance
        """
        from_balance = self.state.balances.get(sender)
        if value > from_balance:
            logger.info("transfer rejected: %s holds %d, requested %d",
                        sender, from_balance, value)
            raise InsufficientBalance(sender, from_balance, value)

        if sender != recipient:
            to_balance = self.state.balances.get(recipient)
            if to_balance > U256_MAX - value:
                raise BalanceOverflow(recipient, to_balance, value)

        return from_balance

    def _move(self, sender, recipient, value, from_balance):
        # Debit once, then read the recipient so a self-transfer nets to zero
        self.state.balances.insert(sender, from_balance - value)
        to_balance = self.state.balances.get(recipient)
        self.state.balances.insert(recipient, to_balance + value)

        logger.debug("transfer %s -> %s: %d", sender, recipient, value)
        self._deposit_event(Transfer(from_=sender, to=recipient, value=value))

    def _set_allowance(self, owner, spender, value):
        self.state.allowances.insert(owner, spender, value)

        logger.debug("allowance %s -> %s set to %d", owner, spender, value)
        self._deposit_event(Approval(owner=owner, spender=spender, value=value))

    def _deposit_event(self, event):
        if self.event_sink is not None:
            self.event_sink.deposit_event(event)
