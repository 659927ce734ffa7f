"""
Unit tests for the TokenLedger module.

These tests cover the transfer, approve and transfer_from operations, the
read accessors and the invariants they maintain: conservation of value,
authorization before debit and all-or-nothing delegated transfers.
"""

import unittest
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))

from token_config import TokenConfig
from token_events import Approval, EventBuffer, Transfer
from token_ledger import (BalanceOverflow, InsufficientAllowance, InsufficientBalance,
                          LedgerError, TokenLedger)
from token_storage import U256_MAX, LedgerState


class TestTokenLedger(unittest.TestCase):
    def setUp(self):
        """Set up a ledger with a total supply of 1000."""
        self.state = LedgerState()
        self.state.total_supply.set(1000)
        self.events = EventBuffer()
        self.ledger = TokenLedger(self.state, self.events)

        # Accounts for testing
        self.user_a = "UserA"
        self.user_b = "UserB"
        self.user_c = "UserC"
        self.user_d = "UserD"

    def fund(self, account, amount):
        self.state.balances.insert(account, amount)

    def test_defaults_read_as_zero(self):
        """Test that absent balances, allowances and supply read as zero."""
        ledger = TokenLedger()
        self.assertEqual(ledger.total_supply(), 0)
        self.assertEqual(ledger.balance_of(self.user_a), 0)
        self.assertEqual(ledger.allowance(self.user_a, self.user_b), 0)

        # Reads do not materialise entries
        self.assertFalse(ledger.state.balances.contains(self.user_a))

    def test_metadata(self):
        """Test that token metadata comes from the config."""
        ledger = TokenLedger(config=TokenConfig(name="Demo", symbol="DMO", decimals=6))
        self.assertEqual(ledger.name(), "Demo")
        self.assertEqual(ledger.symbol(), "DMO")
        self.assertEqual(ledger.decimals(), 6)

    def test_scenario_a_approve(self):
        """Test approving a spender from an account without balance."""
        self.ledger.approve(self.user_a, self.user_b, 100)

        self.assertEqual(self.ledger.allowance(self.user_a, self.user_b), 100)
        self.assertEqual(self.events.events, [Approval(owner=self.user_a, spender=self.user_b, value=100)])

    def test_scenario_b_transfer(self):
        """Test a successful direct transfer."""
        self.fund(self.user_a, 200)
        b_before = self.ledger.balance_of(self.user_b)

        self.ledger.transfer(self.user_a, self.user_b, 50)

        self.assertEqual(self.ledger.balance_of(self.user_a), 150)
        self.assertEqual(self.ledger.balance_of(self.user_b), b_before + 50)
        self.assertEqual(self.events.events, [Transfer(from_=self.user_a, to=self.user_b, value=50)])

    def test_scenario_c_transfer_insufficient_balance(self):
        """Test that overdrawing fails and changes nothing."""
        self.fund(self.user_a, 200)

        with self.assertRaises(InsufficientBalance) as context:
            self.ledger.transfer(self.user_a, self.user_b, 300)

        self.assertEqual(context.exception.account, self.user_a)
        self.assertEqual(context.exception.available, 200)
        self.assertEqual(context.exception.requested, 300)
        self.assertIn("insufficient balance", str(context.exception).lower())

        self.assertEqual(self.ledger.balance_of(self.user_a), 200)
        self.assertEqual(self.ledger.balance_of(self.user_b), 0)
        self.assertFalse(self.state.balances.contains(self.user_b))
        self.assertEqual(self.events.events, [])

    def test_scenario_d_transfer_from(self):
        """Test a successful delegated transfer."""
        self.fund(self.user_a, 200)
        self.ledger.approve(self.user_a, self.user_c, 150)
        self.events.drain()

        self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 100)

        self.assertEqual(self.ledger.balance_of(self.user_a), 100)
        self.assertEqual(self.ledger.balance_of(self.user_d), 100)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 50)
        self.assertEqual(self.events.events, [
            Transfer(from_=self.user_a, to=self.user_d, value=100),
            Approval(owner=self.user_a, spender=self.user_c, value=50),
        ])

    def test_scenario_e_transfer_from_insufficient_allowance(self):
        """Test that spending beyond the allowance fails and changes nothing."""
        self.fund(self.user_a, 200)
        self.ledger.approve(self.user_a, self.user_c, 50)
        self.events.drain()

        with self.assertRaises(InsufficientAllowance) as context:
            self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 100)

        self.assertEqual(context.exception.owner, self.user_a)
        self.assertEqual(context.exception.spender, self.user_c)
        self.assertEqual(context.exception.available, 50)

        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 50)
        self.assertEqual(self.ledger.balance_of(self.user_a), 200)
        self.assertEqual(self.ledger.balance_of(self.user_d), 0)
        self.assertEqual(self.events.events, [])

    def test_scenario_f_transfer_from_is_atomic(self):
        """Test that a failed balance check keeps the allowance intact."""
        self.fund(self.user_a, 50)
        self.ledger.approve(self.user_a, self.user_c, 100)
        self.events.drain()

        with self.assertRaises(InsufficientBalance):
            self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 80)

        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 100)
        self.assertEqual(self.ledger.balance_of(self.user_a), 50)
        self.assertEqual(self.ledger.balance_of(self.user_d), 0)
        self.assertFalse(self.state.balances.contains(self.user_d))
        self.assertEqual(self.events.events, [])

    def test_transfer_debits_exactly_once(self):
        """Test conservation: the debit equals the credit."""
        self.fund(self.user_a, 500)
        self.fund(self.user_b, 100)

        self.ledger.transfer(self.user_a, self.user_b, 120)

        self.assertEqual(self.ledger.balance_of(self.user_a), 380)
        self.assertEqual(self.ledger.balance_of(self.user_b), 220)
        self.assertEqual(self.state.total_balances(), 600)
        self.assertEqual(self.ledger.total_supply(), 1000)

    def test_transfer_entire_balance(self):
        """Test that an account can send everything it holds."""
        self.fund(self.user_a, 200)
        self.ledger.transfer(self.user_a, self.user_b, 200)

        self.assertEqual(self.ledger.balance_of(self.user_a), 0)
        self.assertEqual(self.ledger.balance_of(self.user_b), 200)

    def test_transfer_to_self(self):
        """Test that a self-transfer leaves the balance unchanged."""
        self.fund(self.user_a, 200)
        self.ledger.transfer(self.user_a, self.user_a, 150)

        self.assertEqual(self.ledger.balance_of(self.user_a), 200)
        self.assertEqual(self.events.events, [Transfer(from_=self.user_a, to=self.user_a, value=150)])

    def test_transfer_to_self_still_checks_balance(self):
        self.fund(self.user_a, 10)
        with self.assertRaises(InsufficientBalance):
            self.ledger.transfer(self.user_a, self.user_a, 11)
        self.assertEqual(self.ledger.balance_of(self.user_a), 10)

    def test_zero_transfer(self):
        """Test that a zero transfer succeeds even from an empty account."""
        self.ledger.transfer(self.user_a, self.user_b, 0)

        self.assertEqual(self.ledger.balance_of(self.user_a), 0)
        self.assertEqual(self.ledger.balance_of(self.user_b), 0)
        self.assertEqual(len(self.events.events), 1)

    def test_approve_overwrites(self):
        """Test that a later approval replaces the earlier one."""
        self.ledger.approve(self.user_a, self.user_b, 70)
        self.ledger.approve(self.user_a, self.user_b, 30)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_b), 30)

        self.ledger.approve(self.user_a, self.user_b, 500)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_b), 500)

    def test_approve_zero_revokes(self):
        self.fund(self.user_a, 200)
        self.ledger.approve(self.user_a, self.user_c, 100)
        self.ledger.approve(self.user_a, self.user_c, 0)

        with self.assertRaises(InsufficientAllowance):
            self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 1)

    def test_allowances_are_directional(self):
        """Test that an allowance only applies to its (owner, spender) pair."""
        self.fund(self.user_a, 200)
        self.fund(self.user_b, 200)
        self.ledger.approve(self.user_a, self.user_b, 100)

        self.assertEqual(self.ledger.allowance(self.user_b, self.user_a), 0)
        with self.assertRaises(InsufficientAllowance):
            self.ledger.transfer_from(self.user_a, self.user_b, self.user_c, 10)
        with self.assertRaises(InsufficientAllowance):
            self.ledger.transfer_from(self.user_c, self.user_a, self.user_c, 10)

    def test_transfer_from_exhausts_allowance(self):
        """Test spending an allowance in several steps."""
        self.fund(self.user_a, 1000)
        self.ledger.approve(self.user_a, self.user_c, 150)

        self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 100)
        self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 50)

        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 0)
        self.assertEqual(self.ledger.balance_of(self.user_d), 150)
        self.assertEqual(self.ledger.balance_of(self.user_a), 850)

        with self.assertRaises(InsufficientAllowance):
            self.ledger.transfer_from(self.user_c, self.user_a, self.user_d, 1)

    def test_transfer_from_to_owner(self):
        """Test a delegated transfer back to the owner itself."""
        self.fund(self.user_a, 200)
        self.ledger.approve(self.user_a, self.user_c, 100)

        self.ledger.transfer_from(self.user_c, self.user_a, self.user_a, 60)

        self.assertEqual(self.ledger.balance_of(self.user_a), 200)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 40)

    def test_spender_can_be_recipient(self):
        self.fund(self.user_a, 200)
        self.ledger.approve(self.user_a, self.user_c, 100)

        self.ledger.transfer_from(self.user_c, self.user_a, self.user_c, 100)

        self.assertEqual(self.ledger.balance_of(self.user_c), 100)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 0)

    def test_errors_are_ledger_errors(self):
        """Test that both error kinds share the LedgerError base."""
        self.assertTrue(issubclass(InsufficientBalance, LedgerError))
        self.assertTrue(issubclass(InsufficientAllowance, LedgerError))
        self.assertTrue(issubclass(LedgerError, ValueError))

    def test_ledger_usable_after_failures(self):
        self.fund(self.user_a, 100)
        with self.assertRaises(InsufficientBalance):
            self.ledger.transfer(self.user_a, self.user_b, 101)
        with self.assertRaises(InsufficientAllowance):
            self.ledger.transfer_from(self.user_b, self.user_a, self.user_b, 1)

        self.ledger.transfer(self.user_a, self.user_b, 100)
        self.assertEqual(self.ledger.balance_of(self.user_b), 100)

    def test_u256_bounds(self):
        """Test the edges of the u256 value range."""
        self.fund(self.user_a, U256_MAX)
        self.ledger.transfer(self.user_a, self.user_b, U256_MAX)
        self.assertEqual(self.ledger.balance_of(self.user_b), U256_MAX)

        self.ledger.approve(self.user_b, self.user_c, U256_MAX)
        self.assertEqual(self.ledger.allowance(self.user_b, self.user_c), U256_MAX)

    def test_credit_overflow_fails_before_writing(self):
        """Test that an overflowing credit is rejected with no writes."""
        self.fund(self.user_a, 10)
        self.fund(self.user_b, U256_MAX - 5)
        self.ledger.approve(self.user_a, self.user_c, 10)
        self.events.drain()

        with self.assertRaises(BalanceOverflow):
            self.ledger.transfer(self.user_a, self.user_b, 10)
        with self.assertRaises(BalanceOverflow):
            self.ledger.transfer_from(self.user_c, self.user_a, self.user_b, 10)

        self.assertEqual(self.ledger.balance_of(self.user_a), 10)
        self.assertEqual(self.ledger.balance_of(self.user_b), U256_MAX - 5)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_c), 10)
        self.assertEqual(self.events.events, [])

    def test_invalid_values_rejected(self):
        """Test that values outside the u256 domain are rejected."""
        self.fund(self.user_a, 100)

        for bad in (-1, U256_MAX + 1, 1.5, "10", True, None):
            with self.assertRaises(ValueError) as context:
                self.ledger.transfer(self.user_a, self.user_b, bad)
            self.assertNotIsInstance(context.exception, LedgerError)

            with self.assertRaises(ValueError):
                self.ledger.approve(self.user_a, self.user_b, bad)

        self.assertEqual(self.ledger.balance_of(self.user_a), 100)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_b), 0)

    def test_invalid_accounts_rejected(self):
        for bad in ("", None, 42, b"UserA"):
            with self.assertRaises(ValueError):
                self.ledger.transfer(self.user_a, bad, 0)
            with self.assertRaises(ValueError):
                self.ledger.balance_of(bad)

    def test_independent_ledgers(self):
        """Test that ledgers over separate states do not share balances."""
        other = TokenLedger(LedgerState())
        self.fund(self.user_a, 100)

        self.assertEqual(other.balance_of(self.user_a), 0)
        other.approve(self.user_a, self.user_b, 5)
        self.assertEqual(self.ledger.allowance(self.user_a, self.user_b), 0)

    def test_ledger_without_event_sink(self):
        ledger = TokenLedger()
        ledger.state.balances.insert(self.user_a, 10)
        ledger.transfer(self.user_a, self.user_b, 10)
        self.assertEqual(ledger.balance_of(self.user_b), 10)


if __name__ == "__main__":
    unittest.main()
