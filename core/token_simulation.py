"""
Token Simulation Model.

This module drives random traffic through a token runtime to exercise the
ledger over many calls. Amounts are drawn around what the caller can actually
afford, so runs mix successful calls with rejected ones, and the ledger's
conservation invariants are checked after every step.
"""

import logging
from collections import Counter

import matplotlib.pyplot as plt
import numpy as np

from token_events import EventKind
from token_runtime import Origin
from token_storage import U256_MAX

logger = logging.getLogger(__name__)

# Relative frequency of transfer, approve and transfer_from calls
CALL_WEIGHTS = (0.6, 0.2, 0.2)

# Upper bound of the amount drawn, as a multiple of what the caller can afford
OVERDRAW_FACTOR = 1.25


def gini(balances):
    """
    Gini coefficient of a list of balances.

    0 means every account holds the same amount; values close to 1 mean a
    single account holds nearly everything.
    """
    values = np.sort(np.array([float(b) for b in balances], dtype=float))
    n = len(values)
    total = values.sum()
    if n == 0 or total == 0:
        return 0.0

    ranks = np.arange(1, n + 1)
    return float((2.0 * np.sum(ranks * values)) / (n * total) - (n + 1.0) / n)


class TokenSimulation:
    """
    Runs randomised transfer, approve and transfer_from calls against a runtime.
    """

    def __init__(self, runtime, accounts):
        if len(accounts) < 2:
            raise ValueError("Simulation needs at least two accounts")

        self.runtime = runtime
        self.accounts = list(accounts)

        # Values the invariants are checked against
        self.initial_total_supply = runtime.total_supply()
        self.initial_total_held = runtime.state.total_balances()

        # Outcome tallies
        self.successes = Counter()
        self.failures = Counter()

    def balances(self):
        return [self.runtime.balance_of(a) for a in self.accounts]

    def check_invariants(self):
        """
        Asserts that value was conserved.

        Raises:
            AssertionError: balances no longer sum to their genesis total, or
                the total supply changed
        """
        total_held = self.runtime.state.total_balances()
        if total_held != self.initial_total_held:
            raise AssertionError(
                f"Balances sum to {total_held}, expected {self.initial_total_held}"
            )

        total_supply = self.runtime.total_supply()
        if total_supply != self.initial_total_supply:
            raise AssertionError(
                f"Total supply changed from {self.initial_total_supply} to {total_supply}"
            )

    def _draw_amount(self, rng, affordable):
        if affordable == 0:
            return int(rng.integers(1, 100))
        # Drawn as a float, so large allowances can land past the u256 range
        return min(int(rng.uniform(0, OVERDRAW_FACTOR) * affordable), U256_MAX)

    def _pick(self, rng, count):
        idx = rng.choice(len(self.accounts), size=count, replace=False)
        return [self.accounts[int(i)] for i in idx]

    def step(self, rng):
        """Dispatches one random call and returns its DispatchResult."""
        call = ("transfer", "approve", "transfer_from")[int(rng.choice(3, p=CALL_WEIGHTS))]

        if call == "transfer":
            sender, recipient = self._pick(rng, 2)
            value = self._draw_amount(rng, self.runtime.balance_of(sender))
            return self.runtime.dispatch(Origin.signed(sender), "transfer", to=recipient, value=value)

        if call == "approve":
            owner, spender = self._pick(rng, 2)
            value = int(rng.uniform(0, 1) * self.runtime.balance_of(owner))
            return self.runtime.dispatch(Origin.signed(owner), "approve", spender=spender, value=value)

        spender, owner, recipient = self._pick(rng, 3)
        value = self._draw_amount(rng, self.runtime.allowance(owner, spender))
        return self.runtime.dispatch(Origin.signed(spender), "transfer_from",
                                     from_=owner, to=recipient, value=value)

    def simulate_transfers(self, steps, seed=None, plot_results=False):
        """
        Run a simulation of random ledger traffic.

        Args:
            steps: Number of calls to dispatch
            seed: Seed for numpy's random generator, for reproducible runs
            plot_results: Whether to plot balance concentration and outcomes

        Returns:
            Dictionary with simulation results
        """
        rng = np.random.default_rng(seed)

        # Arrays to store history
        gini_points = np.zeros(steps)
        top_share_points = np.zeros(steps)
        funded_points = np.zeros(steps)
        success_points = np.zeros(steps)
        failure_points = np.zeros(steps)

        events_before = len(self.runtime.event_log)

        for i in range(steps):
            result = self.step(rng)
            if result.ok:
                self.successes[result.call] += 1
            else:
                self.failures[result.error_name] += 1

            self.check_invariants()

            balances = self.balances()
            held = sum(balances)
            gini_points[i] = gini(balances)
            top_share_points[i] = max(balances) / held if held else 0.0
            funded_points[i] = sum(1 for b in balances if b > 0)
            success_points[i] = sum(self.successes.values())
            failure_points[i] = sum(self.failures.values())

            # One call per block
            self.runtime.next_block()

        transfer_events = len([r for r in self.runtime.event_log.records[events_before:]
                               if r.event.kind == EventKind.TRANSFER])

        results = {
            "steps": steps,
            "successes": dict(self.successes),
            "failures": dict(self.failures),
            "events": len(self.runtime.event_log) - events_before,
            "transfer_events": transfer_events,
            "final_gini": float(gini_points[-1]) if steps else gini(self.balances()),
            "total_held": self.runtime.state.total_balances(),
            "total_supply": self.runtime.total_supply(),
        }

        logger.info("simulated %d calls: %d ok, %d failed, final gini %.3f",
                    steps, sum(self.successes.values()), sum(self.failures.values()),
                    results["final_gini"])

        if plot_results and steps:
            step_points = np.arange(1, steps + 1)
            fig, axs = plt.subplots(3, 1, figsize=(12, 12), sharex=True)

            axs[0].plot(step_points, gini_points)
            axs[0].set_title('Gini Coefficient of Balances')
            axs[0].set_ylabel('Gini')

            axs[1].plot(step_points, top_share_points, label='Largest share')
            axs[1].plot(step_points, funded_points / len(self.accounts), label='Funded accounts')
            axs[1].set_title('Balance Concentration')
            axs[1].set_ylabel('Fraction')
            axs[1].legend()

            axs[2].plot(step_points, success_points, label='Succeeded')
            axs[2].plot(step_points, failure_points, label='Failed')
            axs[2].set_title('Cumulative Call Outcomes')
            axs[2].set_ylabel('Calls')
            axs[2].set_xlabel('Step')
            axs[2].legend()

            plt.tight_layout()
            plt.show()

        return results
