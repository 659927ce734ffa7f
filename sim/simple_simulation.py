"""
Simple simulation for the Token Ledger Model.

This script demonstrates a minimal run: a few accounts are seeded at genesis,
some direct and delegated transfers are made by hand, and then random traffic
is simulated while the conservation invariants are checked.
"""

import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from token_config import TokenConfig, configure_logging
from token_ledger import LedgerError
from token_runtime import GenesisConfig, TokenRuntime
from token_simulation import TokenSimulation


def print_balances(runtime, accounts):
    for account in accounts:
        print(f"  {account}: {runtime.config.to_display(runtime.balance_of(account))}")


def run_basic_simulation():
    configure_logging()

    config = TokenConfig.from_env()
    unit = 10 ** config.decimals
    accounts = [f"user{i}" for i in range(5)]

    # Seed the ledger
    genesis = GenesisConfig(
        total_supply=1_000_000 * unit,
        balances={account: 200_000 * unit for account in accounts},
    )
    runtime = TokenRuntime(config, genesis)

    print(f"Token: {runtime.ledger.name()} ({runtime.ledger.symbol()}), "
          f"{runtime.ledger.decimals()} decimals")
    print("Initial balances:")
    print_balances(runtime, accounts)

    print("\nuser0 sends 50,000 to user1...")
    runtime.transfer("user0", "user1", 50_000 * unit)

    print("user2 approves user3 to spend 30,000...")
    runtime.approve("user2", "user3", 30_000 * unit)

    print("user3 moves 20,000 of user2's tokens to user4...")
    runtime.transfer_from("user3", "user2", "user4", 20_000 * unit)
    print(f"Remaining allowance: {config.to_display(runtime.allowance('user2', 'user3'))}")

    print("user3 tries to move another 20,000...")
    try:
        runtime.transfer_from("user3", "user2", "user4", 20_000 * unit)
    except LedgerError as e:
        print(f"Rejected: {e}")

    print("\nBalances after manual calls:")
    print_balances(runtime, accounts)

    print("\nRunning 500 random calls...")
    simulation = TokenSimulation(runtime, accounts)
    results = simulation.simulate_transfers(500, seed=42)

    print("\nSimulation Results:")
    for key, value in results.items():
        print(f"  {key}: {value}")

    print("\nFinal balances:")
    print_balances(runtime, accounts)

if __name__ == "__main__":
    run_basic_simulation()
