"""
Visualization simulation for the Token Ledger Model.

This script seeds a ledger with a skewed distribution of balances and plots
how concentration and call outcomes evolve under random traffic.
"""

import numpy as np
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from token_config import configure_logging
from token_runtime import GenesisConfig, TokenRuntime
from token_simulation import TokenSimulation

def run_visualization_simulation():
    configure_logging("INFO")

    print("Seeding accounts...")
    # Pareto-distributed balances, so a few whales hold most of the supply
    rng = np.random.default_rng(7)
    accounts = [f"user{i}" for i in range(20)]
    balances = {account: int(rng.pareto(1.5) * 10_000) + 1 for account in accounts}
    total = sum(balances.values())
    runtime = TokenRuntime(genesis=GenesisConfig(total_supply=total, balances=balances))

    for account in accounts[:5]:
        print(f"{account}: {balances[account]}")
    print(f"... {len(accounts)} accounts, total supply {total}")

    print("\nRunning simulation with visualizations...")
    simulation = TokenSimulation(runtime, accounts)
    results = simulation.simulate_transfers(2000, seed=7, plot_results=True)

    print("\nSimulation Results:")
    for key, value in results.items():
        print(f"  {key}: {value}")

if __name__ == "__main__":
    run_visualization_simulation()
