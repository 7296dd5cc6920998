"""
Smoke test for the launch simulation script
"""

import importlib.util
from pathlib import Path

from curve_launchpad.core.bonding_curve import LAMPORTS_PER_SOL


def _load_script():
    path = Path(__file__).resolve().parents[2] / "scripts" / "simulate_launch.py"
    spec = importlib.util.spec_from_file_location("simulate_launch", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


simulate_launch = _load_script()


def test_simulation_runs_to_migration(global_config):
    summary = simulate_launch.simulate(
        global_config,
        step_lamports=5 * LAMPORTS_PER_SOL,
        slippage_bps=500,
        budget_lamports=200 * LAMPORTS_PER_SOL,
    )

    assert len(summary["migrated_pools"]) == 1
    pool = summary["migrated_pools"][0]
    assert abs(pool["settlement_amount"] - 85_005_359_057) < 1_000
    assert pool["token_amount"] == 206_900_000_000_000
    assert summary["trader_tokens"] == global_config.initial_real_token_reserves
    assert summary["trades"] == 18
    assert summary["metrics"]["counters"]["curves_migrated"] == 1


def test_missing_config_falls_back_to_defaults(tmp_path):
    config = simulate_launch.load_global_config(str(tmp_path / "missing.yml"))

    assert config.fee_basis_points == 100
    assert config.initial_real_token_reserves == 793_100_000_000_000
