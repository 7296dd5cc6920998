"""
Launch Simulation - Drive one curve from creation to migration

Usage:
    python scripts/simulate_launch.py
    python scripts/simulate_launch.py --config config/config.yml --step 2.5 --slippage 500

This will:
1. Create a curve in an in-memory custody ledger
2. Buy in fixed SOL steps until the last real token is sold
3. Migrate the completed curve to an in-memory liquidity venue
4. Print reserves, fees and metrics
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import LAMPORTS_PER_SOL, progress_bps, spot_price
from curve_launchpad.core.config import ConfigurationManager, GlobalConfig
from curve_launchpad.core.custody import InMemoryCustody
from curve_launchpad.core.errors import InsufficientLiquidityError
from curve_launchpad.core.events import EventBus, EventLog, TradeEvent
from curve_launchpad.core.fees import calculate_fee
from curve_launchpad.core.launchpad import Launchpad
from curve_launchpad.core.logger import get_logger, setup_logging
from curve_launchpad.core.metrics import init_metrics
from curve_launchpad.core.migration import InMemoryVenue
from curve_launchpad.core.pricing import quote_buy, quote_buy_exact_tokens
from curve_launchpad.core.slippage import max_amount_in, min_amount_out

logger = get_logger(__name__)


def load_global_config(config_path: str) -> GlobalConfig:
    """Load the global section, falling back to launch defaults when no file exists"""
    if not Path(config_path).exists():
        logger.warning("config_not_found_using_defaults", path=config_path)
        return GlobalConfig(fee_recipient=Pubkey.new_unique()).validate()

    launchpad_config = ConfigurationManager(config_path).load_config()
    return launchpad_config.global_config


def simulate(config: GlobalConfig, step_lamports: int, slippage_bps: int, budget_lamports: int) -> dict:
    """
    Run one launch to completion

    Returns:
        Summary dict printed by main()
    """
    metrics = init_metrics()
    custody = InMemoryCustody()
    venue = InMemoryVenue()
    bus = EventBus()
    log = EventLog(bus)
    launchpad = Launchpad(config, custody, venue, bus, metrics=metrics)

    mint = Pubkey.new_unique()
    creator = Pubkey.new_unique()
    trader = Pubkey.new_unique()
    custody.airdrop(trader, budget_lamports)

    launchpad.create(mint, creator, "Simulated", "SIM", "https://example.invalid/sim.json")

    while not launchpad.is_complete(mint):
        state = launchpad.get_curve(mint)
        try:
            quote = quote_buy(state, step_lamports)
            outcome = launchpad.buy(
                mint, trader, step_lamports, min_amount_out(quote.token_amount, slippage_bps)
            )
        except InsufficientLiquidityError:
            # Final step: take exactly what is left
            quote = quote_buy_exact_tokens(state, state.real_token_reserves)
            max_cost = quote.sol_amount + calculate_fee(quote.sol_amount, config.fee_basis_points)
            outcome = launchpad.buy_exact_tokens(
                mint, trader, state.real_token_reserves, max_amount_in(max_cost, slippage_bps)
            )

        result = outcome.unwrap()
        logger.info(
            "simulation_step",
            sol_amount=result.sol_amount,
            token_amount=result.token_amount,
            progress_bps=progress_bps(result.new_state, config.initial_real_token_reserves),
            spot_price=spot_price(result.new_state)
        )

    final_state = launchpad.get_curve(mint)
    records = launchpad.process_migrations()

    return {
        "mint": str(mint),
        "bonding_curve": str(launchpad.get_address(mint)),
        "trades": len(log.of_type(TradeEvent)),
        "real_sol_reserves_sol": final_state.real_sol_reserves / LAMPORTS_PER_SOL,
        "fees_collected_sol": custody.read_balance(config.fee_recipient) / LAMPORTS_PER_SOL,
        "trader_tokens": custody.read_balance(trader, mint=mint),
        "migrated_pools": [
            {
                "pool_id": record.handle.pool_id,
                "settlement_amount": record.settlement_amount,
                "token_amount": record.token_amount,
                "lp_amount": record.handle.lp_amount,
            }
            for record in records
        ],
        "metrics": metrics.export_metrics(),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Simulate a bonding-curve launch from creation to migration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default launch parameters, 5 SOL buys
  python scripts/simulate_launch.py

  # Custom config, smaller steps, 1% slippage
  python scripts/simulate_launch.py --config config/config.yml --step 1 --slippage 100
        """
    )

    parser.add_argument(
        "--config",
        default="config/config.yml",
        help="Path to config.yml (defaults are used when missing)"
    )
    parser.add_argument(
        "--step",
        type=float,
        default=5.0,
        help="SOL spent per buy (default: 5)"
    )
    parser.add_argument(
        "--slippage",
        type=int,
        default=500,
        help="Slippage tolerance in basis points (default: 500)"
    )
    parser.add_argument(
        "--budget",
        type=float,
        default=200.0,
        help="SOL airdropped to the simulated trader (default: 200)"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level (default: INFO)"
    )

    args = parser.parse_args()

    setup_logging(level=args.log_level, format="console")

    config = load_global_config(args.config)
    summary = simulate(
        config,
        step_lamports=int(args.step * LAMPORTS_PER_SOL),
        slippage_bps=args.slippage,
        budget_lamports=int(args.budget * LAMPORTS_PER_SOL),
    )

    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("simulation_interrupted")
    except Exception as e:
        logger.error("simulation_failed", error=str(e), exc_info=True)
        sys.exit(1)
