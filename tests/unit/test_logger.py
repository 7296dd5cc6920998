"""
Unit tests for structured logging helpers
"""

import json
import logging

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import TradeDirection
from curve_launchpad.core.logger import get_logger, setup_logging, stringify_values


def test_stringify_values():
    key = Pubkey.new_unique()

    event = stringify_values(None, "info", {"mint": key, "direction": TradeDirection.SELL, "amount": 5})

    assert event == {"mint": str(key), "direction": "sell", "amount": 5}


def test_json_logs_written_to_file(temp_log_file):
    setup_logging(level="INFO", format="json", output_file=temp_log_file)
    mint = Pubkey.new_unique()

    get_logger("test_logger").info("curve_created", mint=mint, symbol="TEST")
    for handler in logging.root.handlers:
        handler.flush()

    for handler in [h for h in logging.root.handlers if isinstance(h, logging.FileHandler)]:
        logging.root.removeHandler(handler)
        handler.close()

    with open(temp_log_file) as f:
        lines = [json.loads(line) for line in f if line.strip()]

    record = next(line for line in lines if line["event"] == "curve_created")
    assert record["mint"] == str(mint)
    assert record["level"] == "info"
    assert "timestamp" in record
