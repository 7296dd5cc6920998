"""
Pytest configuration and shared fixtures
These fixtures are available to all test files
"""

import pytest
from typing import Dict, Any

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import LAMPORTS_PER_SOL, BondingCurveState, new_curve_state
from curve_launchpad.core.config import GlobalConfig
from curve_launchpad.core.custody import InMemoryCustody
from curve_launchpad.core.events import EventBus, EventLog
from curve_launchpad.core.launchpad import Launchpad
from curve_launchpad.core.metrics import MetricsCollector
from curve_launchpad.core.migration import InMemoryVenue


FIXED_TIMESTAMP = 1_700_000_000


@pytest.fixture
def fee_recipient() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def global_config(fee_recipient) -> GlobalConfig:
    """
    Launch parameters of the original curve program, 1% fee

    Returns validated GlobalConfig
    """
    return GlobalConfig(fee_recipient=fee_recipient).validate()


@pytest.fixture
def fresh_curve(global_config) -> BondingCurveState:
    """Curve state right after creation"""
    return new_curve_state(global_config)


@pytest.fixture
def custody() -> InMemoryCustody:
    return InMemoryCustody()


@pytest.fixture
def venue() -> InMemoryVenue:
    return InMemoryVenue()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def event_log(event_bus) -> EventLog:
    """Records every event emitted on event_bus"""
    return EventLog(event_bus)


@pytest.fixture
def metrics_collector() -> MetricsCollector:
    """
    Create fresh metrics collector for each test

    Returns clean MetricsCollector instance
    """
    collector = MetricsCollector(enable_histogram=True)
    yield collector
    # Clean up after test
    collector.reset()


@pytest.fixture
def launchpad(global_config, custody, venue, event_bus, event_log, metrics_collector) -> Launchpad:
    """Launchpad over in-memory custody and venue with a fixed clock"""
    return Launchpad(
        global_config,
        custody,
        venue,
        event_bus,
        clock=lambda: FIXED_TIMESTAMP,
        metrics=metrics_collector,
    )


@pytest.fixture
def mint() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def creator() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def launched(launchpad, mint, creator) -> Pubkey:
    """Mint with a freshly created curve"""
    launchpad.create(mint, creator, "Test Token", "TEST", "https://example.invalid/test.json")
    return mint


@pytest.fixture
def trader(custody) -> Pubkey:
    """Trader funded with 500 SOL"""
    account = Pubkey.new_unique()
    custody.airdrop(account, 500 * LAMPORTS_PER_SOL)
    return account


@pytest.fixture
def test_config_dict(fee_recipient) -> Dict[str, Any]:
    """
    Sample configuration dictionary for testing

    Returns valid config that can be modified per test
    """
    return {
        "global": {
            "fee_recipient": str(fee_recipient),
            "program_id": "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
            "fee_basis_points": 100,
            "initial_virtual_sol_reserves": 30_000_000_000,
            "initial_virtual_token_reserves": 1_073_000_000_000_000,
            "initial_real_token_reserves": 793_100_000_000_000,
            "initial_token_supply": 1_000_000_000_000_000,
            "initialized": True,
            "version": 1
        },
        "logging": {
            "level": "DEBUG",
            "format": "json",
            "output_file": None
        },
        "metrics": {
            "enable_histogram": True,
            "histogram_buckets": [1, 5, 10, 50, 100, 500, 1000]
        }
    }


@pytest.fixture
def test_config_file(test_config_dict, tmp_path):
    """
    Create a temporary config file for testing

    Returns path to temporary YAML config file
    """
    import yaml

    config_file = tmp_path / "test_config.yml"
    with open(config_file, 'w') as f:
        yaml.dump(test_config_dict, f)

    return str(config_file)


@pytest.fixture
def temp_log_file(tmp_path):
    """
    Create temporary log file path

    Returns path to temporary log file
    """
    log_file = tmp_path / "test.log"
    return str(log_file)


def pytest_configure(config):
    """Register custom pytest markers"""
    config.addinivalue_line(
        "markers", "property: mark test as hypothesis property test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (>5 seconds)"
    )
