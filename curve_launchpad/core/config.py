"""
Configuration Manager for the curve launchpad
Loads configuration from YAML files with environment variable support

The `global` section becomes an immutable, versioned GlobalConfig snapshot that
is injected into every curve operation instead of living in a runtime singleton.
"""

import os
import re
import yaml
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from pathlib import Path

from solders.pubkey import Pubkey

from curve_launchpad.core.errors import ConfigError
from curve_launchpad.core.fees import MAX_FEE_BASIS_POINTS


U64_MAX = 2**64 - 1

# Launch parameters of the original curve program (lamports / 6-decimal token units)
DEFAULT_INITIAL_VIRTUAL_SOL_RESERVES = 30_000_000_000
DEFAULT_INITIAL_VIRTUAL_TOKEN_RESERVES = 1_073_000_000_000_000
DEFAULT_INITIAL_REAL_TOKEN_RESERVES = 793_100_000_000_000
DEFAULT_INITIAL_TOKEN_SUPPLY = 1_000_000_000_000_000
DEFAULT_FEE_BASIS_POINTS = 100


@dataclass(frozen=True)
class GlobalConfig:
    """Launch parameters shared by every curve"""
    fee_recipient: Pubkey
    fee_basis_points: int = DEFAULT_FEE_BASIS_POINTS
    initial_virtual_sol_reserves: int = DEFAULT_INITIAL_VIRTUAL_SOL_RESERVES
    initial_virtual_token_reserves: int = DEFAULT_INITIAL_VIRTUAL_TOKEN_RESERVES
    initial_real_token_reserves: int = DEFAULT_INITIAL_REAL_TOKEN_RESERVES
    initial_token_supply: int = DEFAULT_INITIAL_TOKEN_SUPPLY
    initialized: bool = True
    version: int = 1
    program_id: Pubkey = field(default_factory=Pubkey.default)

    def validate(self) -> "GlobalConfig":
        """
        Check parameter ranges

        Returns:
            self, so construction and validation can be chained

        Raises:
            ConfigError: If any parameter is out of range
        """
        if not 0 <= self.fee_basis_points <= MAX_FEE_BASIS_POINTS:
            raise ConfigError(
                f"fee_basis_points must be in [0, {MAX_FEE_BASIS_POINTS}], got {self.fee_basis_points}"
            )

        for name in (
            "initial_virtual_sol_reserves",
            "initial_virtual_token_reserves",
            "initial_real_token_reserves",
            "initial_token_supply",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer")
            if not 0 <= value <= U64_MAX:
                raise ConfigError(f"{name} must fit in u64, got {value}")

        if self.initial_virtual_sol_reserves == 0 or self.initial_virtual_token_reserves == 0:
            raise ConfigError("initial virtual reserves must be positive")

        if self.initial_virtual_token_reserves < self.initial_real_token_reserves:
            raise ConfigError("initial_virtual_token_reserves must be >= initial_real_token_reserves")

        if self.initial_real_token_reserves > self.initial_token_supply:
            raise ConfigError("initial_real_token_reserves cannot exceed initial_token_supply")

        if self.version < 1:
            raise ConfigError(f"version must be >= 1, got {self.version}")

        return self


@dataclass(frozen=True)
class LogConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "json"
    output_file: Optional[str] = None


@dataclass(frozen=True)
class MetricsConfig:
    """Metrics configuration"""
    enable_histogram: bool = True
    histogram_buckets: List[float] = field(
        default_factory=lambda: [0.1, 0.5, 1, 5, 10, 50, 100]
    )


@dataclass(frozen=True)
class LaunchpadConfig:
    """Complete launchpad configuration"""
    global_config: GlobalConfig
    log_config: LogConfig
    metrics_config: MetricsConfig


class ConfigurationManager:
    """Manages launchpad configuration from YAML files and environment variables"""

    def __init__(self, config_path: str):
        """
        Initialize configuration manager

        Args:
            config_path: Path to YAML configuration file
        """
        self.config_path = Path(config_path)
        self._config_data: Optional[Dict[str, Any]] = None
        self._launchpad_config: Optional[LaunchpadConfig] = None

    def load_config(self) -> LaunchpadConfig:
        """
        Load and validate configuration from file

        Returns:
            LaunchpadConfig: Validated configuration object

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If config is invalid
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ConfigError("Configuration root must be a mapping")

        self._config_data = self._substitute_env_vars(raw_config)
        self._launchpad_config = self._parse_config(self._config_data)

        return self._launchpad_config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key

        Args:
            key: Dot-notation key (e.g., "global.fee_basis_points")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if self._config_data is None:
            raise RuntimeError("Configuration not loaded. Call load_config() first.")

        value: Any = self._config_data
        for k in key.split('.'):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default

        return value

    def _substitute_env_vars(self, config: Any) -> Any:
        """
        Recursively substitute ${VAR_NAME} references with environment values

        Raises:
            ConfigError: If a referenced variable is not set
        """
        if isinstance(config, dict):
            return {k: self._substitute_env_vars(v) for k, v in config.items()}
        if isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        if isinstance(config, str):
            def replace_var(match):
                var_name = match.group(1)
                value = os.getenv(var_name)
                if value is None:
                    raise ConfigError(f"Environment variable {var_name} not found")
                return value

            return re.sub(r'\$\{([^}]+)\}', replace_var, config)
        return config

    def _parse_config(self, config: Dict[str, Any]) -> LaunchpadConfig:
        """
        Parse raw configuration into typed objects

        Raises:
            ConfigError: If configuration is invalid
        """
        global_data = config.get('global')
        if not global_data:
            raise ConfigError("Missing 'global' configuration section")

        global_config = parse_global_config(global_data)

        log_data = config.get('logging', {}) or {}
        log_config = LogConfig(
            level=log_data.get('level', 'INFO'),
            format=log_data.get('format', 'json'),
            output_file=log_data.get('output_file')
        )

        metrics_data = config.get('metrics', {}) or {}
        metrics_config = MetricsConfig(
            enable_histogram=metrics_data.get('enable_histogram', True),
            histogram_buckets=metrics_data.get('histogram_buckets', [0.1, 0.5, 1, 5, 10, 50, 100])
        )

        return LaunchpadConfig(
            global_config=global_config,
            log_config=log_config,
            metrics_config=metrics_config
        )


def parse_global_config(data: Dict[str, Any]) -> GlobalConfig:
    """
    Build a validated GlobalConfig from a raw mapping

    Raises:
        ConfigError: On missing fee recipient, bad public keys or out-of-range values
    """
    recipient = data.get('fee_recipient')
    if not recipient:
        raise ConfigError("global.fee_recipient is required")

    program_id = data.get('program_id')

    try:
        fee_recipient = Pubkey.from_string(str(recipient))
        program = Pubkey.from_string(str(program_id)) if program_id else Pubkey.default()
    except ValueError as e:
        raise ConfigError(f"Invalid public key in global section: {e}") from e

    try:
        global_config = GlobalConfig(
            fee_recipient=fee_recipient,
            fee_basis_points=int(data.get('fee_basis_points', DEFAULT_FEE_BASIS_POINTS)),
            initial_virtual_sol_reserves=int(
                data.get('initial_virtual_sol_reserves', DEFAULT_INITIAL_VIRTUAL_SOL_RESERVES)
            ),
            initial_virtual_token_reserves=int(
                data.get('initial_virtual_token_reserves', DEFAULT_INITIAL_VIRTUAL_TOKEN_RESERVES)
            ),
            initial_real_token_reserves=int(
                data.get('initial_real_token_reserves', DEFAULT_INITIAL_REAL_TOKEN_RESERVES)
            ),
            initial_token_supply=int(data.get('initial_token_supply', DEFAULT_INITIAL_TOKEN_SUPPLY)),
            initialized=bool(data.get('initialized', True)),
            version=int(data.get('version', 1)),
            program_id=program,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in global section: {e}") from e

    return global_config.validate()
