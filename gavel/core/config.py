"""
Protocol configuration parameters for Gavel.

Defines auction bounds, economic parameters, rent and grace periods.
Values can be overridden from a JSON file and from GAVEL_* environment
variables (a .env file in the working directory is loaded first).
"""

import json
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from gavel.utils.validation import validate_hex_string

ENV_PREFIX = "GAVEL_"


class ProtocolConfig(BaseModel):
    """Protocol-wide configuration parameters"""

    # Treasury fee, deducted before the seller payout when non-zero
    protocol_fee_bps: int = Field(default=0, ge=0, le=10_000)
    treasury: Optional[str] = None  # hex identity

    # Auction bounds
    min_auction_duration: int = Field(default=5, gt=0)  # seconds
    max_auction_duration: int = Field(default=604_800, gt=0)  # 7 days
    max_extension_seconds: int = Field(default=3_600, ge=0)  # anti-snipe ceiling

    # Permissionless force-close waits this long after end/start
    force_close_grace_period: int = Field(default=604_800, ge=0)

    # Rent: minimum lamports = (overhead + data_len) * per_byte
    rent_lamports_per_byte: int = Field(default=6_960, ge=0)
    account_storage_overhead: int = Field(default=128, ge=0)

    # Royalty metadata
    max_creators: int = Field(default=5, gt=0)

    # Deposits while the auction record is on the fast tier
    accept_deposits_while_delegated: bool = True

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    @field_validator("treasury")
    @classmethod
    def _check_treasury(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        valid, err = validate_hex_string(value, "treasury", expected_bytes=32)
        if not valid:
            raise ValueError(err)
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "ProtocolConfig":
        if self.min_auction_duration > self.max_auction_duration:
            raise ValueError(
                f"min_auction_duration ({self.min_auction_duration}) exceeds "
                f"max_auction_duration ({self.max_auction_duration})"
            )
        if self.protocol_fee_bps > 0 and self.treasury is None:
            raise ValueError("protocol_fee_bps > 0 requires a treasury")
        return self

    @property
    def treasury_identity(self) -> Optional[bytes]:
        if self.treasury is None:
            return None
        hex_str = self.treasury[2:] if self.treasury.startswith("0x") else self.treasury
        return bytes.fromhex(hex_str)

    def minimum_balance(self, data_len: int) -> int:
        """Lamports an account of data_len bytes must hold to exist."""
        return (self.account_storage_overhead + data_len) * self.rent_lamports_per_byte


# Global config instance (can be overridden)
config = ProtocolConfig()


def _env_overrides() -> dict:
    """Collect GAVEL_<FIELD> overrides for known fields."""
    overrides = {}
    for name in ProtocolConfig.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> ProtocolConfig:
    """
    Load configuration from file, environment, or defaults.

    Precedence (highest first): environment variables, JSON file, defaults.

    Args:
        config_path: Optional path to a JSON config file
        env_file: Optional .env path (defaults to ./.env if present)

    Returns:
        Validated ProtocolConfig instance
    """
    load_dotenv(dotenv_path=env_file)

    values = {}
    if config_path:
        values.update(json.loads(Path(config_path).read_text()))

    values.update(_env_overrides())
    return ProtocolConfig.model_validate(values)
