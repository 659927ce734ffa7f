"""
Token Configuration for the Token Ledger Model.

This module holds the token metadata that the on-chain contract declares as
constants (name, symbol and number of decimals) and the logging setup shared
by the simulation scripts.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Token"
DEFAULT_SYMBOL = "TKN"
DEFAULT_DECIMALS = 18
MAX_DECIMALS = 255  # decimals are stored as a u8


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


@dataclass(frozen=True)
class TokenConfig:
    """
    Metadata of the token tracked by a ledger.

    These values are informational only; no ledger operation depends on them.
    The number of decimals tells clients how to display raw integer amounts
    (an amount of 10**decimals is "one token").
    """
    name: str = DEFAULT_NAME
    symbol: str = DEFAULT_SYMBOL
    decimals: int = DEFAULT_DECIMALS

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Token name must be a non-empty string")

        if not isinstance(self.symbol, str) or not self.symbol:
            raise ValueError("Token symbol must be a non-empty string")

        if (not isinstance(self.decimals, int) or isinstance(self.decimals, bool)
                or not 0 <= self.decimals <= MAX_DECIMALS):
            raise ValueError(f"Decimals must be an integer between 0 and {MAX_DECIMALS}")

    @classmethod
    def from_env(cls) -> "TokenConfig":
        """
        Builds a config from the TOKEN_NAME, TOKEN_SYMBOL and TOKEN_DECIMALS
        environment variables, falling back to the defaults for unset values.
        """
        return cls(
            name=_env_str("TOKEN_NAME", DEFAULT_NAME),
            symbol=_env_str("TOKEN_SYMBOL", DEFAULT_SYMBOL),
            decimals=_env_int("TOKEN_DECIMALS", DEFAULT_DECIMALS),
        )

    def to_display(self, amount: int) -> str:
        """Formats a raw integer amount using the configured decimals."""
        whole, frac = divmod(amount, 10 ** self.decimals)
        if self.decimals == 0 or frac == 0:
            return f"{whole} {self.symbol}"
        frac_str = str(frac).rjust(self.decimals, "0").rstrip("0")
        return f"{whole}.{frac_str} {self.symbol}"


def configure_logging(level: Optional[str] = None):
    """
    Configures root logging for the simulation scripts.

    Args:
        level: Level name such as "INFO"; defaults to TOKEN_LOG_LEVEL or WARNING
    """
    level_name = (level or _env_str("TOKEN_LOG_LEVEL", "WARNING")).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
