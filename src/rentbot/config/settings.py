import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from rentbot.modules.storage_rent.config import RentConfig
from rentbot.modules.storage_rent.errors import ConfigError
from rentbot.modules.storage_rent.models import FeePolicy


NETWORK_TYPES = ("mainnet", "testnet")
LOG_LEVELS = ("debug", "info", "warning", "error")


def _env_str(name: str, default: Optional[str] = None) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        if default is not None:
            return default
        raise ConfigError(f"Environment variable {name} is required but not set")
    return value


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be a valid integer")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be a valid number")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ═══════════════════════════════════════════════════════════════════
    # ERGO NODE
    # ═══════════════════════════════════════════════════════════════════
    ERGO_NODE_URL: str = "http://213.239.193.208:9053"
    ERGO_NODE_FALLBACK_URLS: List[str] = field(default_factory=list)
    ERGO_NODE_API_KEY: Optional[str] = None
    NETWORK_TYPE: str = "mainnet"
    NODE_TIMEOUT_SECONDS: float = 10.0

    # ═══════════════════════════════════════════════════════════════════
    # WALLET
    # ═══════════════════════════════════════════════════════════════════
    CHANGE_ADDRESS: str = ""

    # ═══════════════════════════════════════════════════════════════════
    # STORAGE RENT POLICY
    # ═══════════════════════════════════════════════════════════════════
    MIN_STORAGE_RENT_AGE_BLOCKS: int = 1_051_200
    RENT_FEE_PER_BYTE: int = 1_250_000
    MIN_BOX_VALUE_PER_BYTE: int = 360
    MAX_BOXES_PER_TX: int = 50
    TRANSACTION_FEE: int = 1_000_000
    FEE_POLICY: str = FeePolicy.RENT_FUNDS_FEE.value

    # Discovery
    RESCAN_INTERVAL_BLOCKS: int = 50
    LOOKAHEAD_BLOCKS: int = 1000
    SCAN_PAGE_SIZE: int = 1000
    SCAN_TARGET_COUNT: int = 50
    SCAN_START_OFFSET: int = 44_160_000

    # Pacing
    INTER_BATCH_DELAY_SECONDS: float = 5.0
    CONFIRMATION_INTERVAL_SECONDS: float = 30.0
    CONFIRMATION_MAX_ATTEMPTS: int = 20
    CYCLE_INTERVAL_SECONDS: float = 60.0

    # ═══════════════════════════════════════════════════════════════════
    # STORAGE & LOGGING
    # ═══════════════════════════════════════════════════════════════════
    DATABASE_PATH: str = "./data/rent-bot.db"
    LOG_LEVEL: str = "info"
    LOG_DIR: str = "./logs"

    # Bot Behavior
    DRY_RUN: bool = False
    ENABLE_SCHEDULER: bool = True

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Load settings from the environment (and a .env file if present)."""
        load_dotenv(env_file)

        fallbacks = [u.strip() for u in os.getenv("ERGO_NODE_FALLBACK_URLS", "").split(",") if u.strip()]

        settings = cls(
            ERGO_NODE_URL=_env_str("ERGO_NODE_URL", cls.ERGO_NODE_URL),
            ERGO_NODE_FALLBACK_URLS=fallbacks,
            ERGO_NODE_API_KEY=os.getenv("ERGO_NODE_API_KEY") or None,
            NETWORK_TYPE=_env_str("NETWORK_TYPE", cls.NETWORK_TYPE).lower(),
            NODE_TIMEOUT_SECONDS=_env_float("NODE_TIMEOUT_SECONDS", cls.NODE_TIMEOUT_SECONDS),
            CHANGE_ADDRESS=_env_str("CHANGE_ADDRESS"),
            MIN_STORAGE_RENT_AGE_BLOCKS=_env_int("MIN_STORAGE_RENT_AGE_BLOCKS", cls.MIN_STORAGE_RENT_AGE_BLOCKS),
            RENT_FEE_PER_BYTE=_env_int("RENT_FEE_PER_BYTE", cls.RENT_FEE_PER_BYTE),
            MIN_BOX_VALUE_PER_BYTE=_env_int("MIN_BOX_VALUE_PER_BYTE", cls.MIN_BOX_VALUE_PER_BYTE),
            MAX_BOXES_PER_TX=_env_int("MAX_BOXES_PER_TX", cls.MAX_BOXES_PER_TX),
            TRANSACTION_FEE=_env_int("TRANSACTION_FEE", cls.TRANSACTION_FEE),
            FEE_POLICY=_env_str("FEE_POLICY", cls.FEE_POLICY).lower(),
            RESCAN_INTERVAL_BLOCKS=_env_int("RESCAN_INTERVAL_BLOCKS", cls.RESCAN_INTERVAL_BLOCKS),
            LOOKAHEAD_BLOCKS=_env_int("LOOKAHEAD_BLOCKS", cls.LOOKAHEAD_BLOCKS),
            SCAN_PAGE_SIZE=_env_int("SCAN_PAGE_SIZE", cls.SCAN_PAGE_SIZE),
            SCAN_TARGET_COUNT=_env_int("SCAN_TARGET_COUNT", cls.SCAN_TARGET_COUNT),
            SCAN_START_OFFSET=_env_int("SCAN_START_OFFSET", cls.SCAN_START_OFFSET),
            INTER_BATCH_DELAY_SECONDS=_env_float("INTER_BATCH_DELAY_SECONDS", cls.INTER_BATCH_DELAY_SECONDS),
            CONFIRMATION_INTERVAL_SECONDS=_env_float(
                "CONFIRMATION_INTERVAL_SECONDS", cls.CONFIRMATION_INTERVAL_SECONDS
            ),
            CONFIRMATION_MAX_ATTEMPTS=_env_int("CONFIRMATION_MAX_ATTEMPTS", cls.CONFIRMATION_MAX_ATTEMPTS),
            CYCLE_INTERVAL_SECONDS=_env_float("CYCLE_INTERVAL_SECONDS", cls.CYCLE_INTERVAL_SECONDS),
            DATABASE_PATH=_env_str("DATABASE_PATH", cls.DATABASE_PATH),
            LOG_LEVEL=_env_str("LOG_LEVEL", cls.LOG_LEVEL).lower(),
            LOG_DIR=_env_str("LOG_DIR", cls.LOG_DIR),
            DRY_RUN=_env_bool("DRY_RUN", cls.DRY_RUN),
            ENABLE_SCHEDULER=_env_bool("ENABLE_SCHEDULER", cls.ENABLE_SCHEDULER),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ConfigError on the first invalid value."""
        if self.NETWORK_TYPE not in NETWORK_TYPES:
            raise ConfigError('NETWORK_TYPE must be either "mainnet" or "testnet"')

        if self.LOG_LEVEL not in LOG_LEVELS:
            raise ConfigError(f"LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}")

        for url in self.node_urls:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigError(f"Node URL must be a valid http(s) URL: {url}")

        if not self.CHANGE_ADDRESS:
            raise ConfigError("CHANGE_ADDRESS must be set")

        if self.FEE_POLICY not in {p.value for p in FeePolicy}:
            raise ConfigError(f"FEE_POLICY must be one of: {', '.join(p.value for p in FeePolicy)}")

        if not 1 <= self.MAX_BOXES_PER_TX <= 100:
            raise ConfigError("MAX_BOXES_PER_TX must be between 1 and 100")

        if self.TRANSACTION_FEE < 100_000:
            raise ConfigError("TRANSACTION_FEE must be at least 100000 nanoergs")

        positives = {
            "RENT_FEE_PER_BYTE": self.RENT_FEE_PER_BYTE,
            "MIN_BOX_VALUE_PER_BYTE": self.MIN_BOX_VALUE_PER_BYTE,
            "MIN_STORAGE_RENT_AGE_BLOCKS": self.MIN_STORAGE_RENT_AGE_BLOCKS,
            "RESCAN_INTERVAL_BLOCKS": self.RESCAN_INTERVAL_BLOCKS,
            "SCAN_PAGE_SIZE": self.SCAN_PAGE_SIZE,
            "SCAN_TARGET_COUNT": self.SCAN_TARGET_COUNT,
            "CONFIRMATION_MAX_ATTEMPTS": self.CONFIRMATION_MAX_ATTEMPTS,
        }
        for name, value in positives.items():
            if value < 1:
                raise ConfigError(f"{name} must be a positive number")

        if self.LOOKAHEAD_BLOCKS < 0:
            raise ConfigError("LOOKAHEAD_BLOCKS must not be negative")

        if self.SCAN_START_OFFSET < 0:
            raise ConfigError("SCAN_START_OFFSET must not be negative")

        if self.CYCLE_INTERVAL_SECONDS < 5:
            raise ConfigError("CYCLE_INTERVAL_SECONDS must be at least 5 seconds")

        if self.NODE_TIMEOUT_SECONDS <= 0:
            raise ConfigError("NODE_TIMEOUT_SECONDS must be positive")

    @property
    def node_urls(self) -> List[str]:
        # Deduplicate and filter empty
        return list(dict.fromkeys(u for u in [self.ERGO_NODE_URL, *self.ERGO_NODE_FALLBACK_URLS] if u))

    def rent_config(self) -> RentConfig:
        return RentConfig(
            MIN_AGE_BLOCKS=self.MIN_STORAGE_RENT_AGE_BLOCKS,
            RENT_FEE_PER_BYTE=self.RENT_FEE_PER_BYTE,
            MIN_VALUE_PER_BYTE=self.MIN_BOX_VALUE_PER_BYTE,
            RESCAN_INTERVAL_BLOCKS=self.RESCAN_INTERVAL_BLOCKS,
            LOOKAHEAD_BLOCKS=self.LOOKAHEAD_BLOCKS,
            SCAN_PAGE_SIZE=self.SCAN_PAGE_SIZE,
            SCAN_TARGET_COUNT=self.SCAN_TARGET_COUNT,
            SCAN_START_OFFSET=self.SCAN_START_OFFSET,
            MAX_BATCH_SIZE=self.MAX_BOXES_PER_TX,
            NETWORK_FEE=self.TRANSACTION_FEE,
            FEE_POLICY=FeePolicy(self.FEE_POLICY),
            INTER_BATCH_DELAY_SECONDS=self.INTER_BATCH_DELAY_SECONDS,
            CONFIRMATION_INTERVAL_SECONDS=self.CONFIRMATION_INTERVAL_SECONDS,
            CONFIRMATION_MAX_ATTEMPTS=self.CONFIRMATION_MAX_ATTEMPTS,
            DRY_RUN=self.DRY_RUN,
        )
