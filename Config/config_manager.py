import os
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from Config import constants_core as core
from Config.environment import env
from Config.exceptions import ConfigTypeError


class LedgerConfig:
    """Centralized configuration shared across the ledger modules."""
    _instance = None  # Singleton instance
    _is_loaded = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(LedgerConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._is_loaded:
            self._initialize_default_values()
            self._load_environment_variables()
            self._is_loaded = True

    def _initialize_default_values(self):
        """Set default values for all configuration attributes."""
        self._database_url = None
        self._brokerage_rate = core.DEFAULT_BROKERAGE_RATE
        self._accrual_batch_size = core.ACCRUAL_BATCH_SIZE
        self._detail_insert_chunk = core.DETAIL_INSERT_CHUNK
        self._default_exchange = core.DEFAULT_EXCHANGES[0]
        self._exchange_timezone = core.EXCHANGE_TIMEZONE
        self._log_level = "INFO"
        self._log_dir = None
        self._db_pool_size = 5

    def _load_environment_variables(self):
        env.load()
        self._database_url = env.database_url
        self._log_dir = str(env.log_dir)

        parsers = {
            "_brokerage_rate": ("BROKERAGE_RATE", Decimal),
            "_accrual_batch_size": ("ACCRUAL_BATCH_SIZE", int),
            "_detail_insert_chunk": ("DETAIL_INSERT_CHUNK", int),
            "_default_exchange": ("DEFAULT_EXCHANGE", str),
            "_exchange_timezone": ("EXCHANGE_TIMEZONE", str),
            "_log_level": ("LOG_LEVEL", str),
            "_db_pool_size": ("DB_POOL_SIZE", int),
        }

        for attr, (env_var, cast) in parsers.items():
            value = os.getenv(env_var)
            if value is None or value == "":
                continue
            setattr(self, attr, self._cast(env_var, value, cast))

        self._default_exchange = self._default_exchange.upper()
        self._log_level = self._log_level.upper()

    @staticmethod
    def _cast(key: str, raw: str, cast: type) -> Any:
        try:
            return cast(raw.strip())
        except (ValueError, InvalidOperation):
            raise ConfigTypeError(key, raw, cast)

    def reload_config(self):
        # Force reload of configuration
        self._is_loaded = False
        self.__init__()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "DATABASE_URL": self._database_url,
            "BROKERAGE_RATE": self._brokerage_rate,
            "ACCRUAL_BATCH_SIZE": self._accrual_batch_size,
            "DETAIL_INSERT_CHUNK": self._detail_insert_chunk,
            "DEFAULT_EXCHANGE": self._default_exchange,
            "EXCHANGE_TIMEZONE": self._exchange_timezone,
            "LOG_LEVEL": self._log_level,
            "LOG_DIR": self._log_dir,
            "DB_POOL_SIZE": self._db_pool_size,
        }

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def brokerage_rate(self) -> Decimal:
        return self._brokerage_rate

    @property
    def accrual_batch_size(self) -> int:
        return self._accrual_batch_size

    @property
    def detail_insert_chunk(self) -> int:
        return self._detail_insert_chunk

    @property
    def default_exchange(self) -> str:
        return self._default_exchange

    @property
    def exchange_timezone(self) -> str:
        return self._exchange_timezone

    @property
    def log_level(self) -> str:
        return self._log_level

    @property
    def log_dir(self) -> Optional[str]:
        return self._log_dir

    @property
    def db_pool_size(self) -> int:
        return self._db_pool_size


def get_config() -> LedgerConfig:
    return LedgerConfig()
