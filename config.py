import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (and .env)."""

    database_url: str = ""
    database_echo: bool = False
    secret_key: str = ""
    paystack_secret: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    bloc_token: str = ""
    bloc_base_url: str = "https://api.blochq.io/v1"
    # Skip provider calls for airtime/data and record the debit only
    dry_run: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", ""),
            database_echo=env_flag("DATABASE_ECHO", False),
            secret_key=os.getenv("SECRET_KEY", ""),
            paystack_secret=os.getenv("PAYSTACK_SECRET", ""),
            paystack_base_url=os.getenv("PAYSTACK_BASE_URL", cls.paystack_base_url).rstrip("/"),
            bloc_token=os.getenv("BLOCHQ_TOKEN", ""),
            bloc_base_url=os.getenv("BLOCHQ_BASE_URL", cls.bloc_base_url).rstrip("/"),
            dry_run=env_flag("WALLET_DRY_RUN", False),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
