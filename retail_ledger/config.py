"""Application configuration"""

from dataclasses import dataclass, field
from decimal import Decimal
from os import getenv
from pathlib import Path


@dataclass
class Config:
    app_name: str = "retail-ledger"
    app_version: str = "0.1.0"

    # Optional database URL for Postgres or other databases
    database_url_env: str | None = field(
        default=getenv("RETAIL_LEDGER_DATABASE_URL", None)
    )

    # well-known fallback treasury, created on demand when nothing else is usable
    default_treasury_code: str = field(
        default=getenv("RETAIL_LEDGER_DEFAULT_TREASURY_CODE", "MAIN")
    )
    default_treasury_name: str = field(
        default=getenv("RETAIL_LEDGER_DEFAULT_TREASURY_NAME", "Main Treasury")
    )

    # rounding drift accepted between split rows and the requested total
    split_tolerance: Decimal = Decimal("0.01")

    rebuild_batch_size: int = field(
        default=int(getenv("RETAIL_LEDGER_REBUILD_BATCH_SIZE", "200"))
    )

    @property
    def database_path(self) -> Path:
        return Path("./data/") / Path(f"{self.app_name}.db")

    @property
    def database_url(self) -> str:
        # Use provided DATABASE_URL if available, else fall back to SQLite file
        if self.database_url_env:
            return self.database_url_env
        return f"sqlite:///{self.database_path}"


def get_config():
    return Config()
