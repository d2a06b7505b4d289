"""Environment-driven configuration for the summary API."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict

DATA_SOURCE_KINDS = ("memory", "elasticsearch", "postgres")


@dataclass
class Settings:
    """Runtime settings read from environment variables."""

    data_source: str = "memory"
    elastic_url: str = "http://elasticsearch:9200"
    elastic_index: str = "expense-explorer-index"
    elastic_timeout: float = 10.0
    db_params: Dict[str, Any] = field(default_factory=dict)
    host: str = "127.0.0.1"
    port: int = 3300
    log_dir: str = "/var/log/expense-explorer"
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Settings":
        data_source = os.getenv("SUMMARY_DATA_SOURCE", "memory").lower()
        if data_source not in DATA_SOURCE_KINDS:
            raise ValueError(
                f"SUMMARY_DATA_SOURCE must be one of {', '.join(DATA_SOURCE_KINDS)}, got {data_source!r}"
            )
        return cls(
            data_source=data_source,
            elastic_url=os.getenv("ELASTIC_URL", "http://elasticsearch:9200"),
            elastic_index=os.getenv("ELASTIC_INDEX", "expense-explorer-index"),
            elastic_timeout=float(os.getenv("ELASTIC_TIMEOUT", "10")),
            db_params={
                "host": os.getenv("DB_HOST", "localhost"),
                "port": int(os.getenv("DB_PORT", 5432)),
                "database": os.getenv("DB_NAME", "expense_explorer"),
                "user": os.getenv("DB_USER", "expense_user"),
                "password": os.getenv("DB_PASSWORD", ""),
            },
            host=os.getenv("SUMMARY_HOST", "127.0.0.1"),
            port=int(os.getenv("SUMMARY_PORT", "3300")),
            log_dir=os.getenv("LOG_DIR", "/var/log/expense-explorer"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
