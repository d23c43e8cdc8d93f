import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        log_level: str,
        sql_echo: bool,
        budget_warning_ratio: float,
        past_budget_limit: int,
    ) -> None:
        self.database_url = database_url
        self.log_level = log_level
        self.sql_echo = sql_echo
        self.budget_warning_ratio = budget_warning_ratio
        self.past_budget_limit = past_budget_limit


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{data_dir / 'ledger.db'}")
    warning_ratio = float(os.getenv("LEDGER_BUDGET_WARNING_RATIO", "0.8"))
    if not 0 < warning_ratio <= 1:
        raise ValueError("LEDGER_BUDGET_WARNING_RATIO must be in (0, 1]")
    past_limit = int(os.getenv("LEDGER_PAST_BUDGET_LIMIT", "12"))
    if past_limit < 0:
        raise ValueError("LEDGER_PAST_BUDGET_LIMIT must not be negative")
    return Settings(
        database_url=database_url,
        log_level=os.getenv("LEDGER_LOG_LEVEL", "INFO").upper(),
        sql_echo=_env_flag("LEDGER_SQL_ECHO"),
        budget_warning_ratio=warning_ratio,
        past_budget_limit=past_limit,
    )
