import os
from dataclasses import dataclass
from typing import Optional


def is_enabled(flag: str, default: bool = False) -> bool:
    return os.getenv(flag, str(default)).lower() == "true"


@dataclass(frozen=True)
class Settings:
    namespace: str = "loyalty"
    data_dir: Optional[str] = None
    seed_rewards: bool = True
    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings(
        namespace=os.getenv("LOYALTY_NAMESPACE", "loyalty"),
        data_dir=os.getenv("LOYALTY_DATA_DIR") or None,
        seed_rewards=is_enabled("LOYALTY_SEED_REWARDS", True),
        log_level=os.getenv("LOYALTY_LOG_LEVEL", "INFO").upper(),
    )
