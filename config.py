"""config.py — Runtime settings read from the environment (.env loaded by the CLI)."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_STATE_PATH = Path("~/.quietread/state.json")


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return max(float(minimum), value)


@dataclass
class Settings:
    state_path: Path = DEFAULT_STATE_PATH
    save_delay: float = 0.5
    window_width: int = 80
    fine_step: int = 10
    page_step: int = 80
    opacity: int = 100
    log_level: str = "WARNING"
    log_path: Path | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        log_path = os.getenv("QUIETREAD_LOG_PATH", "").strip()
        return cls(
            state_path=Path(os.getenv("QUIETREAD_STATE_PATH", "").strip() or DEFAULT_STATE_PATH).expanduser(),
            save_delay=_env_float("QUIETREAD_SAVE_DELAY", 0.5),
            window_width=_env_int("QUIETREAD_WINDOW_WIDTH", 80),
            fine_step=_env_int("QUIETREAD_FINE_STEP", 10),
            page_step=_env_int("QUIETREAD_PAGE_STEP", 80),
            opacity=min(100, _env_int("QUIETREAD_OPACITY", 100, minimum=5)),
            log_level=os.getenv("QUIETREAD_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
            log_path=Path(log_path).expanduser() if log_path else None,
        )
