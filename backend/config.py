# Runtime configuration read from the environment (.env supported)
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
]


def _env_flag(name: str) -> bool:
    """True only when the env var is explicitly 'true' (case-insensitive)."""
    return os.environ.get(name, "").lower() == "true"


@dataclass
class Settings:
    database_url: str = "sqlite:///patients.db"
    sheet_script_url: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    demo_mode: bool = False
    log_level: str = "INFO"
    http_timeout: float = 30.0
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))

    @classmethod
    def from_env(cls) -> "Settings":
        origins = list(DEFAULT_ORIGINS)
        frontend_url = os.environ.get("FRONTEND_URL", "")
        if frontend_url:
            origins.append(frontend_url)
        return cls(
            database_url=os.environ.get("DATABASE_URL") or cls.database_url,
            sheet_script_url=os.environ.get("SHEET_SCRIPT_URL", "").strip(),
            gemini_api_key=os.environ.get("GEMINI_API_KEY", "").strip(),
            gemini_model=os.environ.get("GEMINI_MODEL") or cls.gemini_model,
            demo_mode=_env_flag("DEMO_MODE"),
            log_level=(os.environ.get("LOG_LEVEL") or cls.log_level).upper(),
            http_timeout=float(os.environ.get("HTTP_TIMEOUT") or cls.http_timeout),
            allowed_origins=origins,
        )


def get_settings() -> Settings:
    """Read settings fresh so env changes (e.g. DEMO_MODE in tests) apply immediately."""
    return Settings.from_env()
