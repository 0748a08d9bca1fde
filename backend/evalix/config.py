import os
from typing import Callable, Optional

from dotenv import load_dotenv


load_dotenv()


def get_settings() -> dict:
    return {
        "SHEETS_API_BASE": os.getenv(
            "SHEETS_API_BASE", "https://68f555696b852b1d6f13e4d9.mockapi.io/Sheets"
        ),
        "SHEETS_RESOURCE": os.getenv("SHEETS_RESOURCE", "sheets"),
        "SHEETS_API_TOKEN": os.getenv("SHEETS_API_TOKEN", ""),
        "SHEETS_MAX_ATTEMPTS": os.getenv("SHEETS_MAX_ATTEMPTS", "3"),
        "SHEETS_BACKOFF_MS": os.getenv("SHEETS_BACKOFF_MS", "400"),
        "SHEETS_TIMEOUT": os.getenv("SHEETS_TIMEOUT", ""),
        "SHEETS_LOCK_PERIODS": os.getenv("SHEETS_LOCK_PERIODS", "false"),
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS", "http://localhost:3000"),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }


def is_enabled(value: object) -> bool:
    return str(value or "").strip().lower() in ("true", "1", "yes", "on")


def static_token_provider(token: str) -> Callable[[], Optional[str]]:
    """토큰 문자열을 공급하는 provider. 빈 값이면 인증 헤더를 붙이지 않는다."""
    cleaned = token.strip()

    def provide() -> Optional[str]:
        return cleaned or None

    return provide
