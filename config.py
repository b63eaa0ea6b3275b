import os
from functools import lru_cache


class Settings:
    def __init__(
        self,
        api_base_url: str,
        api_timeout_secs: float,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        summary_max_age_secs: int,
        refresh_minutes: int,
    ) -> None:
        self.api_base_url = api_base_url
        self.api_timeout_secs = api_timeout_secs
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.summary_max_age_secs = summary_max_age_secs
        self.refresh_minutes = refresh_minutes


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    api_base_url = os.getenv("FINANCE_API_BASE_URL", "http://localhost:8000/api")
    api_timeout_secs = float(os.getenv("FINANCE_API_TIMEOUT_SECS", "10"))
    timezone = os.getenv("FINANCE_TIMEZONE", "Africa/Douala")
    session_secret = os.getenv(
        "FINANCE_SESSION_SECRET",
        "3f9c0d1b7a52e84c6b0e2d9f41a7c58e0b6d3a29f7c14e8b5d02a6f9c3e71b4d",
    )
    session_max_age_hours = int(os.getenv("FINANCE_SESSION_MAX_AGE_HOURS", "24"))
    summary_max_age_secs = int(os.getenv("FINANCE_SUMMARY_MAX_AGE_SECS", "300"))
    refresh_minutes = int(os.getenv("FINANCE_REFRESH_MINUTES", "5"))
    return Settings(
        api_base_url=api_base_url.rstrip("/"),
        api_timeout_secs=api_timeout_secs,
        timezone=timezone,
        session_secret=session_secret,
        session_max_age_hours=session_max_age_hours,
        summary_max_age_secs=summary_max_age_secs,
        refresh_minutes=refresh_minutes,
    )
