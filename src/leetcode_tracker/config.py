"""Runtime configuration for the tracker."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leetcode_tracker.resilience.strategies import DEFAULT_STRATEGIES

LOCAL_API_URL = "http://localhost:3000"


@dataclass(slots=True)
class ApiSettings:
    """Submissions API settings."""

    base_url: str = ""
    username: str = ""
    submissions_limit: int = 50
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class ResilienceSettings:
    """Circuit breaker and retry engine settings."""

    failure_threshold: int = 5
    recovery_timeout_seconds: float = 600.0
    half_open_success_threshold: int = 1
    base_timeout_seconds: float = 15.0
    jitter_fraction: float = 0.3
    notify_strategy: str = ""


@dataclass(slots=True)
class EmailSettings:
    """SMTP delivery settings."""

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_address: str = ""
    to_address: str = ""
    use_tls: bool = True


@dataclass(slots=True)
class UserContextSettings:
    """User context settings."""

    user_id: str = "default_user"
    user_name: str = "Default User"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".leetcode_tracker.db")
    curriculum_path: Path = Path("study-plan.json")
    timezone: str = "America/Los_Angeles"
    api: ApiSettings = field(default_factory=ApiSettings)
    resilience: ResilienceSettings = field(default_factory=ResilienceSettings)
    email: EmailSettings = field(default_factory=EmailSettings)
    user_context: UserContextSettings = field(default_factory=UserContextSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        base_url = os.getenv("LEETCODE_TRACKER_API_URL", "").strip()
        if _env_bool("LEETCODE_TRACKER_API_USE_LOCAL", False):
            base_url = LOCAL_API_URL
        return cls(
            db_path=db_path or Path(os.getenv("LEETCODE_TRACKER_DB_PATH", ".leetcode_tracker.db")),
            curriculum_path=Path(
                os.getenv("LEETCODE_TRACKER_CURRICULUM_PATH", "study-plan.json"),
            ),
            timezone=os.getenv("LEETCODE_TRACKER_TIMEZONE", "America/Los_Angeles"),
            api=ApiSettings(
                base_url=base_url,
                username=os.getenv("LEETCODE_TRACKER_USERNAME", "").strip(),
                submissions_limit=int(os.getenv("LEETCODE_TRACKER_SUBMISSIONS_LIMIT", "50")),
                request_timeout_seconds=float(
                    os.getenv("LEETCODE_TRACKER_REQUEST_TIMEOUT_SECONDS", "30"),
                ),
            ),
            resilience=ResilienceSettings(
                failure_threshold=int(os.getenv("LEETCODE_TRACKER_BREAKER_FAILURE_THRESHOLD", "5")),
                recovery_timeout_seconds=float(
                    os.getenv("LEETCODE_TRACKER_BREAKER_RECOVERY_TIMEOUT_SECONDS", "600"),
                ),
                half_open_success_threshold=int(
                    os.getenv("LEETCODE_TRACKER_BREAKER_HALF_OPEN_SUCCESSES", "1"),
                ),
                base_timeout_seconds=float(
                    os.getenv("LEETCODE_TRACKER_RETRY_BASE_TIMEOUT_SECONDS", "15"),
                ),
                jitter_fraction=float(os.getenv("LEETCODE_TRACKER_RETRY_JITTER_FRACTION", "0.3")),
                notify_strategy=os.getenv("LEETCODE_TRACKER_NOTIFY_STRATEGY", "").strip(),
            ),
            email=EmailSettings(
                smtp_host=os.getenv("LEETCODE_TRACKER_SMTP_HOST", "").strip(),
                smtp_port=int(os.getenv("LEETCODE_TRACKER_SMTP_PORT", "587")),
                smtp_user=os.getenv("LEETCODE_TRACKER_SMTP_USER", ""),
                smtp_password=os.getenv("LEETCODE_TRACKER_SMTP_PASSWORD", ""),
                from_address=os.getenv("LEETCODE_TRACKER_FROM_EMAIL", "").strip(),
                to_address=os.getenv("LEETCODE_TRACKER_TO_EMAIL", "").strip(),
                use_tls=_env_bool("LEETCODE_TRACKER_SMTP_USE_TLS", True),
            ),
            user_context=UserContextSettings(
                user_id=os.getenv("LEETCODE_TRACKER_USER_ID", "default_user"),
                user_name=os.getenv("LEETCODE_TRACKER_USER_NAME", "Default User"),
            ),
        )

    def zone(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as error:
            raise ValueError(f"Unknown LEETCODE_TRACKER_TIMEZONE: {self.timezone!r}") from error

    def validate_resilience(self) -> None:
        """Raise configuration error if breaker or retry settings are out of range."""

        resilience = self.resilience
        if resilience.failure_threshold < 1:
            raise ValueError("LEETCODE_TRACKER_BREAKER_FAILURE_THRESHOLD must be >= 1.")
        if resilience.recovery_timeout_seconds <= 0:
            raise ValueError("LEETCODE_TRACKER_BREAKER_RECOVERY_TIMEOUT_SECONDS must be > 0.")
        if resilience.half_open_success_threshold < 1:
            raise ValueError("LEETCODE_TRACKER_BREAKER_HALF_OPEN_SUCCESSES must be >= 1.")
        if resilience.base_timeout_seconds <= 0:
            raise ValueError("LEETCODE_TRACKER_RETRY_BASE_TIMEOUT_SECONDS must be > 0.")
        if not 0 <= resilience.jitter_fraction < 1:
            raise ValueError("LEETCODE_TRACKER_RETRY_JITTER_FRACTION must be in [0, 1).")
        if resilience.notify_strategy and resilience.notify_strategy not in DEFAULT_STRATEGIES:
            raise ValueError(
                f"Unknown LEETCODE_TRACKER_NOTIFY_STRATEGY: {resilience.notify_strategy!r}. "
                f"Expected one of: {', '.join(DEFAULT_STRATEGIES)}.",
            )

    def validate_for_probe(self) -> None:
        """Raise configuration error if the API cannot be reached with these settings."""

        self.validate_resilience()
        _validate_api_url(self.api.base_url)

    def validate_for_check(self) -> None:
        """Raise configuration error if a daily run cannot be performed."""

        self.validate_for_probe()
        self.zone()
        if not self.api.username:
            raise ValueError("LEETCODE_TRACKER_USERNAME is required.")
        if self.api.submissions_limit <= 0:
            raise ValueError("LEETCODE_TRACKER_SUBMISSIONS_LIMIT must be a positive integer.")
        if not self.curriculum_path.exists():
            raise ValueError(
                f"Curriculum file not found: {self.curriculum_path}. "
                "Set LEETCODE_TRACKER_CURRICULUM_PATH.",
            )
        email = self.email
        missing = [
            name
            for name, value in (
                ("LEETCODE_TRACKER_SMTP_HOST", email.smtp_host),
                ("LEETCODE_TRACKER_FROM_EMAIL", email.from_address),
                ("LEETCODE_TRACKER_TO_EMAIL", email.to_address),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Email delivery is not configured; set {', '.join(missing)}.")


def _validate_api_url(value: str) -> None:
    if not value:
        raise ValueError(
            "LEETCODE_TRACKER_API_URL is required (or set LEETCODE_TRACKER_API_USE_LOCAL=true).",
        )
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid LEETCODE_TRACKER_API_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
