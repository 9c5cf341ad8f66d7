from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from core.storage.types import BackendDefinition, ProviderKind

load_dotenv()

SUPPORTED_STORAGE_PROVIDERS = {kind.value for kind in ProviderKind}
DEFAULT_FALLBACK_TOTAL_BYTES = 10 * 1024 * 1024 * 1024


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def parse_backend_definitions(raw: str | None, *, provider: ProviderKind) -> tuple[BackendDefinition, ...]:
    """Parse ``id=credential_ref`` pairs, e.g. ``drive-a=/secrets/a.json,drive-b=/secrets/b.json``."""
    definitions: list[BackendDefinition] = []
    for entry in _split_csv(raw):
        if "=" not in entry:
            raise ValueError(f"Invalid STORAGE_BACKENDS entry '{entry}': expected id=credential_ref")
        backend_id, credentials_ref = (part.strip() for part in entry.split("=", 1))
        if not backend_id or not credentials_ref:
            raise ValueError(f"Invalid STORAGE_BACKENDS entry '{entry}': expected id=credential_ref")
        definitions.append(BackendDefinition(id=backend_id, credentials_ref=credentials_ref, provider=provider))
    return tuple(definitions)


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    always_required = (
        "SECRET_KEY",
        "MONGO_URL",
        "DB_NAME",
        "CELERY_BROKER_URL",
        "CELERY_RESULT_BACKEND",
        "STORAGE_BACKENDS",
    )
    for var_name in always_required:
        if _env(var_name) is None:
            missing.append(var_name)

    storage_provider = (_env("STORAGE_PROVIDER") or ProviderKind.GOOGLE_DRIVE.value).lower()
    if storage_provider == ProviderKind.GOOGLE_DRIVE.value and _env("STORAGE_OPERATOR_EMAIL") is None:
        missing.append("STORAGE_OPERATOR_EMAIL")

    return sorted(set(missing))


def _check_positive_int(name: str, invalid_values: list[str], *, allow_zero: bool = False) -> None:
    raw = _env(name)
    if raw is None:
        return
    try:
        parsed = int(raw)
        if parsed < 0 or (parsed == 0 and not allow_zero):
            raise ValueError("out of range")
    except ValueError:
        qualifier = "a non-negative" if allow_zero else "a positive"
        invalid_values.append(f"{name} must be {qualifier} integer")


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    storage_provider = (_env("STORAGE_PROVIDER") or ProviderKind.GOOGLE_DRIVE.value).lower()
    if storage_provider not in SUPPORTED_STORAGE_PROVIDERS:
        invalid_values.append("STORAGE_PROVIDER must be one of: google_drive, local")
    else:
        try:
            parse_backend_definitions(_env("STORAGE_BACKENDS"), provider=ProviderKind(storage_provider))
        except ValueError as err:
            invalid_values.append(str(err))

    threshold = _env("STORAGE_ALERT_THRESHOLD")
    if threshold is not None:
        try:
            parsed_threshold = float(threshold)
            if not 0 < parsed_threshold <= 1:
                raise ValueError("out of range")
        except ValueError:
            invalid_values.append("STORAGE_ALERT_THRESHOLD must be a number in (0, 1]")

    for name in (
        "STORAGE_FALLBACK_TOTAL_BYTES",
        "STORAGE_POLL_INTERVAL_MINUTES",
        "STORAGE_PROVIDER_TIMEOUT_SECONDS",
        "STORAGE_PURGE_AFTER_DAYS",
        "STORAGE_MAX_UPLOAD_BYTES",
    ):
        _check_positive_int(name, invalid_values)
    _check_positive_int("STORAGE_ALERT_COOLDOWN_MINUTES", invalid_values, allow_zero=True)

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Application startup blocked by invalid environment configuration."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    secret_key: str
    log_level: str
    cors_origins: tuple[str, ...]
    debug_include_error_details: bool
    storage_provider: ProviderKind
    storage_backends: tuple[BackendDefinition, ...]
    storage_root_folder: str
    storage_operator_email: str | None
    storage_public_base_url: str
    storage_fallback_total_bytes: int
    storage_alert_threshold: float
    storage_poll_interval_minutes: int
    storage_alert_cooldown_minutes: int
    storage_provider_timeout_seconds: int
    storage_purge_after_days: int
    storage_max_upload_bytes: int

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    storage_provider = ProviderKind((_env("STORAGE_PROVIDER") or ProviderKind.GOOGLE_DRIVE.value).lower())

    settings = Settings(
        env=os.getenv("ENV", "development"),
        secret_key=os.getenv("SECRET_KEY", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")),
        debug_include_error_details=os.getenv("DEBUG_INCLUDE_ERROR_DETAILS", "false").lower()
        in {"1", "true", "yes"},
        storage_provider=storage_provider,
        storage_backends=parse_backend_definitions(_env("STORAGE_BACKENDS"), provider=storage_provider),
        storage_root_folder=os.getenv("STORAGE_ROOT_FOLDER", "CulturalRegistry"),
        storage_operator_email=_env("STORAGE_OPERATOR_EMAIL"),
        storage_public_base_url=os.getenv("STORAGE_PUBLIC_BASE_URL", "http://localhost:8000"),
        storage_fallback_total_bytes=int(os.getenv("STORAGE_FALLBACK_TOTAL_BYTES", str(DEFAULT_FALLBACK_TOTAL_BYTES))),
        storage_alert_threshold=float(os.getenv("STORAGE_ALERT_THRESHOLD", "0.90")),
        storage_poll_interval_minutes=int(os.getenv("STORAGE_POLL_INTERVAL_MINUTES", "60")),
        storage_alert_cooldown_minutes=int(os.getenv("STORAGE_ALERT_COOLDOWN_MINUTES", "1440")),
        storage_provider_timeout_seconds=int(os.getenv("STORAGE_PROVIDER_TIMEOUT_SECONDS", "30")),
        storage_purge_after_days=int(os.getenv("STORAGE_PURGE_AFTER_DAYS", "30")),
        storage_max_upload_bytes=int(os.getenv("STORAGE_MAX_UPLOAD_BYTES", str(50 * 1024 * 1024))),
    )

    if settings.is_production and not settings.secret_key:
        raise RuntimeError("SECRET_KEY is required when ENV=production")

    return settings
