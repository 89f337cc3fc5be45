from __future__ import annotations

import os
from dataclasses import dataclass


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    default_llm_provider: str = os.getenv("DEFAULT_LLM_PROVIDER", "heuristic")
    default_model: str = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    anthropic_base_url: str = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")
    llm_timeout_seconds: float = _float("LLM_TIMEOUT_SECONDS", 20.0)

    graph_api_base_url: str = os.getenv("GRAPH_API_BASE_URL", "https://graph.facebook.com/v19.0")
    instagram_verify_token: str = os.getenv("INSTAGRAM_VERIFY_TOKEN", "")
    instagram_access_token: str = os.getenv("INSTAGRAM_ACCESS_TOKEN", "")
    instagram_page_id: str = os.getenv("INSTAGRAM_PAGE_ID", "me")
    whatsapp_verify_token: str = os.getenv("WHATSAPP_VERIFY_TOKEN", "")
    whatsapp_access_token: str = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
    whatsapp_phone_number_id: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
    gbp_api_base_url: str = os.getenv("GBP_API_BASE_URL", "https://mybusiness.googleapis.com/v4")
    gbp_access_token: str = os.getenv("GBP_ACCESS_TOKEN", "")
    gbp_account_id: str = os.getenv("GBP_ACCOUNT_ID", "")
    gbp_location_id: str = os.getenv("GBP_LOCATION_ID", "")

    slack_webhook_url: str = os.getenv("SLACK_WEBHOOK_URL", "")
    alert_timeout_seconds: float = _float("ALERT_TIMEOUT_SECONDS", 5.0)
    alert_history_size: int = _int("ALERT_HISTORY_SIZE", 500)
    sender_dedupe_capacity: int = _int("SENDER_DEDUPE_CAPACITY", 10000)

    delivery_max_attempts: int = _int("DELIVERY_MAX_ATTEMPTS", 3)
    delivery_backoff_strategy: str = os.getenv("DELIVERY_BACKOFF_STRATEGY", "exponential")
    delivery_backoff_base_seconds: float = _float("DELIVERY_BACKOFF_BASE_SECONDS", 1.0)
    delivery_attempt_timeout_seconds: float = _float("DELIVERY_ATTEMPT_TIMEOUT_SECONDS", 10.0)
    pipeline_timeout_seconds: float = _float("PIPELINE_TIMEOUT_SECONDS", 120.0)

    default_locale: str = os.getenv("DEFAULT_LOCALE", "tr-TR")

    audit_store_path: str = os.getenv("AUDIT_STORE_PATH", "./data/audit_store.json")
    audit_log_path: str = os.getenv("AUDIT_LOG_PATH", "./data/audit.log.jsonl")
    channel_profiles_dir: str = os.getenv("CHANNEL_PROFILES_DIR", "")

    redis_url: str = os.getenv("REDIS_URL", "")
    review_poll_interval_seconds: int = _int("REVIEW_POLL_INTERVAL_SECONDS", 300)
    admin_api_token: str = os.getenv("ADMIN_API_TOKEN", "")

    debug: bool = _bool("DEBUG", True)


SETTINGS = Settings()
