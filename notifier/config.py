"""Process configuration built once from environment variables.

Mental model refresher:
- Everything here is read at startup and then passed around explicitly.
- Config objects are frozen; senders only ever read them.
- A channel with incomplete settings is "unconfigured", not a startup error.
  Its sends fail fast with NotConfiguredError instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

SMTP_AUTH_MECHANISMS = ("plain", "login")
WHATSAPP_PROVIDERS = ("meta", "acs")
FAILURE_POLICIES = ("acknowledge", "abandon")

DEFAULT_ACS_TOKEN_SCOPE = "https://communication.azure.com/.default"


@dataclass(frozen=True)
class EmailConfig:
    host: str = ""
    port: int = 0
    username: str = ""
    secret: str = ""
    sender: str = ""
    auth_mechanism: str = "plain"
    use_starttls: bool = True
    timeout_seconds: float = 10.0

    @property
    def is_configured(self) -> bool:
        return all(
            (self.host, self.port, self.username, self.secret, self.sender)
        )

    @classmethod
    def from_env(cls) -> "EmailConfig":
        auth_mechanism = os.getenv("SMTP_AUTH", "plain").strip().lower()
        if auth_mechanism not in SMTP_AUTH_MECHANISMS:
            raise RuntimeError(f"Invalid value for SMTP_AUTH: {auth_mechanism!r}")

        return cls(
            host=_optional_env("SMTP_HOST"),
            port=_env_int("SMTP_PORT", default=0),
            username=_optional_env("SMTP_USERNAME"),
            secret=_optional_env("SMTP_PASSWORD"),
            sender=_optional_env("SMTP_SENDER") or _optional_env("ACS_SENDER_EMAIL"),
            auth_mechanism=auth_mechanism,
            use_starttls=_env_bool("SMTP_USE_STARTTLS", default=True),
            timeout_seconds=_env_float("SMTP_TIMEOUT_SECONDS", default=10.0),
        )


@dataclass(frozen=True)
class WhatsAppConfig:
    """Messaging gateway settings.

    `provider` selects the payload schema:
    - "meta": WhatsApp Cloud API template message, static bearer token.
    - "acs": Azure Communication Services notification message, usually
      authenticated with an OAuth2 client-credentials token.
    """

    provider: str = "meta"
    endpoint: str = ""
    api_token: str = ""
    sender_id: str = ""
    template_name: str = "transaction_update"
    template_language: str = "en_US"
    token_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    token_scope: str = DEFAULT_ACS_TOKEN_SCOPE
    timeout_seconds: float = 10.0

    @property
    def uses_client_credentials(self) -> bool:
        return bool(self.token_url and self.client_id and self.client_secret)

    @property
    def is_configured(self) -> bool:
        if not self.endpoint:
            return False
        return bool(self.api_token) or self.uses_client_credentials

    @classmethod
    def from_env(cls) -> "WhatsAppConfig":
        provider = os.getenv("WHATSAPP_PROVIDER", "meta").strip().lower()
        if provider not in WHATSAPP_PROVIDERS:
            raise RuntimeError(f"Invalid value for WHATSAPP_PROVIDER: {provider!r}")
        timeout_seconds = _env_float("WHATSAPP_TIMEOUT_SECONDS", default=10.0)

        if provider == "acs":
            return cls(
                provider=provider,
                endpoint=_optional_env("ACS_MESSAGES_URL"),
                api_token=_optional_env("ACS_API_TOKEN"),
                sender_id=_optional_env("ACS_CHANNEL_REGISTRATION_ID"),
                token_url=_optional_env("ACS_TOKEN_URL"),
                client_id=_optional_env("ACS_APP_ID"),
                client_secret=_optional_env("ACS_APP_SECRET"),
                token_scope=os.getenv("ACS_TOKEN_SCOPE", DEFAULT_ACS_TOKEN_SCOPE).strip(),
                timeout_seconds=timeout_seconds,
            )

        return cls(
            provider=provider,
            endpoint=_optional_env("META_API_URL"),
            api_token=_optional_env("META_API_TOKEN"),
            template_name=os.getenv("META_TEMPLATE_NAME", "transaction_update").strip(),
            template_language=os.getenv("META_TEMPLATE_LANGUAGE", "en_US").strip(),
            timeout_seconds=timeout_seconds,
        )


@dataclass(frozen=True)
class SenderConfig:
    email: EmailConfig = field(default_factory=EmailConfig)
    whatsapp: WhatsAppConfig = field(default_factory=WhatsAppConfig)

    @classmethod
    def from_env(cls) -> "SenderConfig":
        config = cls(email=EmailConfig.from_env(), whatsapp=WhatsAppConfig.from_env())
        config.log_status()
        return config

    def log_status(self) -> None:
        if self.email.is_configured:
            logger.info(
                "[CONFIG] channel=EMAIL host=%s port=%s auth=%s",
                self.email.host,
                self.email.port,
                self.email.auth_mechanism,
            )
        else:
            logger.warning("[CONFIG] channel=EMAIL SMTP variables not fully set; email disabled")

        if self.whatsapp.is_configured:
            logger.info(
                "[CONFIG] channel=WHATSAPP provider=%s client_credentials=%s",
                self.whatsapp.provider,
                self.whatsapp.uses_client_credentials,
            )
        else:
            logger.warning(
                "[CONFIG] channel=WHATSAPP provider=%s endpoint or credentials not set; "
                "WhatsApp disabled",
                self.whatsapp.provider,
            )


@dataclass(frozen=True)
class WorkerConfig:
    bootstrap_servers: tuple[str, ...]
    topic: str = "notifications"
    group_id: str = "notifier-worker"
    auto_offset_reset: str = "earliest"
    receive_timeout_seconds: float = 60.0
    retry_backoff_seconds: float = 5.0
    failure_policy: str = "acknowledge"
    dlq_enabled: bool = True
    dlq_topic: str = "notifications.dlq"
    producer_acks: str = "all"
    send_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "WorkerConfig":
        topic = os.getenv("KAFKA_TOPIC_NOTIFICATIONS", "notifications").strip()
        failure_policy = os.getenv("WORKER_FAILURE_POLICY", "acknowledge").strip().lower()
        if failure_policy not in FAILURE_POLICIES:
            raise RuntimeError(f"Invalid value for WORKER_FAILURE_POLICY: {failure_policy!r}")

        receive_timeout_seconds = _env_float("WORKER_RECEIVE_TIMEOUT_SECONDS", default=60.0)
        if receive_timeout_seconds <= 0:
            raise RuntimeError("WORKER_RECEIVE_TIMEOUT_SECONDS must be > 0")

        return cls(
            bootstrap_servers=tuple(bootstrap_servers_from_env()),
            topic=topic,
            group_id=os.getenv("KAFKA_GROUP_ID", "notifier-worker").strip(),
            auto_offset_reset=os.getenv("KAFKA_AUTO_OFFSET_RESET", "earliest").strip(),
            receive_timeout_seconds=receive_timeout_seconds,
            retry_backoff_seconds=_env_float("WORKER_RETRY_BACKOFF_SECONDS", default=5.0),
            failure_policy=failure_policy,
            dlq_enabled=_env_bool("KAFKA_DLQ_ENABLED", default=True),
            dlq_topic=os.getenv("KAFKA_TOPIC_NOTIFICATIONS_DLQ", f"{topic}.dlq").strip(),
            producer_acks=os.getenv("KAFKA_PRODUCER_ACKS", "all").strip(),
            send_timeout_seconds=_env_float("KAFKA_SEND_TIMEOUT_SECONDS", default=10.0),
        )


def bootstrap_servers_from_env() -> list[str]:
    raw = _required_env("KAFKA_BOOTSTRAP_SERVERS")
    servers = [item.strip() for item in raw.split(",") if item.strip()]
    if not servers:
        raise RuntimeError("KAFKA_BOOTSTRAP_SERVERS must include at least one host:port")
    return servers


def load_env_file(path: Path) -> None:
    """Load KEY=VALUE lines into os.environ without overriding existing values."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        text = line.strip()
        if not text or text.startswith("#") or "=" not in text:
            continue
        key, value = text.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if value.startswith(("'", '"')) and value.endswith(("'", '"')) and len(value) >= 2:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def configure_logging(level: str | None = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value.strip()


def _optional_env(name: str) -> str:
    return (os.getenv(name) or "").strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Invalid boolean value for {name}: {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value for {name}: {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid number value for {name}: {raw!r}") from exc
