"""WhatsApp sender over an HTTP messaging gateway.

Mental model refresher:
- This module is an outbound adapter.
- Two vendor schemas are supported (see WhatsAppConfig.provider):
  - meta: pre-approved template message with one body parameter
  - acs: Azure Communication Services notification message
- When the gateway wants a short-lived bearer token, a client-credentials
  token is fetched first. A failed fetch is an AuthFailureError and the send
  is never attempted.
"""

from __future__ import annotations

import http.client
import json
import logging
from typing import Any, Optional
import urllib.error
import urllib.parse
import urllib.request

from ..config import WhatsAppConfig
from ..errors import (
    AuthFailureError,
    InvalidArgumentError,
    NotConfiguredError,
    TransportFailureError,
)

logger = logging.getLogger(__name__)


class WhatsAppSender:
    def __init__(self, config: WhatsAppConfig) -> None:
        self._config = config

    def send(self, contact: str, subject: Optional[str], body: str) -> None:
        """POST one WhatsApp message to `contact`. Raises SendError subclasses."""
        _ = subject
        config = self._config
        if not config.is_configured:
            raise NotConfiguredError("WhatsApp API is not configured")
        if not contact or not body:
            raise InvalidArgumentError("parameters not configured for WhatsApp messaging")
        if config.provider == "acs" and not config.sender_id:
            raise InvalidArgumentError("ACS channel registration id is missing")

        token = config.api_token
        if config.uses_client_credentials:
            token = fetch_oauth_token(config)

        payload = build_whatsapp_payload(config, to_phone=contact, body=body)
        try:
            request = urllib.request.Request(
                config.endpoint,
                data=json.dumps(payload, separators=(",", ":")).encode("utf-8"),
                method="POST",
            )
        except ValueError as exc:
            raise TransportFailureError(f"invalid WhatsApp endpoint: {exc}") from exc
        request.add_header("Content-Type", "application/json")
        request.add_header("Authorization", f"Bearer {token}")

        try:
            with urllib.request.urlopen(request, timeout=config.timeout_seconds) as response:
                status = int(response.getcode())
                details = response.read().decode("utf-8", errors="replace")
                if status < 200 or status >= 300:
                    raise TransportFailureError(
                        f"WhatsApp API returned error status {status}: {details[:300]}"
                    )
        except urllib.error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            raise TransportFailureError(
                f"WhatsApp API returned error status {exc.code}: {details[:300]}"
            ) from exc
        except urllib.error.URLError as exc:
            raise TransportFailureError(f"failed to send WhatsApp request: {exc.reason}") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise TransportFailureError(f"failed to send WhatsApp request: {exc!r}") from exc

        logger.info("[WHATSAPP] to=%s provider=%s status=%s", contact, config.provider, status)


def build_whatsapp_payload(config: WhatsAppConfig, *, to_phone: str, body: str) -> dict[str, Any]:
    if config.provider == "acs":
        return {
            "channelRegistrationId": config.sender_id,
            "to": [to_phone],
            "kind": "text",
            "content": body,
        }

    return {
        "messaging_product": "whatsapp",
        "to": to_phone,
        "type": "template",
        "template": {
            "name": config.template_name,
            "language": {"code": config.template_language},
            "components": [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": body}],
                }
            ],
        },
    }


def fetch_oauth_token(config: WhatsAppConfig) -> str:
    """Run the OAuth2 client-credentials exchange and return the access token."""
    payload = urllib.parse.urlencode(
        {
            "grant_type": "client_credentials",
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "scope": config.token_scope,
        }
    ).encode("utf-8")

    try:
        request = urllib.request.Request(config.token_url, data=payload, method="POST")
    except ValueError as exc:
        raise AuthFailureError(f"invalid token URL: {exc}") from exc
    request.add_header("Content-Type", "application/x-www-form-urlencoded")

    try:
        with urllib.request.urlopen(request, timeout=config.timeout_seconds) as response:
            raw = response.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as exc:
        details = exc.read().decode("utf-8", errors="replace")
        raise AuthFailureError(
            f"token request failed HTTP {exc.code}: {details[:300]}"
        ) from exc
    except urllib.error.URLError as exc:
        raise AuthFailureError(f"token request failed: {exc.reason}") from exc
    except (OSError, http.client.HTTPException) as exc:
        raise AuthFailureError(f"token request failed: {exc!r}") from exc

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AuthFailureError(f"token response is not JSON: {raw[:300]}") from exc

    access_token = parsed.get("access_token") if isinstance(parsed, dict) else None
    if not isinstance(access_token, str) or not access_token:
        raise AuthFailureError("token response is missing access_token")

    logger.debug("[TOKEN] fetched token expires_in=%s", parsed.get("expires_in"))
    return access_token
