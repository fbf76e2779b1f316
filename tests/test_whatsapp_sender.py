from __future__ import annotations

import http.client
import io
import json
import unittest
import urllib.error
import urllib.parse
from unittest import mock

from notifier.adapters.whatsapp_sender import (
    WhatsAppSender,
    build_whatsapp_payload,
    fetch_oauth_token,
)
from notifier.config import WhatsAppConfig
from notifier.errors import (
    AuthFailureError,
    InvalidArgumentError,
    NotConfiguredError,
    TransportFailureError,
)

URLOPEN = "notifier.adapters.whatsapp_sender.urllib.request.urlopen"


def meta_config(**overrides: object) -> WhatsAppConfig:
    base: dict[str, object] = {
        "provider": "meta",
        "endpoint": "https://graph.example.com/v22.0/12345/messages",
        "api_token": "test_token",
        "timeout_seconds": 7.0,
    }
    return WhatsAppConfig(**(base | overrides))


def acs_config(**overrides: object) -> WhatsAppConfig:
    base: dict[str, object] = {
        "provider": "acs",
        "endpoint": "https://acs.example.com/messages/notifications:send?api-version=2024-02-01",
        "sender_id": "channel-reg-1",
        "token_url": "https://login.example.com/tenant/oauth2/v2.0/token",
        "client_id": "app-id",
        "client_secret": "app-secret",
    }
    return WhatsAppConfig(**(base | overrides))


def make_response(status: int, body: bytes) -> mock.MagicMock:
    response = mock.MagicMock()
    response.__enter__.return_value.getcode.return_value = status
    response.__enter__.return_value.read.return_value = body
    return response


def http_error(url: str, code: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(url=url, code=code, msg="error", hdrs=None, fp=io.BytesIO(body))


class MetaWhatsAppSenderTests(unittest.TestCase):
    @mock.patch(URLOPEN)
    def test_send_posts_template_message_with_bearer_token(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.return_value = make_response(200, b'{"messages":[{"id":"wamid.1"}]}')

        WhatsAppSender(meta_config()).send("+15555550123", None, "Hi")

        request_obj = urlopen_mock.call_args.args[0]
        self.assertEqual(request_obj.full_url, "https://graph.example.com/v22.0/12345/messages")
        self.assertEqual(request_obj.get_header("Authorization"), "Bearer test_token")
        self.assertEqual(urlopen_mock.call_args.kwargs["timeout"], 7.0)
        payload = json.loads(request_obj.data.decode("utf-8"))
        self.assertEqual(payload["to"], "+15555550123")
        self.assertEqual(payload["template"]["name"], "transaction_update")
        self.assertEqual(
            payload["template"]["components"][0]["parameters"][0]["text"], "Hi"
        )

    @mock.patch(URLOPEN)
    def test_unconfigured_sender_never_calls_network(self, urlopen_mock: mock.Mock) -> None:
        for config in (WhatsAppConfig(), meta_config(api_token=""), meta_config(endpoint="")):
            with self.subTest(config=config):
                with self.assertRaises(NotConfiguredError):
                    WhatsAppSender(config).send("+15555550123", None, "Hi")

        urlopen_mock.assert_not_called()

    @mock.patch(URLOPEN)
    def test_empty_parameters_are_invalid_arguments(self, urlopen_mock: mock.Mock) -> None:
        for contact, body in (("", "Hi"), ("+15555550123", ""), ("", "")):
            with self.subTest(contact=contact, body=body):
                with self.assertRaises(InvalidArgumentError):
                    WhatsAppSender(meta_config()).send(contact, None, body)

        urlopen_mock.assert_not_called()

    @mock.patch(URLOPEN)
    def test_http_error_is_transport_failure_with_body(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.side_effect = http_error(
            "https://graph.example.com", 400, b'{"error":{"message":"invalid to phone"}}'
        )

        with self.assertRaises(TransportFailureError) as ctx:
            WhatsAppSender(meta_config()).send("+15555550123", None, "Hi")

        self.assertIn("400", str(ctx.exception))
        self.assertIn("invalid to phone", str(ctx.exception))

    @mock.patch(URLOPEN)
    def test_non_2xx_status_is_transport_failure(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.return_value = make_response(302, b"moved")

        with self.assertRaises(TransportFailureError) as ctx:
            WhatsAppSender(meta_config()).send("+15555550123", None, "Hi")

        self.assertIn("302", str(ctx.exception))

    @mock.patch(URLOPEN)
    def test_network_error_is_transport_failure(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.side_effect = urllib.error.URLError("connection refused")

        with self.assertRaises(TransportFailureError):
            WhatsAppSender(meta_config()).send("+15555550123", None, "Hi")

    @mock.patch(URLOPEN)
    def test_truncated_response_is_transport_failure(self, urlopen_mock: mock.Mock) -> None:
        response = make_response(200, b"")
        response.__enter__.return_value.read.side_effect = http.client.IncompleteRead(b"par")
        urlopen_mock.return_value = response

        with self.assertRaises(TransportFailureError) as ctx:
            WhatsAppSender(meta_config()).send("+15555550123", None, "Hi")

        self.assertIn("IncompleteRead", str(ctx.exception))

    @mock.patch(URLOPEN)
    def test_malformed_endpoint_is_transport_failure(self, urlopen_mock: mock.Mock) -> None:
        with self.assertRaises(TransportFailureError):
            WhatsAppSender(meta_config(endpoint="not-a-url")).send("+15555550123", None, "Hi")

        urlopen_mock.assert_not_called()


class AcsWhatsAppSenderTests(unittest.TestCase):
    @mock.patch(URLOPEN)
    def test_send_fetches_token_then_posts_notification(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.side_effect = [
            make_response(200, b'{"access_token":"abc","expires_in":3600}'),
            make_response(202, b'{"receipts":[]}'),
        ]

        WhatsAppSender(acs_config()).send("+15555550123", None, "Hi")

        token_request = urlopen_mock.call_args_list[0].args[0]
        self.assertEqual(token_request.full_url, "https://login.example.com/tenant/oauth2/v2.0/token")
        form = urllib.parse.parse_qs(token_request.data.decode("utf-8"))
        self.assertEqual(form["grant_type"], ["client_credentials"])
        self.assertEqual(form["client_id"], ["app-id"])
        self.assertEqual(form["scope"], ["https://communication.azure.com/.default"])

        send_request = urlopen_mock.call_args_list[1].args[0]
        self.assertEqual(send_request.get_header("Authorization"), "Bearer abc")
        self.assertEqual(
            json.loads(send_request.data.decode("utf-8")),
            {
                "channelRegistrationId": "channel-reg-1",
                "to": ["+15555550123"],
                "kind": "text",
                "content": "Hi",
            },
        )

    @mock.patch(URLOPEN)
    def test_token_failure_is_auth_failure_and_skips_send(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.side_effect = http_error(
            "https://login.example.com", 401, b'{"error":"invalid_client"}'
        )

        with self.assertRaises(AuthFailureError) as ctx:
            WhatsAppSender(acs_config()).send("+15555550123", None, "Hi")

        self.assertEqual(urlopen_mock.call_count, 1)
        self.assertIn("invalid_client", str(ctx.exception))

    @mock.patch(URLOPEN)
    def test_missing_sender_identity_is_invalid_argument(self, urlopen_mock: mock.Mock) -> None:
        with self.assertRaises(InvalidArgumentError):
            WhatsAppSender(acs_config(sender_id="")).send("+15555550123", None, "Hi")

        urlopen_mock.assert_not_called()


class FetchOauthTokenTests(unittest.TestCase):
    @mock.patch(URLOPEN)
    def test_missing_access_token_is_auth_failure(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.return_value = make_response(200, b'{"expires_in":3600}')

        with self.assertRaises(AuthFailureError):
            fetch_oauth_token(acs_config())

    @mock.patch(URLOPEN)
    def test_non_json_response_is_auth_failure(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.return_value = make_response(200, b"<html>oops</html>")

        with self.assertRaises(AuthFailureError):
            fetch_oauth_token(acs_config())

    @mock.patch(URLOPEN)
    def test_malformed_token_url_is_auth_failure(self, urlopen_mock: mock.Mock) -> None:
        with self.assertRaises(AuthFailureError):
            fetch_oauth_token(acs_config(token_url="not-a-url"))

        urlopen_mock.assert_not_called()

    @mock.patch(URLOPEN)
    def test_broken_http_response_is_auth_failure(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.side_effect = http.client.BadStatusLine("garbage")

        with self.assertRaises(AuthFailureError):
            fetch_oauth_token(acs_config())

    @mock.patch(URLOPEN)
    def test_network_error_is_auth_failure(self, urlopen_mock: mock.Mock) -> None:
        urlopen_mock.side_effect = urllib.error.URLError("dns failure")

        with self.assertRaises(AuthFailureError):
            fetch_oauth_token(acs_config())


class PayloadTests(unittest.TestCase):
    def test_meta_payload_uses_configured_template(self) -> None:
        payload = build_whatsapp_payload(
            meta_config(template_name="order_update", template_language="pt_BR"),
            to_phone="+5511999999999",
            body="Pedido enviado",
        )

        self.assertEqual(payload["messaging_product"], "whatsapp")
        self.assertEqual(payload["type"], "template")
        self.assertEqual(payload["template"]["name"], "order_update")
        self.assertEqual(payload["template"]["language"], {"code": "pt_BR"})


if __name__ == "__main__":
    unittest.main()
