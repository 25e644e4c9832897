"""Tests for the FastAPI webhook server."""

import hashlib
import hmac
import json

from fastapi.testclient import TestClient

from zoiner.config import Config
from zoiner.webhook_server import create_webhook_app, verify_neynar_signature

from .fakes import REFERRER

SECRET = "whsec-test"


def make_config(webhook_secret=SECRET, **bot) -> Config:
    farcaster = {"api_key": "k", "signer_uuid": "s", "bot_fid": 999}
    if webhook_secret is not None:
        farcaster["webhook_secret"] = webhook_secret
    return Config(
        farcaster=farcaster,
        pinata={"jwt": "jwt"},
        zora={"private_key": "0x" + "11" * 32, "platform_referrer": REFERRER},
        bot=bot,
    )


def sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


class StubBot:
    def __init__(self):
        self.stats = {"processed_casts": 3, "replies": 2, "failures": 0}


class StubHandler:
    """Records events instead of processing them."""

    def __init__(self, status="accepted"):
        self.bot = StubBot()
        self.status = status
        self.events = []
        self.drained = []
        self.shutting_down = False
        self.in_flight = 0

    async def handle_event(self, payload):
        self.events.append(payload)
        return self.status

    async def drain(self, timeout):
        self.drained.append(timeout)


class TestSignature:
    def test_valid(self):
        body = b'{"type": "cast.created"}'
        assert verify_neynar_signature(body, sign(body), SECRET) is True

    def test_uppercase_hex_accepted(self):
        body = b"{}"
        assert verify_neynar_signature(body, sign(body).upper(), SECRET) is True

    def test_wrong_secret(self):
        body = b"{}"
        assert verify_neynar_signature(body, sign(body, "other"), SECRET) is False

    def test_missing(self):
        assert verify_neynar_signature(b"{}", "", SECRET) is False


class TestWebhookApp:
    """Test the HTTP surface."""

    def setup_method(self):
        self.handler = StubHandler()
        self.app = create_webhook_app(make_config(shutdown_drain_seconds=7), self.handler)

    def _post(self, client, payload, signature=None):
        body = json.dumps(payload).encode() if not isinstance(payload, bytes) else payload
        headers = {"Content-Type": "application/json"}
        headers["X-Neynar-Signature"] = sign(body) if signature is None else signature
        return client.post("/webhooks/farcaster", content=body, headers=headers)

    def test_health(self):
        with TestClient(self.app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dry_run"] is False
        assert data["replies"] == 2
        assert data["in_flight"] == 0

    def test_challenge_echo(self):
        with TestClient(self.app) as client:
            response = client.get("/webhooks/farcaster", params={"challenge": "abc123"})
        assert response.json() == {"challenge": "abc123"}

    def test_verification_without_challenge(self):
        with TestClient(self.app) as client:
            response = client.get("/webhooks/farcaster")
        assert response.status_code == 200
        assert "status" in response.json()

    def test_signed_event_accepted(self):
        payload = {"type": "cast.created", "data": {"hash": "0xabc"}}
        with TestClient(self.app) as client:
            response = self._post(client, payload)
        assert response.status_code == 200
        assert response.json() == {"status": "accepted"}
        assert self.handler.events == [payload]

    def test_bad_signature_rejected(self):
        with TestClient(self.app) as client:
            response = self._post(client, {"type": "cast.created"}, signature="deadbeef")
        assert response.status_code == 401
        assert self.handler.events == []

    def test_invalid_json(self):
        body = b"{not json"
        with TestClient(self.app) as client:
            response = self._post(client, body)
        assert response.status_code == 400

    def test_non_object_payload(self):
        with TestClient(self.app) as client:
            response = self._post(client, [1, 2, 3])
        assert response.status_code == 400

    def test_handler_status_passed_through(self):
        self.handler.status = "ignored"
        with TestClient(self.app) as client:
            response = self._post(client, {"type": "follow.created"})
        assert response.json() == {"status": "ignored"}

    def test_shutting_down(self):
        self.handler.shutting_down = True
        with TestClient(self.app) as client:
            response = self._post(client, {"type": "cast.created", "data": {"hash": "0x1"}})
        assert response.status_code == 503
        assert self.handler.events == []

    def test_lifespan_drains_handler(self):
        with TestClient(self.app):
            pass
        assert self.handler.drained == [7]

    def test_no_secret_skips_verification(self):
        app = create_webhook_app(make_config(webhook_secret=None), self.handler)
        with TestClient(app) as client:
            response = client.post(
                "/webhooks/farcaster",
                content=b'{"type": "cast.created", "data": {"hash": "0x2"}}',
            )
        assert response.status_code == 200

    def test_metadata_endpoint(self):
        with TestClient(self.app) as client:
            response = client.get(
                "/metadata", params={"name": "Wave Rider", "symbol": "WAVE", "image": "https://x/w.png"}
            )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.json() == {
            "name": "Wave Rider",
            "symbol": "WAVE",
            "description": "Wave Rider - Created with @zoiner on Farcaster",
            "image": "https://x/w.png",
            "properties": {"category": "social"},
        }

    def test_metadata_requires_fields(self):
        with TestClient(self.app) as client:
            response = client.get("/metadata", params={"name": "Wave Rider"})
        assert response.status_code == 422
