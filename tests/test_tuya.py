"""Tests for the Tuya client, against a mocked HTTP transport."""

import asyncio
import json

import httpx
import pytest

from hometimer.schemas import Instruction
from hometimer.services.tuya import (
    TuyaClient,
    TuyaError,
    normalize_reading,
    transform_device,
)


class FakeTuyaApi:
    """Minimal Tuya OpenAPI: token endpoint plus canned per-path responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], list[dict]] = {}
        self.tokens_issued = 0
        self.errors: dict[str, Exception] = {}

    def reply(self, method, path, *payloads):
        self.responses[(method, path)] = list(payloads)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path in self.errors:
            raise self.errors[request.url.path]
        if request.url.path == "/v1.0/token":
            self.tokens_issued += 1
            return httpx.Response(200, json={
                "success": True,
                "result": {
                    "access_token": f"token-{self.tokens_issued}",
                    "refresh_token": "refresh",
                    "expire_time": 7200,
                },
            })
        queue = self.responses.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(200, json={"success": False, "code": 1106, "msg": "permission deny"})
        payload = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(200, json=payload)


@pytest.fixture
def api():
    return FakeTuyaApi()


@pytest.fixture
def client(api):
    return TuyaClient(
        "access-id",
        "secret",
        base_url="https://tuya.example",
        seed_device_ids=["seed-1", "seed-2"],
        transport=httpx.MockTransport(api.handler),
    )


class TestSigning:
    def test_signature_is_uppercase_hex_and_token_sensitive(self, client):
        without = client.sign("GET", "/v1.0/token?grant_type=1", "1700000000000")
        with_token = client.sign("GET", "/v1.0/token?grant_type=1", "1700000000000", "tok")

        assert without == without.upper()
        assert len(without) == 64
        assert without != with_token

    def test_body_changes_signature(self, client):
        a = client.sign("POST", "/v1.0/devices/d/commands", "1", "tok", '{"commands":[]}')
        b = client.sign("POST", "/v1.0/devices/d/commands", "1", "tok", "")
        assert a != b


class TestRequests:
    def test_status_as_map(self, api, client):
        api.reply("GET", "/v1.0/devices/dev-1/status", {
            "success": True,
            "result": [{"code": "switch_led", "value": True}, {"code": "va_temperature", "value": 215}],
        })

        status = asyncio.run(client.get_device_status("dev-1"))

        assert status == {"switch_led": True, "va_temperature": 215}
        sent = api.requests[-1]
        assert sent.headers["access_token"] == "token-1"
        assert sent.headers["sign_method"] == "HMAC-SHA256"

    def test_send_command_body(self, api, client):
        api.reply("POST", "/v1.0/devices/dev-1/commands", {"success": True, "result": True})

        asyncio.run(client.send_command("dev-1", [Instruction(code="switch", value=True)]))

        body = json.loads(api.requests[-1].content)
        assert body == {"commands": [{"code": "switch", "value": True}]}

    def test_rejected_command_raises(self, api, client):
        with pytest.raises(TuyaError) as excinfo:
            asyncio.run(client.send_command("dev-1", [Instruction(code="switch", value=True)]))
        assert excinfo.value.code == 1106

    def test_token_reused(self, api, client):
        api.reply("GET", "/v1.0/devices/dev-1/status", {"success": True, "result": []})

        async def twice():
            await client.get_device_status("dev-1")
            await client.get_device_status("dev-1")

        asyncio.run(twice())

        assert api.tokens_issued == 1

    def test_invalid_token_refreshed_once(self, api, client):
        api.reply(
            "GET",
            "/v1.0/devices/dev-1/status",
            {"success": False, "code": 1010, "msg": "token invalid"},
            {"success": True, "result": [{"code": "va_humidity", "value": 55}]},
        )

        status = asyncio.run(client.get_device_status("dev-1"))

        assert status == {"va_humidity": 55}
        assert api.tokens_issued == 2

    def test_persistent_invalid_token_gives_up(self, api, client):
        api.reply("GET", "/v1.0/devices/dev-1/status", {"success": False, "code": 1010, "msg": "token invalid"})

        with pytest.raises(TuyaError):
            asyncio.run(client.get_device_status("dev-1"))
        assert api.tokens_issued == 2


class TestTimeouts:
    def test_configured_timeout_applies_to_every_call(self, api):
        client = TuyaClient(
            "access-id",
            "secret",
            base_url="https://tuya.example",
            timeout=3.5,
            transport=httpx.MockTransport(api.handler),
        )
        api.reply("GET", "/v1.0/devices/dev-1/status", {"success": True, "result": []})
        api.reply("POST", "/v1.0/devices/dev-1/commands", {"success": True, "result": True})

        async def read_and_send():
            await client.get_device_status("dev-1")
            await client.send_command("dev-1", [Instruction(code="switch", value=True)])

        asyncio.run(read_and_send())

        for request in api.requests:
            assert request.extensions["timeout"]["read"] == 3.5
            assert request.extensions["timeout"]["connect"] == 3.5

    def test_timed_out_send_raises(self, api, client):
        api.errors["/v1.0/devices/dev-1/commands"] = httpx.ReadTimeout("read timed out")

        with pytest.raises(httpx.TimeoutException):
            asyncio.run(client.send_command("dev-1", [Instruction(code="switch", value=True)]))


class TestDiscovery:
    def test_list_devices_merges_uid_and_seed_devices(self, api, client):
        api.reply("GET", "/v1.0/devices/seed-1", {"success": True, "result": {"id": "seed-1", "uid": "u-1", "category": "dj"}})
        api.reply("GET", "/v1.0/devices/seed-2", {"success": True, "result": {"id": "seed-2", "category": "infrared_ac", "name": "AC"}})
        api.reply("GET", "/v1.0/users/u-1/devices", {
            "success": True,
            "result": [{"id": "seed-1", "category": "dj", "name": "Bulb", "online": True}],
        })

        devices = asyncio.run(client.list_devices())

        assert [d["id"] for d in devices] == ["seed-1", "seed-2"]
        assert devices[0]["type"] == "action.devices.types.LIGHT"
        assert devices[1]["tuyaCategory"] == "infrared_ac"

    def test_unreachable_seed_device_is_skipped(self, api, client):
        api.reply("GET", "/v1.0/devices/seed-1", {"success": True, "result": {"id": "seed-1", "uid": "u-1", "category": "dj"}})
        api.errors["/v1.0/devices/seed-2"] = httpx.ConnectTimeout("connect timed out")
        api.reply("GET", "/v1.0/users/u-1/devices", {
            "success": True,
            "result": [{"id": "seed-1", "category": "dj"}, {"id": "d-2", "category": "cz"}],
        })

        devices = asyncio.run(client.list_devices())

        assert [d["id"] for d in devices] == ["seed-1", "d-2"]

    def test_no_devices_raises(self, api, client):
        with pytest.raises(TuyaError):
            asyncio.run(client.list_devices())


class TestHelpers:
    def test_normalize_temperature_tenths(self):
        assert normalize_reading({"va_temperature": 215}, "temperature") == 21.5

    def test_normalize_humidity(self):
        assert normalize_reading({"va_humidity": "48"}, "humidity") == 48.0

    @pytest.mark.parametrize("status", [{}, {"va_temperature": None}, {"va_temperature": "warm"}, {"va_temperature": True}])
    def test_normalize_missing_or_bad(self, status):
        assert normalize_reading(status, "temperature") is None

    def test_transform_unknown_category(self):
        device = transform_device({"id": "x", "category": "zz"})
        assert device["type"] == "action.devices.types.OUTLET"
        assert device["traits"] == ["action.devices.traits.OnOff"]
        assert device["name"] == {"name": "Unknown Device"}

    def test_is_configured(self):
        assert not TuyaClient("", "").is_configured()
        assert TuyaClient("id", "secret").is_configured()
