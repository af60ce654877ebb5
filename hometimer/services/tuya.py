import hashlib
import hmac
import json
import time
import httpx
from dataclasses import dataclass
from typing import Any, Iterable, Optional
import logging

from hometimer.schemas import Instruction

logger = logging.getLogger(__name__)

# Returned by the API when the access token is no longer valid
TOKEN_INVALID_CODE = 1010

# Tuya category -> Google-style device type
CATEGORY_TYPES = {
    "dj": "action.devices.types.LIGHT",
    "dd": "action.devices.types.LIGHT",
    "fwd": "action.devices.types.LIGHT",
    "dc": "action.devices.types.LIGHT",
    "xdd": "action.devices.types.LIGHT",
    "cz": "action.devices.types.OUTLET",
    "pc": "action.devices.types.OUTLET",
    "kg": "action.devices.types.SWITCH",
    "kt": "action.devices.types.AC_UNIT",
    "qt": "action.devices.types.THERMOSTAT",
    "wnykq": "action.devices.types.AC_UNIT",
    "wk": "action.devices.types.THERMOSTAT",
    "fs": "action.devices.types.FAN",
    "infrared_ac": "action.devices.types.AC_UNIT",
    "infrared_tv": "action.devices.types.OUTLET",
}

_ON_OFF = "action.devices.traits.OnOff"
_BRIGHTNESS = "action.devices.traits.Brightness"
_COLOR = "action.devices.traits.ColorSetting"
_TEMPERATURE = "action.devices.traits.TemperatureSetting"
_FAN = "action.devices.traits.FanSpeed"

CATEGORY_TRAITS = {
    "dj": [_ON_OFF, _BRIGHTNESS, _COLOR],
    "dd": [_ON_OFF, _BRIGHTNESS, _COLOR],
    "xdd": [_ON_OFF, _BRIGHTNESS],
    "cz": [_ON_OFF],
    "pc": [_ON_OFF],
    "kg": [_ON_OFF],
    "kt": [_ON_OFF, _TEMPERATURE, _FAN],
    "qt": [_ON_OFF, _TEMPERATURE, _FAN],
    "wnykq": [_ON_OFF, _TEMPERATURE, _FAN],
    "wk": [_ON_OFF, _TEMPERATURE],
    "fs": [_ON_OFF, _FAN],
    "infrared_ac": [_ON_OFF, _TEMPERATURE, _FAN],
    "infrared_tv": [_ON_OFF],
}

# metric -> (status code, divisor); temperature is reported in tenths of a degree
METRIC_CODES = {
    "temperature": ("va_temperature", 10),
    "humidity": ("va_humidity", 1),
}


class TuyaError(Exception):
    """A Tuya API call failed or was rejected."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


@dataclass
class _Token:
    access_token: str
    refresh_token: str
    expires_at: float

    def expired(self) -> bool:
        return time.time() >= self.expires_at


def normalize_reading(status: dict, metric: str) -> Optional[float]:
    """Extract a sensor metric from a status map, or None if absent/unparseable."""
    if metric not in METRIC_CODES:
        return None
    code, divisor = METRIC_CODES[metric]
    raw = status.get(code)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw) / divisor
    except (TypeError, ValueError):
        return None


def transform_device(device: dict) -> dict:
    """Convert a raw Tuya device into the app's device shape."""
    category = device.get("category") or ""
    return {
        "id": device.get("id"),
        "type": CATEGORY_TYPES.get(category, "action.devices.types.OUTLET"),
        "traits": CATEGORY_TRAITS.get(category, [_ON_OFF]),
        "name": {"name": device.get("name") or "Unknown Device"},
        "willReportState": bool(device.get("online")),
        "roomHint": device.get("room_name") or None,
        "attributes": {
            "category": device.get("category"),
            "productName": device.get("product_name"),
            "model": device.get("model"),
            "online": device.get("online"),
            "icon": device.get("icon"),
        },
        "tuyaCategory": category,
    }


class TuyaClient:
    """Client for the Tuya IoT Platform OpenAPI."""

    def __init__(
        self,
        access_id: str,
        access_secret: str,
        base_url: str = "https://openapi.tuyaus.com",
        timeout: float = 10.0,
        seed_device_ids: Iterable[str] = (),
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.access_id = access_id
        self.access_secret = access_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.seed_device_ids = list(seed_device_ids)
        self._transport = transport
        self._token: Optional[_Token] = None
        self._uid: Optional[str] = None

    def is_configured(self) -> bool:
        return bool(self.access_id and self.access_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    def sign(
        self,
        method: str,
        path: str,
        timestamp: str,
        access_token: Optional[str] = None,
        body: str = ""
    ) -> str:
        """Compute the HMAC-SHA256 request signature."""
        content_hash = hashlib.sha256(body.encode()).hexdigest()
        string_to_sign = "\n".join([method, content_hash, "", path])
        sign_str = self.access_id + (access_token or "") + timestamp + string_to_sign
        return hmac.new(
            self.access_secret.encode(),
            sign_str.encode(),
            hashlib.sha256
        ).hexdigest().upper()

    async def get_token(self) -> None:
        """Fetch a fresh access token."""
        path = "/v1.0/token?grant_type=1"
        timestamp = str(int(time.time() * 1000))
        headers = {
            "client_id": self.access_id,
            "sign": self.sign("GET", path, timestamp),
            "sign_method": "HMAC-SHA256",
            "t": timestamp,
        }
        async with self._client() as client:
            response = await client.get(f"{self.base_url}{path}", headers=headers)
            response.raise_for_status()
            data = response.json()

        if not data.get("success"):
            raise TuyaError(data.get("msg") or "Failed to get token", data.get("code"))

        result = data["result"]
        self._token = _Token(
            access_token=result["access_token"],
            refresh_token=result["refresh_token"],
            # Refresh a minute early
            expires_at=time.time() + result["expire_time"] - 60,
        )
        logger.info("Tuya token obtained")

    async def request(self, method: str, path: str, body: Optional[dict] = None, retry: bool = True) -> Any:
        """Make a signed API call and return its ``result`` field."""
        if self._token is None or self._token.expired():
            await self.get_token()

        timestamp = str(int(time.time() * 1000))
        body_str = json.dumps(body) if body is not None else ""
        headers = {
            "client_id": self.access_id,
            "sign": self.sign(method, path, timestamp, self._token.access_token, body_str),
            "sign_method": "HMAC-SHA256",
            "t": timestamp,
            "access_token": self._token.access_token,
            "Content-Type": "application/json",
        }
        async with self._client() as client:
            response = await client.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                content=body_str or None
            )
            response.raise_for_status()
            data = response.json()

        if not data.get("success"):
            if data.get("code") == TOKEN_INVALID_CODE and retry:
                logger.info("Tuya token rejected, refreshing")
                self._token = None
                return await self.request(method, path, body, retry=False)
            raise TuyaError(data.get("msg") or f"Tuya request failed: {path}", data.get("code"))

        return data.get("result")

    async def get_device_status(self, device_id: str) -> dict:
        """Get a device's current status as a code -> value map."""
        result = await self.request("GET", f"/v1.0/devices/{device_id}/status")
        return {item["code"]: item.get("value") for item in result or []}

    async def send_command(self, device_id: str, instructions: Iterable[Instruction]) -> None:
        """Send instructions to a device."""
        commands = [{"code": i.code, "value": i.value} for i in instructions]
        await self.request(
            "POST",
            f"/v1.0/devices/{device_id}/commands",
            {"commands": commands}
        )
        logger.info(f"Command sent to {device_id}")

    async def get_device_info(self, device_id: str) -> dict:
        return await self.request("GET", f"/v1.0/devices/{device_id}")

    async def get_device_functions(self, device_id: str) -> dict:
        """Get the instruction set a device supports."""
        return await self.request("GET", f"/v1.0/devices/{device_id}/functions")

    async def discover_uid(self) -> Optional[str]:
        """Find the linked SmartLife user id by querying a known device."""
        if self._uid:
            return self._uid

        for device_id in self.seed_device_ids:
            try:
                info = await self.get_device_info(device_id)
            except (TuyaError, httpx.HTTPError) as e:
                logger.warning(f"Could not query seed device {device_id}: {e}")
                continue
            if info and info.get("uid"):
                self._uid = info["uid"]
                logger.info(f"Discovered Tuya user UID: {self._uid}")
                return self._uid
        return None

    async def list_devices(self, uid: Optional[str] = None) -> list[dict]:
        """List every reachable device, by user UID and then by seed ids."""
        raw_devices = []
        seen = set()

        uid = uid or await self.discover_uid()
        if uid:
            result = await self.request("GET", f"/v1.0/users/{uid}/devices")
            for device in result or []:
                if device["id"] not in seen:
                    seen.add(device["id"])
                    raw_devices.append(device)
            logger.info(f"Found {len(raw_devices)} devices via UID")

        for device_id in self.seed_device_ids:
            if device_id in seen:
                continue
            try:
                info = await self.get_device_info(device_id)
            except (TuyaError, httpx.HTTPError) as e:
                logger.warning(f"Seed device {device_id} unavailable: {e}")
                continue
            if info:
                seen.add(device_id)
                raw_devices.append(info)

        if not raw_devices:
            raise TuyaError(
                "No devices found. Make sure devices are linked in SmartLife and the Tuya IoT project."
            )

        return [transform_device(d) for d in raw_devices]
