import logging

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from hometimer.routers.deps import get_tuya
from hometimer.schemas import CommandRequest, ExecuteRequest
from hometimer.services.translator import translate
from hometimer.services.tuya import TuyaClient, TuyaError

logger = logging.getLogger(__name__)

router = APIRouter()


def _upstream_error(message: str, e: Exception) -> JSONResponse:
    logger.error(f"{message}: {e}")
    return JSONResponse({"success": False, "error": str(e) or message}, status_code=502)


@router.get("/")
async def list_devices(tuya: TuyaClient = Depends(get_tuya)):
    """List all devices linked to the Tuya project."""
    try:
        devices = await tuya.list_devices()
    except (TuyaError, httpx.HTTPError) as e:
        return _upstream_error("Failed to fetch devices", e)
    return {"success": True, "data": devices}


@router.get("/{device_id}/state")
async def get_device_state(device_id: str, tuya: TuyaClient = Depends(get_tuya)):
    """Current status of a device as a code -> value map."""
    try:
        status = await tuya.get_device_status(device_id)
    except (TuyaError, httpx.HTTPError) as e:
        return _upstream_error("Failed to get device state", e)
    return {"success": True, "data": status}


@router.post("/{device_id}/execute")
async def execute_instructions(
    device_id: str,
    body: ExecuteRequest,
    tuya: TuyaClient = Depends(get_tuya)
):
    """Send raw Tuya instructions to a device."""
    try:
        await tuya.send_command(device_id, body.commands)
    except (TuyaError, httpx.HTTPError) as e:
        return _upstream_error("Failed to execute command", e)
    return {"success": True, "message": "Command executed"}


@router.post("/{device_id}/command")
async def execute_command(
    device_id: str,
    body: CommandRequest,
    tuya: TuyaClient = Depends(get_tuya)
):
    """Translate an abstract device command and send it."""
    instructions = translate(body.command, body.device_category)
    if not instructions:
        return JSONResponse(
            {"success": False, "error": f"No Tuya instructions for {body.command.type}"},
            status_code=400
        )

    try:
        await tuya.send_command(device_id, instructions)
    except (TuyaError, httpx.HTTPError) as e:
        return _upstream_error("Failed to execute command", e)
    return {
        "success": True,
        "message": "Command executed",
        "data": [i.model_dump() for i in instructions]
    }
