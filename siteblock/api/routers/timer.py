"""
/timer — focus timer snapshot, commands, preferences and a live stream.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from ...actions.pomodoro import TimerState
from ...api.schemas import TimerCommand, TimerSettingsPatch, TimerStateOut

router = APIRouter(prefix="/timer", tags=["timer"])


def _get_service(request: Request):
    return request.app.state.service


def _state_out(state: TimerState) -> TimerStateOut:
    return TimerStateOut(
        mode=state.mode.value,
        time_remaining=state.time_remaining,
        work_duration=state.work_duration,
        break_duration=state.break_duration,
        music_enabled=state.music_enabled,
        music_volume=state.music_volume,
        last_update=state.last_update,
    )


@router.get("", response_model=TimerStateOut)
async def get_timer(service=Depends(_get_service)):
    """Return the persisted timer record."""
    return _state_out(await service.timer_state())


@router.post("/{command}", response_model=TimerStateOut)
async def timer_command(command: TimerCommand, service=Depends(_get_service)):
    result = await service.timer_command(command.value)
    if not result.ok:
        raise HTTPException(status_code=503, detail=result.error)
    return _state_out(result.state)


@router.put("/settings", response_model=TimerStateOut)
async def update_timer_settings(patch: TimerSettingsPatch, service=Depends(_get_service)):
    """Apply a partial update; omitted fields keep their value."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return _state_out(await service.timer.configure(**data))


@router.websocket("/ws")
async def timer_websocket(websocket: WebSocket):
    """
    WebSocket stream — sends the current record, then every committed change.
    Blocked pages subscribe here instead of running their own countdown.
    """
    service = websocket.app.state.service
    await websocket.accept()

    async with service.watch_timer() as queue:

        async def push():
            await websocket.send_json((await service.timer_state()).to_dict())
            while True:
                await websocket.send_json(await queue.get())

        pusher = asyncio.create_task(push())
        try:
            # nothing is expected from the client; this only waits for the close
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            pusher.cancel()
            await asyncio.gather(pusher, return_exceptions=True)
