from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from monkmode.security import decode_access_token

router = APIRouter(tags=["notifications"])


@router.websocket("/hubs/notifications")
async def notifications_hub(
    websocket: WebSocket,
    access_token: str | None = Query(default=None),
):
    """Push channel for friendship events.

    Browsers cannot set headers on a WebSocket upgrade, so the JWT travels
    in the ``access_token`` query parameter.
    """
    try:
        user_id = str(decode_access_token(access_token or ""))
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connection_manager
    await manager.connect(websocket, user_id)
    try:
        await websocket.send_json({"event": "Connected", "data": {"user_id": user_id}})
        while True:
            # Server-to-client only; inbound frames are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, user_id)
