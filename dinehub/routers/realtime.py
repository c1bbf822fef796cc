"""WebSocket endpoint of the real-time hub."""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from dinehub.realtime import NAMESPACES, hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws/{namespace}")
async def realtime_socket(websocket: WebSocket, namespace: str, restaurant_id: int = Query(...)):
    """
    Join ``namespace`` for one restaurant and receive its events.

    Messages sent by the client are checked against the relay rules; any
    other message is ignored.
    """
    if namespace not in NAMESPACES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await hub.connect(websocket, namespace, restaurant_id)
    try:
        while True:
            message = await websocket.receive_json()
            await hub.handle_client_message(namespace, restaurant_id, message)
    except WebSocketDisconnect:
        pass
    except (KeyError, ValueError) as e:
        # KeyError: binary frame where JSON text was expected
        logger.warning(f"⚠️ Closing {namespace}/{restaurant_id} connection on bad message: {e!r}")
        await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA)
    finally:
        await hub.disconnect(websocket, namespace, restaurant_id)
