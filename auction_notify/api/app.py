"""Read API and websocket event stream.

GET  /healthz
GET  /auction-notify
GET  /auction-notify/name/{name}
POST /auction-notify/wipe
WS   /auction-notify/ws

Websocket clients send ``{"id", "method", "params"}`` frames: ``auth`` with the
API key, then ``watch auction-notify`` to start receiving events (and
``unwatch auction-notify`` to stop). Events arrive as
``{"event": ..., "data": ...}`` frames.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import bittensor as bt
from fastapi import FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from auction_notify import __version__
from auction_notify.api.schemas import HealthResponse, NameInfoResponse, SocketCall, TipResponse, WipeResponse
from auction_notify.index.auctiondb import AuctionDB
from auction_notify.index.store import StoreError
from auction_notify.notify.events import OutpointModel
from auction_notify.notify.fanout import DEFAULT_CHANNEL, AuthError, EventFanout, Subscriber

WATCH = f"watch {DEFAULT_CHANNEL}"
UNWATCH = f"unwatch {DEFAULT_CHANNEL}"


def _handle_call(fanout: EventFanout, sub: Subscriber, call: SocketCall) -> Dict[str, Any]:
    try:
        if call.method == "auth":
            key = call.params[0] if call.params else None
            fanout.auth(sub, key if isinstance(key, str) else None)
        elif call.method == WATCH:
            fanout.join(sub, DEFAULT_CHANNEL)
        elif call.method == UNWATCH:
            if not sub.authed:
                raise AuthError("Not authenticated.")
            fanout.leave(sub, DEFAULT_CHANNEL)
        else:
            return {"id": call.id, "error": {"message": f"Unknown method: {call.method}"}}
    except AuthError as e:
        return {"id": call.id, "error": {"message": str(e)}}
    return {"id": call.id, "result": None}


def create_app(
    adb: AuctionDB,
    fanout: EventFanout,
    *,
    network: str = "main",
    cors_origins: Optional[List[str]] = None,
) -> FastAPI:
    app = FastAPI(title="hsd auction notify", version=__version__)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/healthz", response_model=HealthResponse)
    def healthz():
        return HealthResponse(network=network)

    @app.get("/auction-notify", response_model=TipResponse)
    def notify_info():
        tip = adb.get_tip()
        return TipResponse(tip=tip.hex() if tip else None)

    @app.get("/auction-notify/name/{name}", response_model=NameInfoResponse)
    def notify_name(name: str):
        try:
            bids = adb.get_bids(name)
            reveals = adb.get_reveals(name)
            bid_count = adb.get_bid_count(name)
            reveal_count = adb.get_reveal_count(name)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid name")
        except StoreError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return NameInfoResponse(
            name=name,
            bids=[OutpointModel.from_outpoint(o) for o in bids],
            reveals=[OutpointModel.from_outpoint(o) for o in reveals],
            bid_count=bid_count,
            reveal_count=reveal_count,
        )

    @app.post("/auction-notify/wipe", response_model=WipeResponse)
    def wipe(x_api_key: Optional[str] = Header(default=None)):
        if not fanout.check_api_key(x_api_key):
            raise HTTPException(status_code=401, detail="Invalid API key")
        try:
            return WipeResponse(wiped=adb.wipe())
        except StoreError as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.websocket("/auction-notify/ws")
    async def notify_socket(websocket: WebSocket):
        await websocket.accept()
        sub = fanout.connect()
        send_lock = asyncio.Lock()

        async def send(frame: Dict[str, Any]) -> None:
            async with send_lock:
                await websocket.send_json(frame)

        async def pump() -> None:
            while True:
                await send(await sub.get())

        sender = asyncio.create_task(pump())
        bt.logging.debug(f"Websocket subscriber {sub.id} connected")
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    call = SocketCall(**json.loads(raw))
                except (ValueError, TypeError, ValidationError):
                    await send({"id": None, "error": {"message": "Malformed request."}})
                    continue
                await send(_handle_call(fanout, sub, call))
        except WebSocketDisconnect:
            pass
        finally:
            fanout.disconnect(sub)
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
            bt.logging.debug(f"Websocket subscriber {sub.id} disconnected")

    return app
