"""In-process publish/subscribe for auction events.

Subscribers authenticate with the shared API key, then join named channels.
``publish`` offers each event to the members of its channel at that instant;
nobody else ever sees it. Delivery is at-most-once: every subscriber owns a
bounded queue, and a full queue drops the message instead of stalling the
publisher. Offers made from another thread (the block worker) are handed to the
subscriber's event loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import itertools
from threading import Lock
from typing import Any, Dict, List, Optional, Set

import bittensor as bt

from auction_notify.crypto import MAX_API_KEY_SIZE, generate_api_key, hash_api_key, verify_api_key
from auction_notify.notify.events import AuctionEvent

DEFAULT_CHANNEL = "auction-notify"
AUTH_CHANNEL = "auth"


class AuthError(Exception):
    """Bad credential or unauthenticated channel operation."""


class Subscriber:
    def __init__(self, subscriber_id: int, *, loop: Optional[asyncio.AbstractEventLoop], max_pending: int):
        self.id = subscriber_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.channels: Set[str] = set()
        self.dropped = 0
        self._loop = loop

    @property
    def authed(self) -> bool:
        return AUTH_CHANNEL in self.channels

    def offer(self, message: Dict[str, Any]) -> None:
        if self._loop is None:
            self._put(message)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._put(message)
            return

        try:
            self._loop.call_soon_threadsafe(self._put, message)
        except RuntimeError:
            # Loop already closed; the subscriber is gone.
            self.dropped += 1

    def _put(self, message: Dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            bt.logging.warning(f"Subscriber {self.id} is not keeping up; dropped {message.get('event')!r} event")

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()


class EventFanout:
    def __init__(self, api_key: Optional[str] = None, *, no_auth: bool = False, max_pending: int = 1000):
        if api_key is not None and len(api_key) > MAX_API_KEY_SIZE:
            raise ValueError("API key must be under 256 bytes.")
        self.no_auth = no_auth
        self.max_pending = max(1, int(max_pending))
        self._api_hash = hash_api_key(api_key or generate_api_key())
        self._subscribers: Dict[int, Subscriber] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def connect(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscriber:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        with self._lock:
            sub = Subscriber(next(self._ids), loop=loop, max_pending=self.max_pending)
            self._subscribers[sub.id] = sub
        return sub

    def disconnect(self, sub: Subscriber) -> None:
        with self._lock:
            self._subscribers.pop(sub.id, None)
            sub.channels.clear()

    def check_api_key(self, key: Optional[str]) -> bool:
        if self.no_auth:
            return True
        if key is None:
            return False
        return verify_api_key(key, self._api_hash)

    def auth(self, sub: Subscriber, key: Optional[str]) -> None:
        if sub.authed:
            raise AuthError("Already authed.")
        if not self.check_api_key(key or ""):
            bt.logging.warning(f"Rejected auth from subscriber {sub.id}")
            raise AuthError("Invalid API key.")
        with self._lock:
            sub.channels.add(AUTH_CHANNEL)
        bt.logging.info(f"Successful auth from subscriber {sub.id}.")

    def join(self, sub: Subscriber, channel: str = DEFAULT_CHANNEL) -> None:
        if not sub.authed:
            raise AuthError("Not authenticated.")
        with self._lock:
            sub.channels.add(channel)

    def leave(self, sub: Subscriber, channel: str = DEFAULT_CHANNEL) -> None:
        with self._lock:
            sub.channels.discard(channel)

    def channel(self, name: str) -> List[Subscriber]:
        with self._lock:
            return [s for s in self._subscribers.values() if name in s.channels]

    def publish(self, event: AuctionEvent, channel: str = DEFAULT_CHANNEL) -> int:
        """Offer ``event`` to the channel's current members; returns how many."""
        members = self.channel(channel)
        if not members:
            return 0
        message = event.to_message()
        for sub in members:
            sub.offer(message)
        return len(members)
