"""
SSE (Server-Sent Events) room hub: presence tracking and broadcasts per exam room.
"""
import asyncio
import itertools
import logging
from typing import Dict, List, Optional

from ujian_gto.config import settings
from ujian_gto.errors import LiveChannelError

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class Subscription:
    """One connected client in one room."""

    def __init__(self, room: str):
        self.id = next(_ids)
        self.room = room
        self.queue: asyncio.Queue = asyncio.Queue()
        self.presence_key: Optional[str] = None

    def __repr__(self):
        return f"<Subscription {self.id} room={self.room} key={self.presence_key}>"


class SSEConnectionManager:
    """
    Manages room subscriptions for real-time exam monitoring.

    Every subscriber of a room receives messages shaped like the hosted
    realtime service the exam client was written against:
      {"type": "presence", "event": "sync"|"join"|"leave", ...}
      {"type": "broadcast", "event": "<name>", "payload": {...}}
    """

    def __init__(self, enabled: bool = True, max_room_subscribers: int = 500):
        self.enabled = enabled
        self.max_room_subscribers = max_room_subscribers
        # room -> subscriptions
        self.active_connections: Dict[str, List[Subscription]] = {}
        # room -> presence key -> list of (subscription id, payload)
        self.presences: Dict[str, Dict[str, List[tuple]]] = {}

    def subscribe(self, room: str) -> Subscription:
        """Create a new subscription for a room."""
        if not self.enabled:
            raise LiveChannelError("Live channel is disabled")
        subscribers = self.active_connections.setdefault(room, [])
        if len(subscribers) >= self.max_room_subscribers:
            raise LiveChannelError(f"Room {room} is full")
        sub = Subscription(room)
        subscribers.append(sub)
        # New subscribers start from the current snapshot
        sub.queue.put_nowait(self._sync_message(room))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Remove a subscription, untracking its presence first."""
        self.untrack(sub)
        subscribers = self.active_connections.get(sub.room)
        if subscribers is None:
            return
        if sub in subscribers:
            subscribers.remove(sub)
        if not subscribers:
            del self.active_connections[sub.room]
            self.presences.pop(sub.room, None)

    def track(self, sub: Subscription, key: str, payload: dict) -> None:
        """Publish presence for a subscription under `key`."""
        room_presence = self.presences.setdefault(sub.room, {})
        if sub.presence_key is not None and sub.presence_key != key:
            self.untrack(sub)
        metas = room_presence.setdefault(key, [])
        metas[:] = [m for m in metas if m[0] != sub.id]
        metas.append((sub.id, dict(payload)))
        sub.presence_key = key
        self._fanout(sub.room, {"type": "presence", "event": "join", "key": key, "newPresences": [dict(payload)]})
        self._fanout(sub.room, self._sync_message(sub.room))

    def untrack(self, sub: Subscription) -> None:
        key = sub.presence_key
        if key is None:
            return
        sub.presence_key = None
        room_presence = self.presences.get(sub.room, {})
        metas = room_presence.get(key, [])
        left = [m[1] for m in metas if m[0] == sub.id]
        metas[:] = [m for m in metas if m[0] != sub.id]
        if not metas:
            room_presence.pop(key, None)
        self._fanout(sub.room, {"type": "presence", "event": "leave", "key": key, "leftPresences": left})
        self._fanout(sub.room, self._sync_message(sub.room))

    def presence_state(self, room: str) -> Dict[str, List[dict]]:
        """Snapshot of tracked presences: key -> list of payloads."""
        return {
            key: [dict(meta) for _, meta in metas]
            for key, metas in self.presences.get(room, {}).items()
        }

    async def broadcast(self, room: str, event: str, payload: dict) -> int:
        """Broadcast a typed event to all subscribers of a room; returns the number reached."""
        if not self.enabled:
            raise LiveChannelError("Live channel is disabled")
        return self._fanout(room, {"type": "broadcast", "event": event, "payload": payload})

    def _sync_message(self, room: str) -> dict:
        return {"type": "presence", "event": "sync", "state": self.presence_state(room)}

    def _fanout(self, room: str, message: dict) -> int:
        subscribers = self.active_connections.get(room, [])
        for sub in subscribers:
            sub.queue.put_nowait(message)
        return len(subscribers)


# Global manager instance
sse_manager = SSEConnectionManager(
    enabled=settings.live_channel_enabled,
    max_room_subscribers=settings.live_max_room_subscribers,
)
