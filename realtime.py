"""
Per-district websocket channels for the admin dashboard. Every admin socket
joins the channel of its own district and receives updated merged reports.
"""
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class DistrictChannels:
    def __init__(self):
        self.channels: dict[int, set[WebSocket]] = defaultdict(set)

    async def connect(self, district_id: int, ws: WebSocket):
        await ws.accept()
        self.channels[district_id].add(ws)

    def disconnect(self, district_id: int, ws: WebSocket):
        self.channels[district_id].discard(ws)

    async def broadcast(self, district_id: int, payload: dict):
        dead: set[WebSocket] = set()
        # snapshot: sockets may join or leave while a send is suspended
        for ws in list(self.channels[district_id]):
            try:
                await ws.send_json(payload)
            except Exception as e:
                logger.debug("Dropping admin socket in district %d: %s", district_id, e)
                dead.add(ws)
        self.channels[district_id] -= dead


channels = DistrictChannels()
