'''
In-memory stand-ins shared by the realtime tests.
'''
from fastapi import WebSocketDisconnect


class FakeWebSocket:
    """
    Records what the server sends; optionally fails like a dead socket.
    `frames` are handed out by receive_json in order, then the client hangs up.
    """
    def __init__(self, broken: bool = False, frames: list | None = None):
        self.accepted = False
        self.sent: list[dict] = []
        self.broken = broken
        self.frames = list(frames or [])
        self.closed_with: tuple[int, str] | None = None

    async def accept(self):
        self.accepted = True

    async def send_json(self, payload):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(payload)

    async def receive_json(self):
        if not self.frames:
            raise WebSocketDisconnect(code=1000)
        frame = self.frames.pop(0)
        if isinstance(frame, Exception):
            raise frame
        return frame

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_with = (code, reason)

    def events(self) -> list[str]:
        return [payload["event"] for payload in self.sent]
