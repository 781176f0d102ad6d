"""
WebSocket transport for MCP.

Each connection is an MCPSession: a connection-scoped unit that owns an
inbound queue, an outbound queue and a closed signal, and runs three tasks:

  receive: reads text and binary frames into the inbound queue
  process: decodes and dispatches frames strictly in arrival order
  send:    writes encoded responses from the outbound queue

When the peer disconnects or the socket errors, the session cancels its own
tasks; other sessions are unaffected.
"""
from fastapi import WebSocket, WebSocketDisconnect
from typing import Dict, Optional
import asyncio
import logging
import uuid

from config import get_settings
from protocol.codec import decode_request, encode_response, parse_error_response
from protocol.dispatcher import MCPDispatcher, get_mcp_dispatcher
from protocol.errors import ParseError

logger = logging.getLogger(__name__)


class MCPSession:

    def __init__(self, websocket: WebSocket, dispatcher: MCPDispatcher, queue_size: Optional[int] = None):
        size = queue_size or get_settings().WS_QUEUE_SIZE
        self.session_id = str(uuid.uuid4())[:8]
        self.websocket = websocket
        self._dispatcher = dispatcher
        self._inbound: asyncio.Queue = asyncio.Queue(maxsize=size)
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=size)
        self.closed = asyncio.Event()
        self.frames_handled = 0

    async def run(self) -> None:
        tasks = [
            asyncio.create_task(self._receive_loop(), name=f"ws-{self.session_id}-receive"),
            asyncio.create_task(self._process_loop(), name=f"ws-{self.session_id}-process"),
            asyncio.create_task(self._send_loop(), name=f"ws-{self.session_id}-send"),
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.closed.set()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"WebSocket session {self.session_id} torn down after {self.frames_handled} frames")

    async def close(self) -> None:
        """Server-initiated close (shutdown)."""
        if self.closed.is_set():
            return
        try:
            await self.websocket.close()
        except RuntimeError as e:
            logger.debug(f"WebSocket session {self.session_id} already closed: {e}")

    # ── Loops ──────────────────────────────────────────────────────────────────

    async def _receive_loop(self) -> None:
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                # Binary frames go through the same decoder as text frames.
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes") or b""
                await self._inbound.put(frame)
        except WebSocketDisconnect as e:
            logger.info(f"WebSocket session {self.session_id} closed by peer (code={e.code})")
        except Exception as e:
            logger.error(f"WebSocket session {self.session_id} transport error: {e}")

    async def _process_loop(self) -> None:
        while True:
            frame = await self._inbound.get()
            try:
                request = decode_request(frame)
            except ParseError as e:
                logger.warning(f"WebSocket session {self.session_id} parse error: {e.message}")
                response = parse_error_response(e)
            else:
                response = await self._dispatcher.handle(request)
            await self._outbound.put(encode_response(response))
            self.frames_handled += 1

    async def _send_loop(self) -> None:
        try:
            while True:
                payload = await self._outbound.get()
                await self.websocket.send_text(payload)
        except Exception as e:
            logger.error(f"WebSocket session {self.session_id} send failed: {e}")


class ConnectionManager:
    def __init__(self):
        self.active_sessions: Dict[str, MCPSession] = {}

    async def serve(self, websocket: WebSocket, dispatcher: Optional[MCPDispatcher] = None):
        await websocket.accept()
        session = MCPSession(websocket, dispatcher or get_mcp_dispatcher())
        self.active_sessions[session.session_id] = session
        logger.info(
            f"WebSocket session {session.session_id} connected. "
            f"Total connections: {self.connection_count}"
        )
        try:
            await session.run()
        finally:
            self.active_sessions.pop(session.session_id, None)
            logger.info(f"WebSocket disconnected. Total connections: {self.connection_count}")

    async def close_all(self):
        for session in list(self.active_sessions.values()):
            await session.close()

    @property
    def connection_count(self) -> int:
        return len(self.active_sessions)


# Global manager instance
manager = ConnectionManager()
