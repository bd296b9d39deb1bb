"""WebSocket server for watching and steering a simulation in the browser."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable

import websockets
from websockets.datastructures import Headers
from websockets.http11 import Response

if TYPE_CHECKING:
    from .engine import Engine

logger = logging.getLogger(__name__)

LIVE_HTML = Path(__file__).parent.parent / "viz" / "live.html"


class StopRequested(Exception):
    """A client asked the runner to shut down."""


def build_tick_message(engine: Engine) -> dict:
    """Full frame for the viewer: engine state, dense cell kinds (base64) and size."""
    grid = engine.grid
    state = engine.state
    return {
        "type": "tick",
        **state.to_dict(),
        "point": state.history[-1] if state.history else None,
        "game_speed": engine.config["simulation"]["game_speed"],
        "width": grid.width,
        "height": grid.height,
        "cells": base64.b64encode(grid.type_grid).decode("ascii"),
    }


class LiveServer:
    """Serves live.html, broadcasts frames, and queues viewer commands."""

    def __init__(self, host: str = "localhost", port: int = 8765):
        self.host = host
        self.port = port
        self.clients: set = set()
        self._command_queue: asyncio.Queue = asyncio.Queue()
        self._server = None
        self.step_requested = False

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._server = await websockets.serve(
            self._handler,
            self.host,
            self.port,
            process_request=self._serve_http,
        )
        logger.info("Live server running at http://%s:%d", self.host, self.port)

    def _serve_http(self, connection, request):
        """Serve live.html for plain HTTP GETs; let upgrades through."""
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None

        if request.path in ("/", "/index.html", "/live.html"):
            if LIVE_HTML.exists():
                body = LIVE_HTML.read_bytes()
                headers = Headers([
                    ("Content-Type", "text/html; charset=utf-8"),
                    ("Content-Length", str(len(body))),
                ])
                return Response(200, "OK", headers, body)
            headers = Headers([("Content-Type", "text/plain")])
            return Response(404, "Not Found", headers, b"live.html not found")

        headers = Headers([("Content-Type", "text/plain")])
        return Response(404, "Not Found", headers, b"Not Found")

    async def _handler(self, ws) -> None:
        """Handle a single WebSocket client connection."""
        self.clients.add(ws)
        logger.info("Client connected (%d total)", len(self.clients))
        try:
            async for message in ws:
                try:
                    cmd = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning("Invalid JSON from client: %s", message[:100])
                    continue
                await self._command_queue.put(cmd)
        except websockets.ConnectionClosed:
            pass
        finally:
            self.clients.discard(ws)
            logger.info("Client disconnected (%d remaining)", len(self.clients))

    async def broadcast(self, data: dict) -> None:
        """Send data to all connected clients."""
        if not self.clients:
            return
        msg = json.dumps(data)
        # Send to all, ignore individual failures
        await asyncio.gather(
            *[client.send(msg) for client in self.clients],
            return_exceptions=True,
        )

    async def drain_commands(self) -> list[dict]:
        """Get all pending commands."""
        commands = []
        while True:
            try:
                commands.append(self._command_queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return commands

    async def process_commands(
        self,
        engine: Engine,
        resolve_config: Callable[[dict], dict | None] | None = None,
    ) -> bool:
        """Apply pending viewer commands to ``engine``. Call once per frame.

        Returns True when the viewer needs a fresh frame even if no tick runs
        (after a reset, pause or speed change). Raises ``StopRequested`` on
        ``stop``.
        """
        changed = False
        for cmd in await self.drain_commands():
            action = cmd.get("action")
            if action == "start":
                engine.start()
            elif action == "pause":
                engine.pause()
            elif action == "toggle":
                engine.toggle_pause()
            elif action == "step":
                self.step_requested = True
            elif action == "speed":
                speed = cmd.get("game_speed")
                if isinstance(speed, (int, float)) and speed > 0:
                    engine.set_game_speed(speed)
                else:
                    logger.warning("Ignoring bad speed command: %s", cmd)
            elif action == "reset":
                config = resolve_config(cmd) if resolve_config else None
                engine.reset(config)
            elif action == "stop":
                raise StopRequested()
            else:
                logger.warning("Unknown command from client: %s", cmd)
                continue
            changed = True
        return changed

    async def stop(self) -> None:
        """Shut down the server."""
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            logger.info("Live server stopped")
