"""WebSocket endpoint and ConnectionManager. Route: /ws."""
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from attention.progression import LevelUpEvent

logger = logging.getLogger(__name__)
router = APIRouter(tags=["ws"])


class ConnectionManager:
	"""Fans out session snapshots, level-up events and log lines to UI clients."""

	def __init__(self) -> None:
		self._clients: Set[WebSocket] = set()
		self._lock = asyncio.Lock()
		# Fire-and-forget sends, held until done
		self._pending: Set[asyncio.Task] = set()

	@property
	def client_count(self) -> int:
		return len(self._clients)

	async def connect(self, websocket: WebSocket) -> None:
		await websocket.accept()
		async with self._lock:
			self._clients.add(websocket)

	async def disconnect(self, websocket: WebSocket) -> None:
		async with self._lock:
			self._clients.discard(websocket)

	async def broadcast_json(self, message: Dict[str, Any]) -> None:
		payload = json.dumps(message, separators=(",", ":"))
		async with self._lock:
			if not self._clients:
				return
			await asyncio.gather(*(self._send(ws, payload) for ws in list(self._clients)), return_exceptions=True)

	async def broadcast_state(self, snapshot: Dict[str, Any]) -> None:
		await self.broadcast_json({"type": "state", **snapshot})

	def notify_level_up(self, event: LevelUpEvent) -> None:
		"""Level-up listener; called synchronously from the tracker."""
		self._fire({"type": "level_up", **asdict(event)})

	def log_to_clients(self, message: str) -> None:
		"""
		Send a log line to all connected WebSocket clients.
		Fire-and-forget; safe to call from non-async code.
		"""
		self._fire({"type": "log", "msg": message})

	def _fire(self, message: Dict[str, Any]) -> None:
		try:
			task = asyncio.get_running_loop().create_task(self.broadcast_json(message))
		except RuntimeError:
			# No running loop (e.g. replay tooling); nothing to deliver to.
			logger.debug("[WS] dropped %s message outside event loop", message.get("type"))
			return
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)

	async def _send(self, ws: WebSocket, payload: str) -> None:
		try:
			await ws.send_text(payload)
		except Exception as e:
			logger.debug("[WS] send failed, dropping client: %r", e)
			self._clients.discard(ws)
			try:
				await ws.close()
			except Exception as close_err:
				logger.debug("[WS] close after failed send: %r", close_err)


manager = ConnectionManager()


@router.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
	await manager.connect(websocket)
	try:
		# Late joiners get the current state straight away.
		state = websocket.app.state.state
		if state.session is not None:
			await websocket.send_text(json.dumps({"type": "state", **state.session.snapshot()}, separators=(",", ":")))
		while True:
			await websocket.receive_text()
	except WebSocketDisconnect:
		pass
	finally:
		await manager.disconnect(websocket)
