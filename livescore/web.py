import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from starlette.websockets import WebSocketState

from livescore import __version__
from livescore.broadcast import BroadcastCoordinator
from livescore.config import Settings, get_settings
from livescore.state import Snapshot

logger = logging.getLogger(__name__)

STATE_EVENT = "state:update"


# === WebSocket Subscribers ===
class WebSocketSubscriber:
    """Queues snapshots for one socket; a sender task writes them out in order"""

    def __init__(self, websocket: WebSocket, max_pending: int = 256):
        self.websocket = websocket
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.closed = False
        self.task: Optional[asyncio.Task] = None
        self.closer: Optional[asyncio.Task] = None

    def deliver(self, snapshot: Snapshot):
        if self.closed:
            raise ConnectionError("websocket is closed")
        try:
            self.queue.put_nowait(snapshot)
        except asyncio.QueueFull:
            # a reader this far behind gets closed and has to reconnect
            self.abort()
            raise

    def abort(self):
        """Stop sending and close the socket with 1011"""
        if self.closer is not None:
            return
        self.closed = True
        if self.task is not None:
            self.task.cancel()
        self.closer = asyncio.get_running_loop().create_task(self.close(code=1011))

    async def run(self):
        try:
            while True:
                snapshot = await self.queue.get()
                await self.websocket.send_text(json.dumps({"type": STATE_EVENT, "data": snapshot.to_dict()}))
        except Exception as e:
            logger.info(f"Stopped sending to {self!r}: {e}")
        finally:
            self.closed = True

    async def close(self, code: int):
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"Could not close {self!r}: {e}")

    def __repr__(self):
        client = self.websocket.client
        return f"<WebSocketSubscriber {client.host}:{client.port}>" if client else "<WebSocketSubscriber>"


class ConnectionManager:
    def __init__(self, coordinator: BroadcastCoordinator, max_pending: int = 256):
        self.coordinator = coordinator
        self.max_pending = max_pending
        self.active_connections = []

    async def connect(self, websocket: WebSocket) -> Optional[WebSocketSubscriber]:
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket, self.max_pending)
        subscriber.task = asyncio.create_task(subscriber.run())
        # the join snapshot is queued before any later update
        if not self.coordinator.subscribe(subscriber):
            logger.warning(f"Could not sync {subscriber!r}, closing it")
            subscriber.abort()
            await subscriber.closer
            return None
        self.active_connections.append(subscriber)
        logger.info(f"Client connected ({len(self.active_connections)} open)")
        return subscriber

    def disconnect(self, subscriber: WebSocketSubscriber):
        self.coordinator.unsubscribe(subscriber)
        if subscriber in self.active_connections:
            self.active_connections.remove(subscriber)
            logger.info(f"Client disconnected ({len(self.active_connections)} open)")
        if subscriber.task is not None:
            subscriber.task.cancel()

    def close_all(self):
        for subscriber in list(self.active_connections):
            self.disconnect(subscriber)


def origin_allowed(origin: Optional[str], allowed) -> bool:
    # non-browser clients send no Origin header
    return origin is None or "*" in allowed or origin in allowed


def handle_message(coordinator: BroadcastCoordinator, msg) -> bool:
    """Route one decoded frame {"type": <command>, ...fields} to the coordinator"""
    if not isinstance(msg, dict):
        return False
    payload = {k: v for k, v in msg.items() if k != "type"}
    return coordinator.dispatch(msg.get("type"), payload)


# === Routes ===
router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def controller():
    return HTMLResponse(CONTROLLER_PAGE)


@router.get("/state")
async def current_state(request: Request):
    return request.app.state.coordinator.snapshot().to_dict()


@router.get("/health")
async def health(request: Request):
    coordinator = request.app.state.coordinator
    return {"status": "healthy", "subscribers": coordinator.subscriber_count}


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    settings = websocket.app.state.settings
    origin = websocket.headers.get("origin")
    if not origin_allowed(origin, settings.allowed_origins):
        logger.warning(f"Rejected websocket from origin {origin}")
        await websocket.close(code=1008)
        return

    manager: ConnectionManager = websocket.app.state.manager
    subscriber = await manager.connect(websocket)
    if subscriber is None:
        return
    try:
        # an aborted subscriber closes the socket from the sender side
        while websocket.application_state == WebSocketState.CONNECTED:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Ignored non-JSON frame from {subscriber!r}")
                continue
            handle_message(manager.coordinator, msg)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(subscriber)


# === FastAPI Application ===
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # one live event per process
        coordinator = BroadcastCoordinator(settings)
        app.state.coordinator = coordinator
        app.state.manager = ConnectionManager(coordinator)
        yield
        app.state.manager.close_all()
        coordinator.close()

    app = FastAPI(
        title="Livescore",
        description="Live score, fouls, game clock and shot clock for connected observers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


CONTROLLER_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Scoreboard Controller</title>
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        body { font-family: sans-serif; background: #111; color: #eee; text-align: center; padding: 20px; }
        button { font-size: 1.1rem; padding: 10px 16px; margin: 4px; cursor: pointer; border: none; border-radius: 5px; }
        .a { background: #00501e; color: white; }
        .b { background: #50001e; color: white; }
        .neutral { background: #444; color: white; }
        input { font-size: 1rem; padding: 5px; margin: 5px; width: 110px; text-align: center; }
        #board { font-size: 1.4rem; margin: 16px; white-space: pre; }
    </style>
</head>
<body>
    <h2>Scoreboard</h2>
    <div id="board">connecting...</div>

    <div>
        <input id="teamA" placeholder="Team A">
        <input id="teamB" placeholder="Team B">
        <input id="quarterTime" type="number" min="1" value="10">
        <button class="neutral" onclick="initMatch()">New match</button>
    </div>
    <div>
        <button class="a" onclick="send('score:add', {team: 'A', pts: 1})">A +1</button>
        <button class="a" onclick="send('score:add', {team: 'A', pts: 2})">A +2</button>
        <button class="a" onclick="send('score:sub', {team: 'A', pts: 1})">A -1</button>
        <button class="a" onclick="send('foul:add', {team: 'A'})">A foul</button>
        <button class="a" onclick="send('foul:sub', {team: 'A'})">A foul -1</button>
        <button class="a" onclick="send('possession:start', {team: 'A'})">A ball</button>
    </div>
    <div>
        <button class="b" onclick="send('score:add', {team: 'B', pts: 1})">B +1</button>
        <button class="b" onclick="send('score:add', {team: 'B', pts: 2})">B +2</button>
        <button class="b" onclick="send('score:sub', {team: 'B', pts: 1})">B -1</button>
        <button class="b" onclick="send('foul:add', {team: 'B'})">B foul</button>
        <button class="b" onclick="send('foul:sub', {team: 'B'})">B foul -1</button>
        <button class="b" onclick="send('possession:start', {team: 'B'})">B ball</button>
    </div>
    <div>
        <button class="neutral" onclick="send('clock:start')">Start</button>
        <button class="neutral" onclick="send('clock:stop')">Stop</button>
        <button class="neutral" onclick="send('quarter:next')">Next quarter</button>
        <button class="neutral" onclick="send('overtime:start')">Overtime</button>
        <button class="neutral" onclick="send('possession:stop')">Hold shot clock</button>
        <button class="neutral" onclick="send('possession:reset')">Clear shot clock</button>
    </div>

    <script>
        const proto = location.protocol === 'https:' ? 'wss' : 'ws';
        const ws = new WebSocket(`${proto}://${location.host}/ws`);

        function send(type, fields) { ws.send(JSON.stringify(Object.assign({type: type}, fields || {}))); }

        function initMatch() {
            send('match:init', {
                teamA: document.getElementById('teamA').value,
                teamB: document.getElementById('teamB').value,
                quarterTime: document.getElementById('quarterTime').value
            });
        }

        const pad = n => String(n).padStart(2, '0');

        ws.onmessage = ev => {
            const msg = JSON.parse(ev.data);
            if (msg.type !== 'state:update') return;
            const s = msg.data;
            const period = s.overtime ? 'OT' : `Q${s.quarter}`;
            const shot = s.possession.team ? `${s.possession.team} ${s.possession.time}` : '--';
            document.getElementById('board').textContent =
                `${s.teamA} ${s.scoreA} - ${s.scoreB} ${s.teamB}\\n` +
                `fouls ${s.foulA} / ${s.foulB}   ${period}   ${pad(s.clock.min)}:${pad(s.clock.sec)}   shot ${shot}`;
        };
    </script>
</body>
</html>
"""


app = create_app()
