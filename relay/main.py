"""FastAPI application for the WebRTC stream signaling relay."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response

from .core.config import Settings, settings as default_settings
from .core.logging import configure_logging
from .routers import signaling as signaling_router
from .routers import status as status_router
from .services.signaling import SignalingService

logger = logging.getLogger(__name__)

HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
<head>
    <meta charset=\"UTF-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\" />
    <title>Stream Viewer</title>
    <script src=\"https://cdn.tailwindcss.com\"></script>
</head>
<body class=\"min-h-screen bg-slate-950 text-slate-100\">
    <main class=\"mx-auto max-w-4xl px-6 py-8\">
        <section class=\"rounded-2xl border border-slate-800 bg-slate-900/60 p-6\">
            <div class=\"flex flex-wrap items-start justify-between gap-4\">
                <div>
                    <h2 class=\"text-xl font-semibold\">Stream</h2>
                    <p id=\"status\" class=\"text-sm text-slate-400\">Connecting to server...</p>
                </div>
                <div class=\"flex gap-2\">
                    <button id=\"connectBtn\" class=\"rounded-full bg-emerald-500 px-4 py-2 text-sm font-semibold text-black disabled:opacity-40\">Connect</button>
                    <button id=\"disconnectBtn\" class=\"rounded-full border border-slate-600 px-4 py-2 text-sm disabled:opacity-40\" disabled>Disconnect</button>
                </div>
            </div>
            <video id=\"remoteVideo\" class=\"mt-6 w-full rounded-xl bg-black\" autoplay playsinline muted></video>
        </section>
        <section class=\"mt-6 rounded-2xl border border-slate-800 bg-slate-900/60 p-6\">
            <h2 class=\"text-lg font-semibold\">Log</h2>
            <div id=\"logs\" class=\"mt-2 max-h-48 overflow-y-auto font-mono text-xs text-slate-400\"></div>
        </section>
    </main>

    <script>
        const statusEl = document.getElementById('status');
        const logsEl = document.getElementById('logs');
        const remoteVideo = document.getElementById('remoteVideo');
        const connectBtn = document.getElementById('connectBtn');
        const disconnectBtn = document.getElementById('disconnectBtn');
        const rtcConfig = { iceServers: ICE_SERVERS };
        const scheme = window.location.protocol === 'https:' ? 'wss' : 'ws';
        const socket = new WebSocket(`${scheme}://${window.location.host}/signaling`);
        let peerConnection = null;

        function log(message) {
            const entry = document.createElement('div');
            entry.textContent = `[${new Date().toLocaleTimeString()}] ${message}`;
            logsEl.appendChild(entry);
            logsEl.scrollTop = logsEl.scrollHeight;
        }

        function setStatus(message, active) {
            statusEl.textContent = message;
            connectBtn.disabled = active;
            disconnectBtn.disabled = !active;
        }

        function emit(event, data) {
            socket.send(JSON.stringify({ event, data: data || {} }));
        }

        socket.addEventListener('open', () => {
            log('Connected to signaling server');
            emit('register', { type: 'browser' });
            setStatus('Connected to server', false);
        });

        socket.addEventListener('close', () => {
            log('Disconnected from signaling server');
            setStatus('Disconnected from server', false);
        });

        socket.addEventListener('message', async (frame) => {
            const { event, data } = JSON.parse(frame.data);
            if (event === 'touchdesigner-online') {
                log('TouchDesigner is online');
                setStatus('TouchDesigner online - Ready to connect', !!peerConnection);
            } else if (event === 'touchdesigner-offline') {
                log('TouchDesigner went offline');
                disconnect();
                setStatus('TouchDesigner offline', false);
            } else if (event === 'offer') {
                await handleOffer(data.offer);
            } else if (event === 'ice-candidate' && peerConnection && data.candidate) {
                try {
                    await peerConnection.addIceCandidate(data.candidate);
                    log('Added ICE candidate');
                } catch (error) {
                    log('Error adding ICE candidate: ' + error.message);
                }
            }
        });

        function connect() {
            disconnect();
            peerConnection = new RTCPeerConnection(rtcConfig);
            peerConnection.onicecandidate = (event) => {
                if (event.candidate) {
                    emit('ice-candidate', { candidate: event.candidate.toJSON() });
                }
            };
            peerConnection.ontrack = (event) => {
                remoteVideo.srcObject = event.streams[0];
                setStatus('Stream connected!', true);
            };
            peerConnection.onconnectionstatechange = () => {
                const state = peerConnection.connectionState;
                log(`Connection state: ${state}`);
                if (state === 'connected') {
                    setStatus('Stream active', true);
                } else if (state === 'disconnected' || state === 'failed') {
                    setStatus('Stream disconnected', true);
                }
            };
            emit('request-stream');
            setStatus('Connecting to stream...', true);
        }

        async function handleOffer(offer) {
            if (!peerConnection || peerConnection.remoteDescription) {
                log('Ignoring offer');
                return;
            }
            try {
                await peerConnection.setRemoteDescription(offer);
                const answer = await peerConnection.createAnswer();
                await peerConnection.setLocalDescription(answer);
                emit('answer', { answer: { type: answer.type, sdp: answer.sdp } });
                log('Sent answer to TouchDesigner');
            } catch (error) {
                log('Error handling offer: ' + error.message);
            }
        }

        function disconnect() {
            if (!peerConnection) {
                return;
            }
            peerConnection.close();
            peerConnection = null;
            remoteVideo.srcObject = null;
            setStatus('Disconnected', false);
            log('Disconnected from stream');
        }

        connectBtn.addEventListener('click', connect);
        disconnectBtn.addEventListener('click', disconnect);
    </script>
</body>
</html>
"""


def render_index(ice_servers: list[str]) -> str:
    servers = ", ".join(f"{{ urls: '{url}' }}" for url in ice_servers)
    return HTML_PAGE.replace("ICE_SERVERS", f"[{servers}]")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the relay application with its own signaling service."""

    settings = settings or default_settings
    service = SignalingService()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Signaling relay starting (%s)", settings.app_env)
        try:
            yield
        finally:
            await service.close()
            logger.info("Signaling relay stopped")

    app = FastAPI(title="WebRTC Signaling Relay", version="0.1.0", lifespan=lifespan)
    app.state.signaling = service
    app.state.settings = settings

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    index_page = render_index(settings.ice_servers)

    @app.get("/", response_class=HTMLResponse, tags=["meta"])
    async def index() -> HTMLResponse:
        """Serve the single-page stream viewer."""

        return HTMLResponse(content=index_page)

    @app.head("/", tags=["meta"])
    async def index_head() -> Response:
        """Fast health checks issue HEAD /; answer with 200 to avoid noisy 405s."""

        return Response(status_code=200)

    @app.get("/api/health", tags=["meta"])
    async def health() -> dict[str, str]:
        """Simple liveness probe."""

        return {"status": "ok"}

    app.include_router(status_router.router, tags=["status"])
    app.include_router(signaling_router.router, tags=["signaling"])
    return app


app = create_app()


def run() -> None:
    """Serve the relay with uvicorn."""

    import uvicorn

    configure_logging(default_settings.log_level)
    uvicorn.run(app, host=default_settings.host, port=default_settings.port, log_config=None)


if __name__ == "__main__":
    run()
