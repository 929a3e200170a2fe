"""
FastAPI server relaying Twilio phone calls to the OpenAI Realtime API.

This module initializes and configures the FastAPI application. Twilio calls
the /incoming-call webhook when a call arrives; the TwiML returned there tells
Twilio to open a Media Stream to /media-stream, where each call is relayed to
the OpenAI Realtime API for the duration of the call.
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path

import dotenv
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response

# Load environment variables from .env file before the modules that read them
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

from media_relay.bot.twilio_realtime_bridge import bridge  # noqa: E402
from media_relay.config.logging_config import configure_logging  # noqa: E402
from media_relay.websocket_manager import WebSocketManager  # noqa: E402

# Configure logging
logger = configure_logging()

# Get configuration from environment variables
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")

TWIML_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<Response>"
    '<Connect><Stream url="wss://{host}/media-stream" /></Connect>'
    "</Response>"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Hang up any calls still in progress
    if bridge.active_connections:
        logger.info(f"Closing {bridge.active_connections} active relay sessions")
    await bridge.close_all()


# Create FastAPI application
app = FastAPI(
    title="Twilio Media Stream Server",
    description="Relay between Twilio Media Streams and the OpenAI Realtime API",
    version="1.0.0",
    lifespan=lifespan,
)

# Create WebSocket manager
websocket_manager = WebSocketManager(bridge)


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API.

    Returns:
        dict: Basic information about the API and its purpose.
    """
    return {
        "message": "Twilio Media Stream Server is running!",
        "name": "Twilio Media Stream Server",
        "version": "1.0.0",
        "endpoints": {
            "/incoming-call": "Twilio voice webhook returning TwiML",
            "/media-stream": "WebSocket endpoint for Twilio Media Streams",
            "/health": "Health check endpoint",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information including the number of calls being relayed.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(os.getenv("OPENAI_API_KEY")),
        "active_connections": bridge.active_connections,
    }


@app.api_route("/incoming-call", methods=["GET", "POST"])
async def incoming_call(request: Request):
    """Twilio voice webhook.

    Answers with TwiML connecting the call to this server's media stream.
    """
    host = request.headers.get("host", request.url.netloc)
    logger.info(f"Incoming call, streaming to wss://{host}/media-stream")
    return Response(content=TWIML_TEMPLATE.format(host=host), media_type="text/xml")


@app.get("/media-stream")
async def media_stream_without_upgrade():
    """Plain HTTP requests to the media stream endpoint are refused."""
    return PlainTextResponse("Expected Upgrade: websocket", status_code=426)


@app.websocket("/media-stream")
async def media_stream(websocket: WebSocket):
    """WebSocket endpoint for Twilio Media Streams.

    Each connection is one phone call. Audio is relayed to and from the OpenAI
    Realtime API until either side disconnects.
    """
    await websocket_manager.handle_websocket(websocket)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        ws_ping_interval=5,  # More frequent pings to keep connections alive
        ws_max_size=16777216,  # 16MB - large enough for audio chunks
        ws_ping_timeout=20,  # Timeout for pings to detect dead connections
        # Use HTTP/1.1 for lower overhead than HTTP/2
        http="h11",
    )
