import logging
import time
import json
from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_settings
from api.routes import router
from api.chat import router as chat_router
from api.websocket import manager

# ─── Logging ──────────────────────────────────────────────────────────────────
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Request logging middleware ───────────────────────────────────────────────
class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed = (time.monotonic() - start) * 1000
        if request.url.path not in ("/health", "/favicon.ico"):
            logger.info(json.dumps({
                "method": request.method,
                "path":   request.url.path,
                "status": response.status_code,
                "ms":     round(elapsed, 1),
                "client": request.client.host if request.client else "unknown",
            }))
        return response


# ─── Lifespan ─────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    from protocol.dispatcher import get_mcp_dispatcher

    dispatcher = get_mcp_dispatcher()
    logger.info(json.dumps({
        "event":      "startup",
        "app":        settings.APP_NAME,
        "version":    settings.APP_VERSION,
        "env":        settings.APP_ENV,
        "protocol":   settings.PROTOCOL_VERSION,
        "tools":      len(dispatcher.registry.list_tools()),
        "resources":  len(dispatcher.registry.list_resources()),
        "prompts":    len(dispatcher.registry.list_prompts()),
        "distinct_error_codes": dispatcher.distinct_error_codes,
        "simulation": settings.SIMULATION_MODE,
    }))

    yield

    await manager.close_all()
    logger.info(json.dumps({"event": "shutdown", "app": settings.APP_NAME}))


# ─── App ──────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="MCP Gateway API",
    description="Model Context Protocol server: JSON-RPC 2.0 over HTTP and WebSocket",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]
if settings.FRONTEND_URL:
    ALLOWED_ORIGINS.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)


# ─── Global error handler ─────────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error":   "internal_server_error",
            "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "path":    str(request.url.path),
        },
    )


app.include_router(router)
app.include_router(chat_router)


# ─── Root ─────────────────────────────────────────────────────────────────────
@app.get("/", tags=["system"])
async def root():
    return {
        "name":      settings.APP_NAME,
        "version":   settings.APP_VERSION,
        "status":    "running",
        "docs":      "/docs",
        "health":    "/health",
        "rpc":       "/rpc",
        "websocket": "/mcp/ws",
    }


# ─── Health check ─────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check():
    return {
        "status":         "healthy",
        "service":        settings.SERVER_NAME,
        "version":        settings.APP_VERSION,
        "timestamp":      int(time.time() * 1000),
        "ws_connections": manager.connection_count,
    }


# ─── WebSocket ────────────────────────────────────────────────────────────────
@app.websocket("/mcp/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.serve(websocket)
