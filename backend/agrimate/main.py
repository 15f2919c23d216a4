import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from agrimate.config import Settings, get_settings, settings
from agrimate.errors import ConversationNotFound
from agrimate.http import init_http, close_http
from agrimate.llm.providers import GROQ_NAME, NVIDIA_NAME
from agrimate.routers import chat, conversations, mandi, weather, yield_optimizer
from agrimate.routers.responses import error_response

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("agrimate")

# Single FastAPI instance
app = FastAPI(title="AgriMate", version="1.0.0")

# Single startup event
@app.on_event("startup")
async def startup_event():
    """Initialize HTTP client on startup."""
    await init_http(settings)

# Single shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Close HTTP client on shutdown."""
    await close_http()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ConversationNotFound)
async def conversation_not_found(request: Request, exc: ConversationNotFound):
    return error_response(404, str(exc))

@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return error_response(400, f"Invalid request: {where or 'body'} {first.get('msg', '')}".strip())

app.include_router(chat.router)
app.include_router(weather.router)
app.include_router(mandi.router)
app.include_router(yield_optimizer.router)
app.include_router(conversations.router)

# API endpoints
@app.get("/")
async def root():
    return {"ok": True, "service": "AgriMate", "version": app.version}

@app.get("/health")
async def health(cfg: Settings = Depends(get_settings)):
    return {
        "ok": True,
        "providers": [
            name for name, key in ((NVIDIA_NAME, cfg.NVIDIA_API_KEY), (GROQ_NAME, cfg.GROQ_API_KEY))
            if key
        ],
        "weather_configured": bool(cfg.WEATHER_API_KEY),
        "mandi_live": bool(cfg.DATA_GOV_API_KEY),
        "history_limit": cfg.HISTORY_LIMIT,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("agrimate.main:app", host="0.0.0.0", port=8000)
