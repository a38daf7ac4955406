from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from .config import settings
from .routers import options, quote_session
from .sessions import store

logger = logging.getLogger("machinist_quote")

app = FastAPI(
    title="Machinist Quote",
    description="Instant AI-powered manufacturing estimates for CAD files",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(options.router, prefix="/api")
app.include_router(quote_session.router, prefix="/api")

# Serve frontend static files
frontend_path = os.path.join(os.path.dirname(__file__), "..", "frontend")
if os.path.exists(frontend_path):
    css_path = os.path.join(frontend_path, "css")
    js_path = os.path.join(frontend_path, "js")

    if os.path.exists(css_path):
        app.mount("/css", StaticFiles(directory=css_path), name="css")
    if os.path.exists(js_path):
        app.mount("/js", StaticFiles(directory=js_path), name="js")

    @app.get("/")
    def serve_frontend():
        return FileResponse(os.path.join(frontend_path, "index.html"))

@app.get("/health")
def health():
    return {"status": "ok", "app": settings.APP_NAME}


@app.on_event("startup")
def check_provider():
    """Warn early when quotes cannot be generated."""
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set: every quote request will fail")


@app.on_event("shutdown")
def close_sessions():
    """Cancel debounce timers and outstanding quote requests."""
    logger.info("Closing %d quote session(s)", len(store))
    store.close_all()
