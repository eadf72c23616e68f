# api/ged/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.openapi.utils import get_openapi

from .database import Base, engine, SessionLocal
from .config import settings
from .exceptions import RegistreError
from .extraction import get_extractor
from .logging_setup import setup_logging
from .models_refs import Service
from .routers_documents import router as documents_router
from .routers_journal import router as journal_router
from .routers_refs import router as refs_router
from .routers_session import router as session_router
from .seed import seed_reference_data

from swagger_ui_bundle import swagger_ui_3_path

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="GED Sandiara API",
    version="1.0.0",
    openapi_url="/openapi.json",
    docs_url=None,
    redoc_url=None,
)

# --- CORS ---
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# --- Sécurité : CSP stricte par défaut ---
@app.middleware("http")
async def security_headers(request: Request, call_next):
    resp = await call_next(request)

    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault("Referrer-Policy", "no-referrer")

    csp_strict = (
        "default-src 'self'; "
        "img-src 'self' data: https://images.unsplash.com; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; "
        "frame-ancestors 'self'"
    )

    csp_docs = (
        "default-src 'self'; "
        "img-src 'self' data:; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; "
        "connect-src 'self'; "
        "frame-ancestors 'self'"
    )

    if request.url.path == "/docs":
        resp.headers["Content-Security-Policy"] = csp_docs
    else:
        resp.headers.setdefault("Content-Security-Policy", csp_strict)

    return resp


# --- Erreurs métier non traduites par un router ---
@app.exception_handler(RegistreError)
async def registre_error_handler(request: Request, exc: RegistreError):
    logger.warning("Erreur métier %s sur %s : %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"detail": exc.message, "code": exc.code})


# --- Startup ---
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_reference_data(db, with_documents=settings.SEED_DEMO_DATA)
        known_services = [row.name for row in db.query(Service).all()]
    logger.info("Référentiels OK (%d services)", len(known_services))

    app.state.extractor = get_extractor(known_services)


@app.on_event("shutdown")
def on_shutdown():
    # fin de session : la base en mémoire disparaît avec l'engine
    engine.dispose()


# --- Routes ---
app.include_router(session_router, prefix="")
app.include_router(documents_router, prefix="")
app.include_router(journal_router, prefix="")
app.include_router(refs_router, prefix="")

def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(title=app.title, version=app.version, routes=app.routes)
    schema["openapi"] = "3.0.3"
    app.openapi_schema = schema
    return app.openapi_schema
app.openapi = custom_openapi

# --- Swagger UI local ---
app.mount("/static", StaticFiles(directory=swagger_ui_3_path), name="static")

@app.get("/docs", include_in_schema=False)
def custom_swagger_ui():
    return get_swagger_ui_html(
        openapi_url=app.openapi_url,
        title="GED Sandiara API - Docs",
        swagger_js_url="/static/swagger-ui-bundle.js",
        swagger_css_url="/static/swagger-ui.css",
    )
