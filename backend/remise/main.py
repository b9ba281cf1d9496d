import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.engine.url import make_url

from remise.account.router import router as account_router
from remise.admin.router import router as admin_router
from remise.auth.router import router as auth_router
from remise.cases.router import router as cases_router
from remise.categories.router import router as categories_router
from remise.core.config import settings
from remise.db.init_db import init_db
from remise.db.session import engine
from remise.evidence.router import router as evidence_router
from remise.items.router import router as items_router
from remise.notes.router import router as notes_router
from remise.system.rate_limit import api_rate_limit
from remise.system.router import router as system_router
from remise.system.security_headers import SecurityHeadersMiddleware
from remise.tenant.router import router as tenant_router
from remise.tenants.router import router as tenants_router

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="REMISE stolen property claims",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Bootstrap-Secret"],
)

app.add_middleware(SecurityHeadersMiddleware)


@app.on_event("startup")
def on_startup() -> None:
    db_url = make_url(settings.DATABASE_URL)
    logger.info(
        "Config sanity: env=%s db_host=%s cors_origins=%s session_max_age_h=%s email=%s",
        settings.ENV,
        db_url.host or "local",
        len(settings.CORS_ORIGINS),
        settings.SESSION_MAX_AGE_HOURS,
        "configured" if settings.EMAIL_API_KEY else "disabled",
    )
    init_db()


# --- Routers ---
limited = [Depends(api_rate_limit)]

app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(items_router, prefix="/api/v1/items", tags=["items"], dependencies=limited)
app.include_router(evidence_router, prefix="/api/v1/evidence", tags=["evidence"], dependencies=limited)
app.include_router(categories_router, prefix="/api/v1/categories", tags=["categories"], dependencies=limited)
app.include_router(notes_router, prefix="/api/v1/notes", tags=["notes"], dependencies=limited)
app.include_router(cases_router, prefix="/api/v1/cases", tags=["cases"], dependencies=limited)
app.include_router(account_router, prefix="/api/v1/user", tags=["account"], dependencies=limited)
app.include_router(tenant_router, prefix="/api/v1/tenant", tags=["tenant"], dependencies=limited)
app.include_router(tenants_router, prefix="/api/v1/admin/tenants", tags=["admin"], dependencies=limited)
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"], dependencies=limited)
app.include_router(system_router, prefix="/api/v1/system", tags=["system"])


# --- System ---
@app.get("/health", tags=["system"])
def health():
    return {"status": "ok"}


@app.get("/ready", tags=["system"])
def readiness():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Readiness check failed")
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ready"}
