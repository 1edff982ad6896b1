"""FastAPI registration API - events, team registrations and admin tools."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from quizreg.errors import RegistrationError
from quizreg.models.base import engine, init_db

from web.api.admin_routes import router as admin_router
from web.api.auth_routes import router as auth_router
from web.api.events_routes import router as events_router
from web.api.registration_routes import router as registration_router

logger = logging.getLogger("quizreg.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(title="Quiz Team Registration API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS or ["*"],
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(RegistrationError)
async def registration_error_handler(request: Request, exc: RegistrationError):
    """Business-rule rejections: status code plus a stable `code` clients can branch on."""
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(events_router)
app.include_router(registration_router)
app.include_router(admin_router)
app.include_router(auth_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
