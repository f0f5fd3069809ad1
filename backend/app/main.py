# app/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.mailer import Transport, select_transport
from app.core.rate_limit import FixedWindowRateLimiter, api_rate_limit
from app.core.security import build_csp, install_security_headers, security_headers
from app.core.settings import Settings, settings
from app.lib.contact import ContactIntake
from app.routers.contact import router as contact_router
from app.routers.health import router as health_router
from app.routers.portfolio import router as portfolio_router
from app.routers.site import api_fallback_router
from app.routers.site import router as site_router

log = logging.getLogger("uvicorn.error")


def create_app(app_settings: Settings = settings, transport: Optional[Transport] = None) -> FastAPI:
    log.setLevel(app_settings.log_level.upper())
    transport = transport or select_transport(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"[main] email transport = {transport.name}")
        log.info(f"[main] static_root = {app_settings.static_root}")
        yield
        await transport.close()

    app = FastAPI(title=app_settings.api_title, lifespan=lifespan)
    app.state.settings = app_settings
    app.state.transport = transport
    app.state.intake = ContactIntake(app_settings, transport)
    app.state.api_limiter = FixedWindowRateLimiter(
        "api",
        app_settings.api_rate_limit,
        app_settings.api_rate_window_seconds,
        "Too many requests from this IP, please try again later.",
        redis_url=app_settings.redis_url,
    )
    app.state.contact_limiter = FixedWindowRateLimiter(
        "contact",
        app_settings.contact_rate_limit,
        app_settings.contact_rate_window_seconds,
        "Too many contact form submissions, please try again later.",
        redis_url=app_settings.redis_url,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )
    install_security_headers(app, app_settings)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # Runs outside the middleware stack, so the usual headers are added here
    error_headers = security_headers(app_settings)

    @app.exception_handler(Exception)
    async def _server_error(request: Request, exc: Exception):
        log.exception(f"[main] Server error on {request.method} {request.url.path}")
        headers = dict(error_headers)
        origin = request.headers.get("origin")
        if origin and origin in app_settings.allowed_origins:
            headers.update({
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Credentials": "true",
                "Vary": "Origin",
            })
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Something went wrong!"},
            headers=headers,
        )

    # API routers share the broad rate limit; contact adds its own stricter one
    api_limit = [Depends(api_rate_limit)]
    app.include_router(health_router, dependencies=api_limit)
    app.include_router(portfolio_router, dependencies=api_limit)
    app.include_router(contact_router, dependencies=api_limit)
    app.include_router(api_fallback_router, dependencies=api_limit)

    @app.get("/_debug/csp", include_in_schema=False)
    async def _debug_csp():
        return {"csp": build_csp(app_settings)}

    @app.get("/_debug/index", include_in_schema=False)
    async def _debug_index():
        index = app_settings.static_root / "index.html"
        if not index.is_file():
            raise HTTPException(status_code=404, detail="Front-end build not found")
        return FileResponse(index)

    # Must stay last: catches every remaining GET for client-side routing
    app.include_router(site_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
