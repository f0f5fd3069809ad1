# app/core/security.py
from typing import Dict, List

from fastapi import FastAPI, Request

from app.core.settings import Settings

GOOGLE_FONTS_CSS = "https://fonts.googleapis.com"
GOOGLE_FONTS_FILES = "https://fonts.gstatic.com"


def _unique(sources: List[str]) -> List[str]:
    out: List[str] = []
    for s in sources:
        if s and s not in out:
            out.append(s)
    return out


def build_csp(settings: Settings) -> str:
    """Content-Security-Policy for the built front-end and its font/style hosts."""
    deploy_hosts = [settings.client_url, settings.zeabur_url, settings.github_pages_url]
    extra = [s.strip() for s in settings.csp_extra_sources.split(",") if s.strip()]

    directives: Dict[str, List[str]] = {
        "default-src": ["'self'"],
        "base-uri": ["'self'"],
        "style-src": _unique(["'self'", "'unsafe-inline'", GOOGLE_FONTS_CSS, *deploy_hosts, *extra]),
        "style-src-elem": _unique(["'self'", GOOGLE_FONTS_CSS, *deploy_hosts, *extra]),
        "script-src": _unique(["'self'", "'unsafe-inline'", "'unsafe-eval'", *extra]),
        "img-src": ["'self'", "data:", "https:"],
        "connect-src": _unique(["'self'", settings.api_url or settings.client_url, settings.zeabur_url]),
        "font-src": ["'self'", GOOGLE_FONTS_FILES],
        "object-src": ["'none'"],
        "media-src": ["'self'"],
        "frame-src": ["'none'"],
        "frame-ancestors": ["'self'"],
        "form-action": ["'self'"],
    }
    return "; ".join(f"{name} {' '.join(values)}" for name, values in directives.items())


def security_headers(settings: Settings) -> Dict[str, str]:
    return {
        "Content-Security-Policy": build_csp(settings),
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
        "Referrer-Policy": "no-referrer",
        "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
        "Cross-Origin-Opener-Policy": "same-origin",
        "X-DNS-Prefetch-Control": "off",
        "X-Permitted-Cross-Domain-Policies": "none",
    }


def install_security_headers(app: FastAPI, settings: Settings) -> None:
    headers = security_headers(settings)

    @app.middleware("http")
    async def _add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
