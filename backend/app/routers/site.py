# app/routers/site.py
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

router = APIRouter(tags=["site"])
api_fallback_router = APIRouter(prefix="/api", tags=["site"])

# Sub-path used when the site is hosted under /projects
SUBPATH = "projects/"


def _safe_file(root: Path, rel: str) -> Optional[Path]:
    """Resolve ``rel`` under ``root``; None if it escapes root or is not a file."""
    if not rel:
        return None
    root = root.resolve()
    candidate = (root / rel).resolve()
    if root != candidate and root not in candidate.parents:
        return None
    return candidate if candidate.is_file() else None


@api_fallback_router.api_route(
    "/{full_path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def api_not_found(full_path: str):
    raise HTTPException(status_code=404, detail="API route not found")


@router.get("/apk/{filename:path}")
@router.get("/projects/apk/{filename:path}")
async def download_apk(filename: str, request: Request):
    path = _safe_file(request.app.state.settings.apk_root, filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type="application/vnd.android.package-archive", filename=path.name)


@router.get("/{full_path:path}", include_in_schema=False)
async def single_page_app(full_path: str, request: Request):
    root: Path = request.app.state.settings.static_root
    path = _safe_file(root, full_path)
    if path is None and full_path.startswith(SUBPATH):
        path = _safe_file(root, full_path[len(SUBPATH):])
    if path is not None:
        return FileResponse(path)

    # Client-side routing: every other path gets the built index document
    index = root / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="Front-end build not found")
    return FileResponse(index)
