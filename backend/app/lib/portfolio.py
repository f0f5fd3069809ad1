import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import quote

DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def _read_json(name: str) -> Any:
    with (DATA_DIR / name).open(encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=1)
def load_portfolio() -> Dict[str, Any]:
    return _read_json("portfolio.json")


@lru_cache(maxsize=1)
def load_projects() -> List[Dict[str, Any]]:
    projects = _read_json("projects.json")
    for project in projects:
        for apk in project.get("apkDownloads", []):
            apk["url"] = f"/apk/{quote(apk['fileName'])}"
    return projects


def owner_profile() -> Dict[str, Any]:
    return load_portfolio()["personal"]
