"""
FastAPI review API: serves scored groups and receives keep decisions.
JSON only; any frontend on the CORS origins below can drive it.
"""

import mimetypes
import os
import threading

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel

from photo_organizer.models import ScoreEntry
from photo_organizer.scorer import recommend


class DecideBody(BaseModel):
    results: list[list[int]]


class ReviewSession:
    """Scored groups under review plus the single decision made on them."""

    def __init__(self, scored: list[list[ScoreEntry]]):
        self.scored = scored
        self.decisions: list[list[int]] | None = None
        self._decided = threading.Event()
        self._lock = threading.Lock()

    @property
    def decided(self) -> bool:
        return self._decided.is_set()

    def payload(self) -> dict:
        groups = []
        for group in self.scored:
            best = recommend(group)
            groups.append([
                {**e.to_dict(), "index": i, "recommended": i == best}
                for i, e in enumerate(group)
            ])
        return {"groups": groups}

    def decide(self, results: list[list[int]]) -> bool:
        """Record the decision; False if one was already recorded."""
        with self._lock:
            if self._decided.is_set():
                return False
            self.decisions = [sorted(r) for r in results]
            self._decided.set()
            return True

    def wait(self, timeout: float | None = None) -> bool:
        return self._decided.wait(timeout)


# CORS: allow common dev origins (Vite default 5173, preview/serve often 8080, etc.)
_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def create_review_app(session: ReviewSession) -> FastAPI:
    app = FastAPI(title="Photo Organizer Review API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def api_health():
        return {"status": "ok", "service": "photo-organizer-review", "decided": session.decided}

    @app.get("/api/data")
    def api_data():
        return session.payload()

    @app.get("/img/{group_index}/{item_index}")
    def api_image(group_index: int, item_index: int):
        if not 0 <= group_index < len(session.scored):
            raise HTTPException(status_code=404, detail="Group not found")
        group = session.scored[group_index]
        if not 0 <= item_index < len(group):
            raise HTTPException(status_code=404, detail="Photo not found")
        path = group[item_index].path
        if not os.path.isfile(path):
            raise HTTPException(status_code=404, detail="Photo not found")
        media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return FileResponse(path, media_type=media_type)

    @app.post("/api/decide")
    def api_decide(body: DecideBody):
        if len(body.results) != len(session.scored):
            raise HTTPException(
                status_code=400,
                detail=f"Expected {len(session.scored)} groups, got {len(body.results)}",
            )
        if not session.decide(body.results):
            raise HTTPException(status_code=409, detail="Review already decided")
        return {"ok": True}

    return app
