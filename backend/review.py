"""
Serve the review API with uvicorn in a background thread and block until the
reviewer posts a decision.
"""

import threading
import webbrowser

import uvicorn
from loguru import logger

import config as cfg
from backend.main import ReviewSession, create_review_app
from photo_organizer.models import ScoreEntry


def review_groups(
    scored: list[list[ScoreEntry]],
    host: str = cfg.REVIEW_HOST,
    port: int = cfg.REVIEW_PORT,
    open_browser: bool = True,
    timeout: float | None = None,
) -> list[list[int]]:
    """
    Returns kept member indices per group. An empty list means no decision
    arrived before `timeout`.
    """
    session = ReviewSession(scored)
    app = create_review_app(session)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    url = f"http://{host}:{port}/api/data"
    logger.info("Review API listening on {}", url)
    if open_browser:
        webbrowser.open(url)
    try:
        if not session.wait(timeout):
            logger.warning("No review decision within {}s; keeping recommended photos", timeout)
    finally:
        server.should_exit = True
        thread.join(timeout=5)
    return session.decisions or []
