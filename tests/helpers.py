"""Synthetic images and fake collaborators shared by the tests."""

import cv2
import numpy as np


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


def solid(value: int, size=(32, 32)) -> np.ndarray:
    return np.full((size[0], size[1], 3), value, dtype=np.uint8)


def checkerboard(size=64) -> np.ndarray:
    yy, xx = np.indices((size, size))
    board = ((yy + xx) % 2 * 255).astype(np.uint8)
    return cv2.cvtColor(board, cv2.COLOR_GRAY2BGR)


def open_eye(x0=0.0, y0=0.0, h=0.6):
    """Six landmarks with EAR = h / 2 (width 4)."""
    return [(x0, y0), (x0 + 1, y0 - h), (x0 + 3, y0 - h), (x0 + 4, y0), (x0 + 3, y0 + h), (x0 + 1, y0 + h)]


class FakeDetector:
    def __init__(self, detections=None, error=None):
        self.detections = detections or []
        self.error = error
        self.calls = 0

    def detect(self, img):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.detections)
