"""
Face detection adapter: insightface for boxes, confidence and 68-point
landmarks; DeepFace for the "happy" expression probability.

DeepFace is imported lazily so detection still works when TensorFlow is missing
(smiles then score 0). The detector is expensive to build, so it is owned by a
DetectorHandle that creates it once, on first use.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from loguru import logger

try:
    from insightface.app import FaceAnalysis
except ImportError:
    FaceAnalysis = None

import config as cfg
from .errors import ProviderUnavailableError

Point = tuple[float, float]

# 68-point layout: eyes are p1..p6 clockwise from the outer corner
_LEFT_EYE = slice(36, 42)
_RIGHT_EYE = slice(42, 48)


@dataclass
class FaceDetection:
    confidence: float
    bbox: tuple[float, float, float, float]  # x1, y1, x2, y2 in input pixels
    left_eye: list[Point] = field(default_factory=list)
    right_eye: list[Point] = field(default_factory=list)
    happy: float = 0.0  # 0..1

    @property
    def area(self) -> float:
        x1, y1, x2, y2 = self.bbox
        return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def pick_best_face(detections: list[FaceDetection]) -> FaceDetection | None:
    """Highest confidence wins; equal confidence goes to the larger box."""
    best = None
    for d in detections:
        if best is None or (d.confidence, d.area) > (best.confidence, best.area):
            best = d
    return best


def happy_probability(crop_bgr: np.ndarray) -> float:
    """DeepFace 'happy' emotion for a face crop, scaled to 0..1."""
    if crop_bgr is None or crop_bgr.size == 0:
        return 0.0
    try:
        from deepface import DeepFace
    except Exception:
        return 0.0
    try:
        result = DeepFace.analyze(crop_bgr, actions=["emotion"], enforce_detection=False, silent=True)
        if result and isinstance(result, list):
            result = result[0]
        emotions = result.get("emotion") or {}
        return float(emotions.get("happy", 0.0)) / cfg.HAPPY_DIVISOR
    except Exception as e:
        logger.debug("DeepFace emotion analysis failed: {}", e)
        return 0.0


def _crop(img: np.ndarray, bbox) -> np.ndarray | None:
    h, w = img.shape[:2]
    x1, y1, x2, y2 = [int(round(x)) for x in bbox[:4]]
    x1, x2 = max(0, x1), min(w, x2)
    y1, y2 = max(0, y1), min(h, y2)
    if x2 <= x1 or y2 <= y1:
        return None
    return img[y1:y2, x1:x2]


class FaceDetector:
    """Loads insightface once; returns FaceDetection records for a BGR image."""

    def __init__(self, det_size=cfg.DETECTOR_DET_SIZE, min_confidence: float = cfg.MIN_DETECTION_CONFIDENCE):
        if FaceAnalysis is None:
            raise ProviderUnavailableError("insightface is required. pip install insightface onnxruntime")
        self.app = FaceAnalysis(
            allowed_modules=["detection", "landmark_3d_68"],
            providers=["CPUExecutionProvider"],
        )
        self.app.prepare(ctx_id=0, det_size=det_size)
        self.min_confidence = min_confidence

    def detect(self, img: np.ndarray) -> list[FaceDetection]:
        out = []
        for face in self.app.get(img):
            confidence = float(getattr(face, "det_score", 0.0))
            if confidence < self.min_confidence:
                continue
            bbox = tuple(float(x) for x in face.bbox[:4])
            left, right = [], []
            lmk = getattr(face, "landmark_3d_68", None)
            if lmk is not None and len(lmk) >= 48:
                left = [(float(p[0]), float(p[1])) for p in lmk[_LEFT_EYE]]
                right = [(float(p[0]), float(p[1])) for p in lmk[_RIGHT_EYE]]
            crop = _crop(img, bbox)
            out.append(FaceDetection(
                confidence=confidence,
                bbox=bbox,
                left_eye=left,
                right_eye=right,
                happy=happy_probability(crop) if crop is not None else 0.0,
            ))
        return out


class DetectorHandle:
    """
    Lazily builds a detector on first get(); concurrent first calls still build
    exactly one. A handle without a factory means detection is disabled.
    """

    def __init__(self, factory: Callable[[], object] | None = FaceDetector):
        self._factory = factory
        self._detector = None
        self._lock = threading.Lock()

    @classmethod
    def disabled(cls) -> "DetectorHandle":
        return cls(factory=None)

    @property
    def enabled(self) -> bool:
        return self._factory is not None

    @property
    def initialized(self) -> bool:
        return self._detector is not None

    def get(self):
        if self._factory is None:
            return None
        if self._detector is None:
            with self._lock:
                if self._detector is None:
                    logger.info("Loading face detector")
                    self._detector = self._factory()
        return self._detector
