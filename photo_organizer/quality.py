"""
Quality signals: brightness, contrast, sharpness (from pixels) and
face presence, eyes open, smiling (from a face detection).

Pixel signals are computed on a copy downscaled to config.ANALYSIS_MAX_DIM.
Every function returns 0 for missing or degenerate input instead of raising.
"""

import math
from typing import Sequence

import cv2
import numpy as np

import config as cfg
from .similarity import clamp01

# ITU-R BT.709 luma weights, in BGR order to match OpenCV buffers
_BT709_BGR = np.array([0.0722, 0.7152, 0.2126], dtype=np.float64)


def decode_image(data: bytes) -> np.ndarray | None:
    """Decode image bytes to a BGR array (EXIF orientation applied). None if undecodable."""
    if not data:
        return None
    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if img is None or img.size == 0:
        return None
    return img


def load_image(img_path: str) -> np.ndarray | None:
    img = cv2.imread(img_path, cv2.IMREAD_COLOR)
    if img is None or img.size == 0:
        return None
    return img


def resize_for_analysis(img: np.ndarray, max_dim: int = cfg.ANALYSIS_MAX_DIM) -> np.ndarray:
    """Shrink so the longest side is at most max_dim, keeping aspect ratio."""
    h, w = img.shape[:2]
    longest = max(h, w)
    if longest <= max_dim:
        return img
    scale = max_dim / longest
    size = (max(1, round(w * scale)), max(1, round(h * scale)))
    return cv2.resize(img, size, interpolation=cv2.INTER_AREA)


def luma(img: np.ndarray) -> np.ndarray:
    """Per-pixel luma in [0, 1]. Accepts greyscale, BGR or BGRA uint8 arrays."""
    data = img.astype(np.float64) / 255.0
    if data.ndim == 2:
        return data
    if data.shape[2] == 1:
        return data[:, :, 0]
    return data[:, :, :3] @ _BT709_BGR


def brightness_contrast(img: np.ndarray | None) -> tuple[float, float]:
    """Mean luma and RMS contrast (luma stddev / 0.5), both clamped to [0, 1]."""
    if img is None or img.size == 0:
        return 0.0, 0.0
    y = luma(img)
    mean = float(y.mean())
    variance = max(0.0, float((y * y).mean()) - mean * mean)
    stddev = math.sqrt(variance)
    return clamp01(mean), clamp01(stddev / cfg.FULL_CONTRAST_STDDEV)


def laplacian_energy(img: np.ndarray | None) -> float:
    """Mean squared 4-neighbour Laplacian over interior pixels; 0 if there are none."""
    if img is None or img.size == 0:
        return 0.0
    y = luma(img)
    h, w = y.shape
    if h < 3 or w < 3:
        return 0.0
    lap = cv2.Laplacian(y, cv2.CV_64F, ksize=1)[1:-1, 1:-1]
    return float(np.mean(lap * lap))


def sharpness(img: np.ndarray | None) -> float:
    """Variance-of-Laplacian mapped through energy / (energy + k); 0 = blurry, ->1 = sharp."""
    energy = laplacian_energy(img)
    if energy <= 0:
        return 0.0
    return clamp01(energy / (energy + cfg.SHARPNESS_K))


def eye_aspect_ratio(pts: Sequence[Sequence[float]] | None) -> float:
    """EAR = (|p2-p6| + |p3-p5|) / (2 |p1-p4|) from six eye landmarks."""
    if pts is None or len(pts) != 6:
        return 0.0
    p1, p2, p3, p4, p5, p6 = (np.asarray(p[:2], dtype=np.float64) for p in pts)
    den = 2.0 * np.linalg.norm(p1 - p4)
    if den <= 0:
        return 0.0
    return float((np.linalg.norm(p2 - p6) + np.linalg.norm(p3 - p5)) / den)


def eyes_open_score(left_ear: float, right_ear: float) -> float:
    """Average EAR -> 0 at/below EAR_CLOSED, 1 at/above EAR_OPEN, linear between."""
    avg = (left_ear + right_ear) / 2
    if avg <= cfg.EAR_CLOSED:
        return 0.0
    if avg >= cfg.EAR_OPEN:
        return 1.0
    return (avg - cfg.EAR_CLOSED) / (cfg.EAR_OPEN - cfg.EAR_CLOSED)


def smile_score(happy: float) -> float:
    """happy probability (0..1) -> happy ** 0.8."""
    if happy is None or happy <= 0:
        return 0.0
    return clamp01(float(happy) ** cfg.SMILE_EXPONENT)


def face_presence_score(confidence: float, area_rel: float) -> float:
    """Mostly detector confidence, with a light sqrt(relative area) prior."""
    return clamp01(
        cfg.FACE_CONFIDENCE_WEIGHT * clamp01(confidence)
        + cfg.FACE_AREA_WEIGHT * math.sqrt(clamp01(area_rel))
    )


def face_signals(face, image_shape: tuple[int, ...] | None) -> tuple[float, float, float]:
    """(facePresence, eyesOpen, smiling) for one detected face; zeros when face is None."""
    if face is None:
        return 0.0, 0.0, 0.0
    area_rel = 0.0
    if image_shape is not None and len(image_shape) >= 2:
        h, w = image_shape[:2]
        area_rel = face.area / (w * h + 1e-6)
    presence = face_presence_score(face.confidence, area_rel)
    eyes = eyes_open_score(eye_aspect_ratio(face.left_eye), eye_aspect_ratio(face.right_eye))
    return presence, eyes, smile_score(face.happy)
