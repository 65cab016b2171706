"""
Feature providers: build PhotoRecords (pHash, capture time, embedding) for
grouping. Each provider fails per photo by returning None / [] instead of
raising, so one bad file never stops a batch.
"""

import os
import threading
from datetime import datetime
from typing import Callable, Sequence

import imagehash
import numpy as np
from loguru import logger
from PIL import Image, ImageOps

import config as cfg
from .errors import ProviderUnavailableError
from .models import PhotoRecord

_EXIF_DATETIME_ORIGINAL = 36867
_EXIF_DATETIME = 306
_EXIF_IFD = 0x8769


def compute_phash(img_path: str) -> str | None:
    """64-bit perceptual hash as 16 hex chars, or None if the image can't be read."""
    try:
        with Image.open(img_path) as im:
            return str(imagehash.phash(ImageOps.exif_transpose(im)))
    except Exception as e:
        logger.debug("pHash failed for {}: {}", img_path, e)
        return None


def _parse_exif_datetime(value) -> datetime | None:
    s = str(value).strip().rstrip("\x00")
    if len(s) >= 19 and s[4] == ":" and s[7] == ":":
        return datetime.strptime(s[:19], "%Y:%m:%d %H:%M:%S")
    return datetime.fromisoformat(s.replace("/", "-"))


def exif_capture_time(img_path: str) -> datetime | None:
    """EXIF DateTimeOriginal, else DateTime. None when absent or unreadable."""
    try:
        with Image.open(img_path) as im:
            exif = im.getexif()
            if not exif:
                return None
            value = exif.get_ifd(_EXIF_IFD).get(_EXIF_DATETIME_ORIGINAL) or exif.get(_EXIF_DATETIME)
            if not value:
                return None
            return _parse_exif_datetime(value)
    except (OSError, ValueError, TypeError) as e:
        logger.debug("EXIF read failed for {}: {}", img_path, e)
        return None


def capture_time_ms(img_path: str) -> int | None:
    """Capture time in epoch ms; falls back to file mtime. None if the file is gone."""
    dt = exif_capture_time(img_path)
    if dt is not None:
        try:
            return int(dt.timestamp() * 1000)
        except (OverflowError, OSError, ValueError):
            pass
    try:
        return int(os.path.getmtime(img_path) * 1000)
    except OSError:
        return None


class ClipEmbedder:
    """Loads an OpenCLIP image model once, on first embed(); thread safe."""

    def __init__(self, model_name: str = cfg.CLIP_MODEL, pretrained: str = cfg.CLIP_PRETRAINED):
        self.model_name = model_name
        self.pretrained = pretrained
        self._model = None
        self._preprocess = None
        self._torch = None
        self._lock = threading.Lock()

    def load(self) -> None:
        if self._model is not None:
            return
        with self._lock:
            if self._model is not None:
                return
            try:
                import open_clip
                import torch
            except ImportError as e:
                raise ProviderUnavailableError(
                    "open_clip and torch are required for embeddings. pip install open_clip_torch torch"
                ) from e
            model, _, preprocess = open_clip.create_model_and_transforms(
                self.model_name, pretrained=self.pretrained
            )
            model.eval()
            logger.info("OpenCLIP {} ({}) ready", self.model_name, self.pretrained)
            self._torch = torch
            self._preprocess = preprocess
            self._model = model

    def embed(self, img_path: str) -> list[float]:
        """L2-normalized image embedding, or [] on failure."""
        self.load()
        try:
            with Image.open(img_path) as im:
                pil = ImageOps.exif_transpose(im).convert("RGB")
            batch = self._preprocess(pil).unsqueeze(0)
            with self._torch.no_grad():
                feat = self._model.encode_image(batch)
            vec = feat.detach().cpu().numpy().astype(np.float64).reshape(-1)
        except Exception as e:
            logger.warning("Embedding failed for {}: {}", img_path, e)
            return []
        norm = np.linalg.norm(vec)
        if not np.isfinite(norm) or norm <= 0:
            return []
        return [float(x) for x in vec / norm]


def build_record(img_path: str, embedder: ClipEmbedder | None = None) -> PhotoRecord:
    embedding = embedder.embed(img_path) if embedder is not None else []
    return PhotoRecord(
        path=os.path.abspath(img_path),
        hash=compute_phash(img_path),
        capture_time=capture_time_ms(img_path),
        embedding=embedding,
    )


def build_records(
    photo_paths: Sequence[str],
    embedder: ClipEmbedder | None = None,
    progress_callback: Callable[[int, int], None] | None = None,
) -> list[PhotoRecord]:
    total = len(photo_paths)
    records = []
    for i, path in enumerate(photo_paths):
        records.append(build_record(path, embedder))
        if progress_callback and total:
            progress_callback(i + 1, total)
    return records
