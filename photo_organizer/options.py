"""
Validated options for grouping and scoring. Defaults come from config.py;
a JSON settings file may override any of them.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import config as cfg
from .errors import ConfigError


def _check_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{name} must be within [0, 1], got {value}")


@dataclass
class GroupOptions:
    phash_threshold: float = cfg.PHASH_THRESHOLD
    seconds_separated: float = cfg.SECONDS_SEPARATED
    cosine_similarity_threshold: float = cfg.COSINE_SIMILARITY_THRESHOLD
    cosine_max_minutes: float = cfg.COSINE_MAX_MINUTES
    include_singletons: bool = cfg.INCLUDE_SINGLETONS

    def validate(self) -> "GroupOptions":
        _check_unit("phash_threshold", self.phash_threshold)
        if not -1.0 <= self.cosine_similarity_threshold <= 1.0:
            raise ConfigError(
                f"cosine_similarity_threshold must be within [-1, 1], got {self.cosine_similarity_threshold}"
            )
        if self.seconds_separated < 0:
            raise ConfigError(f"seconds_separated must be >= 0, got {self.seconds_separated}")
        if self.cosine_max_minutes < 0:
            raise ConfigError(f"cosine_max_minutes must be >= 0, got {self.cosine_max_minutes}")
        return self


@dataclass
class ScoreWeights:
    brightness: float = cfg.WEIGHT_BRIGHTNESS
    contrast: float = cfg.WEIGHT_CONTRAST
    sharpness: float = cfg.WEIGHT_SHARPNESS
    face_presence: float = cfg.WEIGHT_FACE_PRESENCE
    eyes_open: float = cfg.WEIGHT_EYES_OPEN
    smiling: float = cfg.WEIGHT_SMILING

    def validate(self) -> "ScoreWeights":
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigError(f"weight {f.name} must be >= 0, got {getattr(self, f.name)}")
        return self


@dataclass
class ScoreOptions:
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    analysis_max_dim: int = cfg.ANALYSIS_MAX_DIM
    detect_faces: bool = True
    max_workers: int = cfg.SCORE_MAX_WORKERS
    photo_timeout: float | None = cfg.PHOTO_TIMEOUT_SECONDS

    def validate(self) -> "ScoreOptions":
        self.weights.validate()
        if self.analysis_max_dim <= 0:
            raise ConfigError(f"analysis_max_dim must be > 0, got {self.analysis_max_dim}")
        if self.max_workers <= 0:
            raise ConfigError(f"max_workers must be > 0, got {self.max_workers}")
        if self.photo_timeout is not None and self.photo_timeout <= 0:
            raise ConfigError(f"photo_timeout must be > 0 or None, got {self.photo_timeout}")
        return self


class JsonSettings:
    """JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise ConfigError(f"settings file not found: {self._path}")
        try:
            with self._path.open("r", encoding="utf-8") as f:
                self._data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"settings file is not valid JSON: {self._path}: {e}") from e

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


def load_options(settings_path: str | Path) -> tuple[GroupOptions, ScoreOptions]:
    """Build validated options from a settings file; absent keys keep defaults."""
    settings = JsonSettings(settings_path)
    group_kwargs = {}
    for f in fields(GroupOptions):
        value = settings.get(f"grouping.{f.name}")
        if value is not None:
            group_kwargs[f.name] = value
    weight_kwargs = {}
    for f in fields(ScoreWeights):
        value = settings.get(f"scoring.weights.{f.name}")
        if value is not None:
            weight_kwargs[f.name] = float(value)
    score_kwargs: dict[str, Any] = {"weights": ScoreWeights(**weight_kwargs)}
    for name in ("analysis_max_dim", "detect_faces", "max_workers", "photo_timeout"):
        value = settings.get(f"scoring.{name}")
        if value is not None:
            score_kwargs[name] = value
    try:
        group_opts = GroupOptions(**group_kwargs)
        score_opts = ScoreOptions(**score_kwargs)
    except TypeError as e:
        raise ConfigError(str(e)) from e
    return group_opts.validate(), score_opts.validate()
