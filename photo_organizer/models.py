"""
Records passed between grouping, scoring and review.

JSON shapes (via to_dict/from_dict) match the groups.json and
groups.scored.json artifacts, so breakdown keys are camelCase there.
"""

from dataclasses import dataclass, field, fields


@dataclass(frozen=True)
class PhotoRecord:
    """One image file and the signals computed for it. `path` is the join key."""

    path: str
    hash: str | None = None
    capture_time: int | None = None  # epoch milliseconds
    embedding: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if self.embedding is None:
            object.__setattr__(self, "embedding", ())
        elif not isinstance(self.embedding, tuple):
            object.__setattr__(self, "embedding", tuple(float(x) for x in self.embedding))

    def to_dict(self) -> dict:
        return {"path": self.path}


Group = list[PhotoRecord]


_CAMEL = {
    "brightness": "brightness",
    "contrast": "contrast",
    "sharpness": "sharpness",
    "face_presence": "facePresence",
    "eyes_open": "eyesOpen",
    "smiling": "smiling",
}


@dataclass
class ScoreBreakdown:
    """Six independent sub-scores, each nominally in [0, 1]."""

    brightness: float = 0.0
    contrast: float = 0.0
    sharpness: float = 0.0
    face_presence: float = 0.0
    eyes_open: float = 0.0
    smiling: float = 0.0

    def to_dict(self) -> dict:
        return {_CAMEL[f.name]: float(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreBreakdown":
        return cls(**{name: float(data.get(camel, 0.0)) for name, camel in _CAMEL.items()})


@dataclass
class ImageScore:
    path: str
    score: float
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    def to_dict(self) -> dict:
        return {"path": self.path, "score": float(self.score), "breakdown": self.breakdown.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "ImageScore":
        return cls(
            path=data["path"],
            score=float(data.get("score", 0.0)),
            breakdown=ScoreBreakdown.from_dict(data.get("breakdown") or {}),
        )


@dataclass
class ScoreEntry:
    """A scored group member; `keep` is decided by review."""

    path: str
    score: ImageScore
    keep: bool = False

    def to_dict(self) -> dict:
        return {"path": self.path, "score": self.score.to_dict(), "keep": bool(self.keep)}

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreEntry":
        return cls(
            path=data["path"],
            score=ImageScore.from_dict(data["score"]),
            keep=bool(data.get("keep", False)),
        )
