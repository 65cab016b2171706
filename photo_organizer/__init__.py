"""
Photo organizer: group near-duplicate and burst photos, score them, and pick
the best one per group.
"""

from photo_organizer.grouping import group_photos, group_photos_indexed, linked
from photo_organizer.models import ImageScore, PhotoRecord, ScoreBreakdown, ScoreEntry
from photo_organizer.options import GroupOptions, ScoreOptions, ScoreWeights
from photo_organizer.scorer import CompositeScorer, recommend

__all__ = [
    "CompositeScorer",
    "GroupOptions",
    "ImageScore",
    "PhotoRecord",
    "ScoreBreakdown",
    "ScoreEntry",
    "ScoreOptions",
    "ScoreWeights",
    "group_photos",
    "group_photos_indexed",
    "linked",
    "recommend",
]
