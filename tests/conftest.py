import pytest

from helpers import open_eye
from photo_organizer.face_detector import DetectorHandle, FaceDetection


@pytest.fixture
def smiling_face():
    return FaceDetection(
        confidence=1.0,
        bbox=(0.0, 0.0, 32.0, 32.0),
        left_eye=open_eye(),
        right_eye=open_eye(10.0),
        happy=1.0,
    )


@pytest.fixture
def handle_for():
    def make(detector):
        return DetectorHandle(factory=lambda: detector)

    return make
