"""Base class for pose extractors."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class PoseEstimate:
    """One detected pose in the pixel space of the image it came from."""
    keypoints: np.ndarray  # Shape: (N, 3) - x_px, y_px, score
    score: Optional[float] = None


class BasePoseExtractor(ABC):
    """Abstract base class for all pose extractors.

    Subclasses must implement estimate() which takes an RGB frame and
    returns the best pose with keypoints in that frame's pixel space.
    """

    name: str = "Base"
    landmark_names: List[str] = []
    n_landmarks: int = 0

    @abstractmethod
    def estimate(self, frame_rgb: np.ndarray, max_poses: int = 1) -> Optional[PoseEstimate]:
        """Detect a pose in a single RGB frame.

        Args:
            frame_rgb: RGB image as numpy array (H, W, 3).
            max_poses: Maximum number of people to look for. Only the
                first detected pose is returned.

        Returns:
            A PoseEstimate with keypoints of shape (N, 3) holding
            [x_pixels, y_pixels, score], and an optional per-pose score.
            Returns None if no pose is detected.
        """
        pass

    def setup(self):
        """Initialize the model. Called before processing starts."""
        pass

    def teardown(self):
        """Release model resources. Called after processing ends."""
        pass

    def describe(self) -> dict:
        """Model metadata recorded in the analysis result."""
        return {"name": self.name, "model_type": None, "backend": None}
