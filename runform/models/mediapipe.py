"""MediaPipe Pose extractor (33 BlazePose landmarks).

Uses the MediaPipe Tasks API (PoseLandmarker).
Falls back to legacy mp.solutions.pose if available.
"""

import os
import logging
import numpy as np
from typing import Optional
from .base import BasePoseExtractor, PoseEstimate
from ..constants import MP_LANDMARK_NAMES

logger = logging.getLogger(__name__)

# Default model dir (models are downloaded on first use)
_DEFAULT_MODEL_DIR = os.path.join(os.path.expanduser("~"), ".runform", "models")
_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_{t}/float16/latest/pose_landmarker_{t}.task"
)

MODEL_TYPES = ("lite", "full", "heavy")

# Legacy solutions API equivalent of each landmarker variant
_LEGACY_COMPLEXITY = {"lite": 0, "full": 1, "heavy": 2}


def _ensure_model(model_type: str = "lite", model_path: str = None) -> str:
    """Download the pose landmarker model if needed."""
    if model_path and os.path.exists(model_path):
        return model_path

    filename = f"pose_landmarker_{model_type}.task"
    default_path = os.path.join(_DEFAULT_MODEL_DIR, filename)
    if os.path.exists(default_path):
        return default_path

    os.makedirs(_DEFAULT_MODEL_DIR, exist_ok=True)
    logger.info(f"Downloading MediaPipe pose model to {default_path}...")
    import shutil
    import tempfile
    import urllib.request

    tmp_fd, tmp_path = tempfile.mkstemp(dir=_DEFAULT_MODEL_DIR)
    try:
        os.close(tmp_fd)
        resp = urllib.request.urlopen(_MODEL_URL.format(t=model_type), timeout=300)
        with open(tmp_path, "wb") as out:
            shutil.copyfileobj(resp, out)
        os.replace(tmp_path, default_path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    logger.info(f"Downloaded ({os.path.getsize(default_path)} bytes)")
    return default_path


class MediaPipePoseExtractor(BasePoseExtractor):
    """Google MediaPipe Pose (BlazePose) - 33 full-body landmarks.

    Uses the Tasks API (PoseLandmarker) with VIDEO running mode. The
    landmarker variant is chosen with ``model_type`` (``"lite"`` is the
    fastest and the default) and downloaded automatically on first use.
    """

    name = "mediapipe"
    landmark_names = MP_LANDMARK_NAMES
    n_landmarks = 33

    def __init__(self, model_type: str = "lite",
                 model_path: str = None,
                 min_detection_confidence: float = 0.5,
                 min_tracking_confidence: float = 0.5,
                 fps: float = 24.0):
        if model_type not in MODEL_TYPES:
            raise ValueError(
                f"Unknown model_type '{model_type}'. Available: {', '.join(MODEL_TYPES)}"
            )
        self.model_type = model_type
        self.model_path = model_path
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.fps = fps
        self._landmarker = None
        self._use_legacy = False
        self._legacy_pose = None
        self._frame_counter = 0

    def setup(self):
        # Try new Tasks API first
        try:
            from mediapipe.tasks.python.vision import (
                PoseLandmarker, PoseLandmarkerOptions, RunningMode,
            )
            from mediapipe.tasks.python import BaseOptions

            resolved_path = _ensure_model(self.model_type, self.model_path)
            options = PoseLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=resolved_path),
                running_mode=RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
                output_segmentation_masks=False,
            )
            self._landmarker = PoseLandmarker.create_from_options(options)
            self._frame_counter = 0
            logger.info(f"MediaPipe PoseLandmarker ({self.model_type}, Tasks API) initialized")
            return
        except Exception as e:
            logger.warning(f"Tasks API unavailable ({e}), trying legacy API...")

        # Fallback to legacy solutions API
        try:
            import mediapipe as mp
            self._legacy_pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=_LEGACY_COMPLEXITY[self.model_type],
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
            self._use_legacy = True
            logger.info("MediaPipe legacy Pose initialized")
        except (ImportError, AttributeError):
            raise ImportError(
                "MediaPipe not installed. Install with: pip install runform[mediapipe]"
            )

    def teardown(self):
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        if self._legacy_pose is not None:
            self._legacy_pose.close()
            self._legacy_pose = None

    def describe(self) -> dict:
        if self._landmarker is not None:
            backend = "tasks"
        elif self._use_legacy:
            backend = "legacy"
        else:
            backend = None
        return {"name": "MediaPipe BlazePose", "model_type": self.model_type, "backend": backend}

    def estimate(self, frame_rgb: np.ndarray, max_poses: int = 1) -> Optional[PoseEstimate]:
        if self._landmarker is None and self._legacy_pose is None:
            self.setup()

        h, w = frame_rgb.shape[:2]
        if self._use_legacy:
            lm_list = self._process_legacy(frame_rgb)
        else:
            lm_list = self._process_tasks(frame_rgb)
        if lm_list is None:
            return None

        # MediaPipe reports normalised coordinates; the contract is pixels
        keypoints = np.array([
            [lm.x * w, lm.y * h, lm.visibility]
            for lm in lm_list
        ], dtype=float)
        return PoseEstimate(keypoints=keypoints, score=None)

    def _process_tasks(self, frame_rgb: np.ndarray):
        """Process using new Tasks API."""
        import mediapipe as mp

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(frame_rgb))

        # Timestamps must be monotonically increasing (in ms)
        timestamp_ms = int(self._frame_counter * 1000 / self.fps)
        self._frame_counter += 1

        result = self._landmarker.detect_for_video(mp_image, timestamp_ms)

        if not result.pose_landmarks:
            return None
        return result.pose_landmarks[0]

    def _process_legacy(self, frame_rgb: np.ndarray):
        """Process using legacy solutions API."""
        results = self._legacy_pose.process(frame_rgb)
        if not results.pose_landmarks:
            return None
        return results.pose_landmarks.landmark
