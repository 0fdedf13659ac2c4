"""MediaPipe-backed pose and face landmark detectors

Both detectors convert MediaPipe's normalized image coordinates (origin at
the top-left, y down) to the y-up convention used by the feature
extractors. Models are created lazily on first use; each detector
serializes access to its graph because MediaPipe graphs are not
thread-safe.
"""

import logging
import threading
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from arousal_training.config.config_loader import config
from arousal_training.models.features import FaceObservation, PoseKeypoints
from arousal_training.models.frames import VideoFrame
from arousal_training.models.interfaces import FaceLandmarkDetector, PoseDetector


logger = logging.getLogger(__name__)

# BlazePose landmark indices
NOSE = 0
LEFT_SHOULDER, RIGHT_SHOULDER = 11, 12
LEFT_ELBOW, RIGHT_ELBOW = 13, 14
LEFT_WRIST, RIGHT_WRIST = 15, 16
LEFT_HIP, RIGHT_HIP = 23, 24
LEFT_KNEE, RIGHT_KNEE = 25, 26

# BlazePose has no neck joint; it is placed on the shoulder-to-nose line.
NECK_OFFSET = 0.35

# Face mesh contours, upper half first then lower half
LEFT_EYE = [161, 160, 159, 158, 157, 163, 144, 145, 153, 154]
RIGHT_EYE = [388, 387, 386, 385, 384, 390, 373, 374, 380, 381]
INNER_LIPS = [82, 13, 312, 87, 14, 317]
OUTER_LIPS = [61, 40, 37, 0, 267, 270, 291, 321, 314, 17, 84, 91]
LEFT_EYEBROW = [70, 63, 105, 66, 107]
RIGHT_EYEBROW = [336, 296, 334, 293, 300]

# Generic 3D face model for head pose (nose tip, chin, eye corners, mouth corners)
HEAD_POSE_LANDMARKS = [1, 152, 33, 263, 61, 291]
HEAD_MODEL_POINTS = np.array([
    (0.0, 0.0, 0.0),
    (0.0, -330.0, -65.0),
    (-225.0, 170.0, -135.0),
    (225.0, 170.0, -135.0),
    (-150.0, -150.0, -125.0),
    (150.0, -150.0, -125.0),
], dtype=np.float64)


class MediaPipePoseDetector(PoseDetector):
    """Body joint detector using MediaPipe Pose"""

    def __init__(self, min_detection_confidence: Optional[float] = None,
                 model_complexity: Optional[int] = None):
        self.min_detection_confidence = (
            min_detection_confidence or config.get('pose.min_detection_confidence', 0.5)
        )
        self.model_complexity = (
            model_complexity if model_complexity is not None
            else config.get('pose.model_complexity', 1)
        )
        self.mp_pose = mp.solutions.pose
        self.pose: Optional[mp.solutions.pose.Pose] = None
        self._lock = threading.Lock()

    def _load_models(self):
        """Load the MediaPipe pose model.

        Raises:
            Exception: If model initialization fails
        """
        try:
            logger.info("Loading MediaPipe pose model")
            self.pose = self.mp_pose.Pose(
                static_image_mode=True,
                model_complexity=self.model_complexity,
                min_detection_confidence=self.min_detection_confidence,
            )
            logger.info("MediaPipe pose model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load MediaPipe pose model: {e}", exc_info=True)
            raise

    def detect(self, frame: VideoFrame) -> Optional[PoseKeypoints]:
        with self._lock:
            if self.pose is None:
                self._load_models()
            results = self.pose.process(frame.image)

        if not results.pose_landmarks:
            return None

        landmarks = results.pose_landmarks.landmark

        def point(index: int):
            lm = landmarks[index]
            return (float(lm.x), 1.0 - float(lm.y))

        nose = point(NOSE)
        left_shoulder = point(LEFT_SHOULDER)
        right_shoulder = point(RIGHT_SHOULDER)
        shoulder_mid = ((left_shoulder[0] + right_shoulder[0]) / 2,
                        (left_shoulder[1] + right_shoulder[1]) / 2)
        neck = (shoulder_mid[0] + NECK_OFFSET * (nose[0] - shoulder_mid[0]),
                shoulder_mid[1] + NECK_OFFSET * (nose[1] - shoulder_mid[1]))

        visibility = [landmarks[i].visibility for i in (NOSE, LEFT_SHOULDER, RIGHT_SHOULDER,
                                                         LEFT_WRIST, RIGHT_WRIST, LEFT_HIP, RIGHT_HIP)]
        return PoseKeypoints(
            nose=nose,
            neck=neck,
            left_shoulder=left_shoulder,
            right_shoulder=right_shoulder,
            left_elbow=point(LEFT_ELBOW),
            right_elbow=point(RIGHT_ELBOW),
            left_wrist=point(LEFT_WRIST),
            right_wrist=point(RIGHT_WRIST),
            left_hip=point(LEFT_HIP),
            right_hip=point(RIGHT_HIP),
            left_knee=point(LEFT_KNEE),
            right_knee=point(RIGHT_KNEE),
            confidence=float(np.clip(np.mean(visibility), 0.0, 1.0)),
        )

    def close(self) -> None:
        if self.pose is not None:
            self.pose.close()
            self.pose = None


class MediaPipeFaceDetector(FaceLandmarkDetector):
    """Facial landmark detector using MediaPipe Face Mesh with solvePnP head pose"""

    def __init__(self, min_detection_confidence: Optional[float] = None,
                 refine_landmarks: Optional[bool] = None):
        self.min_detection_confidence = (
            min_detection_confidence or config.get('face.min_detection_confidence', 0.5)
        )
        self.refine_landmarks = (
            refine_landmarks if refine_landmarks is not None
            else config.get('face.refine_landmarks', True)
        )
        self.mp_face_mesh = mp.solutions.face_mesh
        self.face_mesh: Optional[mp.solutions.face_mesh.FaceMesh] = None
        self._lock = threading.Lock()

    def _load_models(self):
        """Load the MediaPipe face mesh model.

        Raises:
            Exception: If model initialization fails
        """
        try:
            logger.info("Loading MediaPipe face mesh model")
            self.face_mesh = self.mp_face_mesh.FaceMesh(
                static_image_mode=True,
                max_num_faces=1,
                refine_landmarks=self.refine_landmarks,
                min_detection_confidence=self.min_detection_confidence,
            )
            logger.info("MediaPipe face mesh model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load MediaPipe face mesh model: {e}", exc_info=True)
            raise

    @staticmethod
    def _head_pose(points: np.ndarray, width: int, height: int):
        """Yaw, pitch and roll in radians from pixel-space landmarks, or Nones"""
        image_points = points[HEAD_POSE_LANDMARKS].astype(np.float64)
        focal = float(width)
        camera_matrix = np.array([
            [focal, 0.0, width / 2],
            [0.0, focal, height / 2],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)
        dist_coeffs = np.zeros((4, 1))

        ok, rotation_vector, _ = cv2.solvePnP(
            HEAD_MODEL_POINTS, image_points, camera_matrix, dist_coeffs,
            flags=cv2.SOLVEPNP_ITERATIVE,
        )
        if not ok:
            return None, None, None

        rotation_matrix, _ = cv2.Rodrigues(rotation_vector)
        angles = cv2.RQDecomp3x3(rotation_matrix)[0]
        pitch, yaw, roll = (float(np.deg2rad(a)) for a in angles)
        return yaw, pitch, roll

    def detect(self, frame: VideoFrame) -> Optional[FaceObservation]:
        with self._lock:
            if self.face_mesh is None:
                self._load_models()
            results = self.face_mesh.process(frame.image)

        if not results.multi_face_landmarks:
            return None

        face_landmarks = results.multi_face_landmarks[0]
        normalized = np.array(
            [[lm.x, lm.y] for lm in face_landmarks.landmark], dtype=np.float64
        )
        h, w = frame.image.shape[:2]
        pixels = normalized * np.array([w, h])

        y_up = normalized.copy()
        y_up[:, 1] = 1.0 - y_up[:, 1]

        try:
            yaw, pitch, roll = self._head_pose(pixels, w, h)
        except cv2.error as e:
            logger.debug(f"Head pose estimation failed for frame {frame.frame_number}: {e}")
            yaw = pitch = roll = None

        return FaceObservation(
            left_eye=y_up[LEFT_EYE],
            right_eye=y_up[RIGHT_EYE],
            inner_lips=y_up[INNER_LIPS],
            outer_lips=y_up[OUTER_LIPS],
            left_eyebrow=y_up[LEFT_EYEBROW],
            right_eyebrow=y_up[RIGHT_EYEBROW],
            yaw=yaw,
            pitch=pitch,
            roll=roll,
        )

    def close(self) -> None:
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None
