"""Errors raised while extracting features from training clips"""


class FeatureExtractionError(Exception):
    """Base class for feature extraction failures"""
    pass


class MediaNotFoundError(FeatureExtractionError):
    """Clip media is missing or empty"""

    def __init__(self, clip_id: str, path: str):
        self.clip_id = clip_id
        self.path = path
        super().__init__(f"Media for clip {clip_id} not found or empty: {path}")


class NoVideoTrackError(FeatureExtractionError):
    """Clip media contains no video track"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No video track in {path}")


class NoAudioTrackError(FeatureExtractionError):
    """Clip media contains no audio track (tolerated by the extractor)"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No audio track in {path}")


class NoAudioDataError(FeatureExtractionError):
    """Audio track decoded to zero samples (tolerated by the extractor)"""
    pass


class ClipExtractionError(FeatureExtractionError):
    """A fatal extraction failure attributed to a specific clip

    Attributes:
        clip_id: Identifier of the failing clip
        cause: The underlying exception
    """

    def __init__(self, clip_id: str, cause: BaseException):
        self.clip_id = clip_id
        self.cause = cause
        super().__init__(f"Feature extraction failed for clip {clip_id}: {cause}")
