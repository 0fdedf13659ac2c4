"""On-device personalization of arousal-state detection.

Extracts fixed-length pose, facial and audio features from labeled clips,
manages each child's clip corpus, and trains, stores and queries a
per-child k-nearest-neighbour classifier.
"""

__version__ = "0.1.0"
