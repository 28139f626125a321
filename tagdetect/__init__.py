"""Finding candidate square fiducial tag outlines in grayscale images."""

__version__ = "0.1.0"

__all__ = [
    "clusters",
    "edges",
    "homography",
    "linefit",
    "mathutil",
    "quadfit",
    "quadthresh",
    "segment",
    "threshold",
]