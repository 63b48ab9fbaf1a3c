"""Video Transcode Pipeline: adaptive-bitrate packaging of uploaded videos."""

__version__ = "0.1.0"
