import logging

import ffmpeg

logger = logging.getLogger(__name__)


def _stream_duration(streams) -> float:
    for stream in streams:
        if stream.get("codec_type") != "video":
            continue
        duration = float(stream.get("duration") or 0.0)
        if duration > 0:
            return duration
    return 0.0


def get_video_duration_seconds(video_path: str) -> int:
    """Duration of a stored video in whole seconds; 0 when ffprobe cannot read it."""
    try:
        metadata = ffmpeg.probe(video_path)
        duration = float(metadata.get("format", {}).get("duration") or 0.0)
        if duration <= 0:
            duration = _stream_duration(metadata.get("streams", []))
    except (ffmpeg.Error, OSError, ValueError) as exc:
        logger.warning("video_duration_unavailable path=%s error=%s", video_path, exc)
        return 0
    return max(0, int(round(duration)))
