from unittest.mock import patch

import ffmpeg

from services.media_probe import get_video_duration_seconds


def test_duration_prefers_container_then_video_stream():
    with patch("services.media_probe.ffmpeg.probe", return_value={"format": {"duration": "41.6"}}):
        assert get_video_duration_seconds("clip.mp4") == 42

    metadata = {
        "format": {},
        "streams": [{"codec_type": "audio", "duration": "90"}, {"codec_type": "video", "duration": "12.2"}],
    }
    with patch("services.media_probe.ffmpeg.probe", return_value=metadata):
        assert get_video_duration_seconds("clip.mp4") == 12


def test_unreadable_media_reports_zero():
    with patch("services.media_probe.ffmpeg.probe", side_effect=ffmpeg.Error("ffprobe", b"", b"bad data")):
        assert get_video_duration_seconds("broken.mp4") == 0
    with patch("services.media_probe.ffmpeg.probe", side_effect=FileNotFoundError("ffprobe")):
        assert get_video_duration_seconds("clip.mp4") == 0
    with patch("services.media_probe.ffmpeg.probe", return_value={"format": {"duration": "N/A"}}):
        assert get_video_duration_seconds("clip.mp4") == 0
