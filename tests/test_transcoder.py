from markerkit.core.transcoder import (
    AUDIO_CODEC_AAC,
    ScreenshotOptions,
    ScreenshotOutputType,
    TranscodeOptions,
    audio_bitrate,
    fps,
    join_filters,
    scale_width,
    screenshot_time,
    transcode,
    video_filter,
)


def test_filter_helpers():
    assert scale_width(640) == "scale=640:-2"
    assert fps(12) == "fps=12"
    assert join_filters("scale=640:-2", "", "fps=12") == "scale=640:-2,fps=12"
    assert video_filter([], "") == []
    assert video_filter(["-a"], "fps=12") == ["-a", "-vf", "fps=12"]


def test_transcode_argument_order():
    options = TranscodeOptions(
        output_path="/out/clip.mp4",
        start_time=12.5,
        duration=20,
        video_codec="libx264",
        video_args=["-crf", "24"],
        audio_codec=AUDIO_CODEC_AAC,
        audio_args=audio_bitrate("64k"),
        extra_input_args=["-hwaccel", "cuda"],
        extra_output_args=["-map_metadata", "-1"],
    )
    assert transcode("/in/video.mp4", options) == [
        "-hide_banner", "-v", "error", "-y",
        "-ss", "12.5",
        "-t", "20",
        "-hwaccel", "cuda",
        "-i", "/in/video.mp4",
        "-c:v", "libx264", "-crf", "24",
        "-c:a", "aac", "-b:a", "64k",
        "-map_metadata", "-1",
        "/out/clip.mp4",
    ]


def test_transcode_without_streams_or_window():
    args = transcode("in.mp4", TranscodeOptions(output_path="out.mp4", format="mp4"))
    assert "-ss" not in args
    assert "-t" not in args
    assert "-vn" in args
    assert "-an" in args
    assert args[-3:] == ["-f", "mp4", "out.mp4"]


def test_screenshot_to_file():
    options = ScreenshotOptions(output_path="shot.jpg", quality=2, width=320)
    assert screenshot_time("in.mp4", 7, options) == [
        "-hide_banner", "-v", "error", "-y",
        "-ss", "7",
        "-i", "in.mp4",
        "-frames:v", "1",
        "-q:v", "2",
        "-vf", "scale=320:-2",
        "-f", "image2",
        "shot.jpg",
    ]


def test_screenshot_to_stdout_as_bmp():
    options = ScreenshotOptions(output_path="-", output_type=ScreenshotOutputType.BMP, width=160)
    args = screenshot_time("in.mp4", 91.4, options)
    assert args[args.index("-ss") + 1] == "91.4"
    assert "-q:v" not in args
    assert args[-5:] == ["-c:v", "bmp", "-f", "rawvideo", "-"]
