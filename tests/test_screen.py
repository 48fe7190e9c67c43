import subprocess
import sys
from unittest import mock

import pytest

from controlrelay.screen import (
    SOFTWARE_ENCODER,
    ScreenCapture,
    build_ffmpeg_args,
    detect_encoder,
    encoder_for_gpu,
    replace_or_add_arg,
)

_EMIT_AND_WAIT = (
    "import sys, time\n"
    "sys.stdout.buffer.write(b'frame')\n"
    "sys.stdout.buffer.flush()\n"
    "time.sleep(30)\n"
)


def _fake_command():
    return [sys.executable, "-c", _EMIT_AND_WAIT]


def _read_exactly(capture, count):
    data = b""
    while len(data) < count:
        data += capture.read_frame(count - len(data))
    return data


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("AMD Radeon RX 6800", "h264_amf"),
        ("NVIDIA GeForce RTX 3080", "h264_nvenc"),
        ("Intel(R) UHD Graphics 630", "h264_qsv"),
        ("Microsoft Basic Display Adapter", "libx264"),
    ],
)
def test_encoder_for_gpu(name, expected):
    assert encoder_for_gpu(name) == expected


def test_replace_or_add_arg_replaces_existing_value():
    args = ["-c:v", "h264_amf", "-g", "60"]
    result = replace_or_add_arg(args, "-c:v", "libx264")
    assert result == ["-c:v", "libx264", "-g", "60"]
    assert args == ["-c:v", "h264_amf", "-g", "60"]


def test_replace_or_add_arg_name_at_end_gets_value_appended():
    assert replace_or_add_arg(["-an", "-c:v"], "-c:v", "libx264") == ["-an", "-c:v", "libx264"]


def test_replace_or_add_arg_missing_name_appends_pair():
    assert replace_or_add_arg(["-an"], "-c:v", "libx264") == ["-an", "-c:v", "libx264"]


def test_build_args_crops_given_area():
    args = build_ffmpeg_args("libx264", 1280, 720, 0, 0)
    vf = args[args.index("-vf") + 1]
    assert vf == "crop=1280:720:0:0,scale=1920:1080,format=yuv420p"
    assert args[:7] == ["-f", "gdigrab", "-framerate", "30", "-i", "desktop", "-an"]


def test_build_args_without_area_scales_whole_desktop():
    args = build_ffmpeg_args("libx264", 0, 0, 0, 0)
    assert args[args.index("-vf") + 1] == "scale=1920:1080,format=yuv420p"


@pytest.mark.parametrize(
    ("encoder", "marker"),
    [
        ("h264_nvenc", "-zerolatency"),
        ("h264_amf", "-usage"),
        ("h264_qsv", "-async_depth"),
        ("libx264", "-tune"),
    ],
)
def test_build_args_uses_encoder_options(encoder, marker):
    args = build_ffmpeg_args(encoder, 1920, 1080, 0, 0)
    assert args[args.index("-c:v") + 1] == encoder
    assert marker in args
    assert args.index("pipe:1") < args.index(marker)


def test_build_args_unknown_encoder_falls_back_to_software():
    args = build_ffmpeg_args("mpeg4", 1920, 1080, 0, 0)
    assert args[args.index("-c:v") + 1] == SOFTWARE_ENCODER
    assert args[args.index("-preset") + 1] == "ultrafast"
    assert "mpeg4" not in args


@mock.patch("controlrelay.screen.subprocess.run")
def test_detect_encoder_uses_first_controller(run):
    run.return_value = subprocess.CompletedProcess(
        args=[], returncode=0, stdout="\nNVIDIA GeForce GTX 1060\nIntel UHD\n", stderr=""
    )
    assert detect_encoder() == "h264_nvenc"


@mock.patch("controlrelay.screen.subprocess.run", side_effect=FileNotFoundError("missing"))
def test_detect_encoder_missing_tool_falls_back(run):
    assert detect_encoder() == SOFTWARE_ENCODER
    assert run.called


@mock.patch(
    "controlrelay.screen.subprocess.run",
    side_effect=subprocess.TimeoutExpired(cmd="query", timeout=5),
)
def test_detect_encoder_timeout_falls_back(run):
    assert detect_encoder() == SOFTWARE_ENCODER


@mock.patch("controlrelay.screen.subprocess.run")
def test_detect_encoder_no_controllers_falls_back(run):
    run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="\n", stderr="")
    assert detect_encoder() == SOFTWARE_ENCODER


def test_capture_reads_child_output():
    capture = ScreenCapture("libx264", (0, 0, 1280, 720), _fake_command())
    try:
        assert _read_exactly(capture, 5) == b"frame"
        assert capture.running is True
    finally:
        capture.close()
    assert capture.running is False


def test_read_after_close_raises_eof():
    capture = ScreenCapture("libx264", None, _fake_command())
    capture.close()
    with pytest.raises(EOFError):
        capture.read_frame(16)


def test_close_is_idempotent():
    capture = ScreenCapture("libx264", None, _fake_command())
    capture.close()
    capture.close()
    assert capture.running is False


def test_context_manager_closes():
    with ScreenCapture("h264_nvenc", None, _fake_command()) as capture:
        assert capture.encoder == "h264_nvenc"
        assert _read_exactly(capture, 5) == b"frame"
    assert capture.running is False
    with pytest.raises(EOFError):
        capture.read_frame(16)


def test_missing_program_raises():
    with pytest.raises(OSError):
        ScreenCapture("libx264", None, "definitely-not-a-real-capture-program")