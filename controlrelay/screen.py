"""Screen capture through an ffmpeg child process producing an MPEG-TS stream."""

from __future__ import annotations

import contextlib
import logging
import queue
import subprocess
import threading
import time
from collections.abc import Sequence
from typing import IO

__all__ = [
    "FRAME_BUFFER_SIZE",
    "SOFTWARE_ENCODER",
    "ScreenCapture",
    "build_ffmpeg_args",
    "detect_encoder",
    "encoder_for_gpu",
    "replace_or_add_arg",
]

log = logging.getLogger(__name__)

SOFTWARE_ENCODER = "libx264"
FRAME_BUFFER_SIZE = 2 * 1024 * 1024

_GPU_QUERY_TIMEOUT = 5.0
_GPU_QUERY = (
    "powershell",
    "-NoProfile",
    "-Command",
    "Get-CimInstance Win32_VideoController | Select-Object -ExpandProperty Name",
)
_RESTART_ATTEMPTS = 3
_RESTART_DELAY = 2.0
_MONITOR_POLL = 0.5

_X264_OPTIONS = (
    "-preset", "ultrafast",
    "-tune", "zerolatency",
    "-b:v", "3M", "-maxrate", "4M", "-bufsize", "6M",
)
_NVENC_OPTIONS = (
    "-preset", "ll",
    "-profile:v", "high",
    "-rc", "vbr_hq",
    "-b:v", "3M",
    "-maxrate", "5M",
    "-bufsize", "6M",
    "-multipass", "0",
    "-delay", "0",
    "-zerolatency", "1",
    "-rc-lookahead", "0",
    "-forced-idr", "1",
    "-strict", "2",
)
_AMF_OPTIONS = (
    "-usage", "ultralowlatency",
    "-quality", "speed",
    "-profile:v", "high",
    "-rc", "cbr",
    "-b:v", "3M",
)
_QSV_OPTIONS = (
    "-preset", "veryfast",
    "-profile:v", "high",
    "-look_ahead", "0",
    "-async_depth", "1",
    "-b:v", "3M",
    "-maxrate", "5M",
)


def encoder_for_gpu(name: str) -> str:
    """Pick the hardware H.264 encoder matching a GPU name, or the software one."""
    vendor = name.lower()
    if "amd" in vendor:
        return "h264_amf"
    if "nvidia" in vendor:
        return "h264_nvenc"
    if "intel" in vendor:
        return "h264_qsv"
    log.info("Unknown GPU vendor: %s, fallback to software encoder", vendor)
    return SOFTWARE_ENCODER


def detect_encoder() -> str:
    """Query the first video controller and choose an encoder for it.

    Any failure of the query (missing tool, timeout, no controllers) falls
    back to the software encoder.
    """
    try:
        result = subprocess.run(
            list(_GPU_QUERY),
            capture_output=True,
            text=True,
            timeout=_GPU_QUERY_TIMEOUT,
            check=False,
        )
    except subprocess.TimeoutExpired:
        log.warning("Video controller query timed out, fallback to software encoder")
        return SOFTWARE_ENCODER
    except OSError as exc:
        log.warning("Video controller query failed (%s), fallback to software encoder", exc)
        return SOFTWARE_ENCODER
    if result.returncode != 0:
        log.warning("Video controller query exited with %d, fallback to software encoder",
                    result.returncode)
        return SOFTWARE_ENCODER
    names = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if not names:
        log.warning("No video controllers found, fallback to software encoder")
        return SOFTWARE_ENCODER
    log.info("Detected GPU: %s", names[0])
    return encoder_for_gpu(names[0])


def replace_or_add_arg(args: Sequence[str], name: str, value: str) -> list[str]:
    """Return ``args`` with the value after the first ``name`` set to ``value``.

    If ``name`` is the last item the value is appended after it; if it is
    absent both are appended.
    """
    result = list(args)
    try:
        index = result.index(name)
    except ValueError:
        result.extend((name, value))
        return result
    if index + 1 < len(result):
        result[index + 1] = value
    else:
        result.append(value)
    return result


def build_ffmpeg_args(
    encoder: str, width: int = 0, height: int = 0, offset_x: int = 0, offset_y: int = 0
) -> list[str]:
    """Build the ffmpeg argument list for grabbing the desktop at 30 fps.

    With a positive width and height the given display area is cropped before
    scaling to 1920x1080; otherwise the whole desktop is scaled.
    """
    args = ["-f", "gdigrab", "-framerate", "30", "-i", "desktop", "-an"]
    if width > 0 and height > 0:
        video_filter = f"crop={width}:{height}:{offset_x}:{offset_y},scale=1920:1080,format=yuv420p"
    else:
        log.info("Invalid display dimensions (%dx%d). Capturing entire desktop and scaling.",
                 width, height)
        video_filter = "scale=1920:1080,format=yuv420p"
    args += ["-vf", video_filter]
    args += [
        "-c:v", encoder,
        "-g", "60",
        "-flags", "+low_delay",
        "-fflags", "nobuffer",
        "-f", "mpegts",
        "-flush_packets", "1",
        "pipe:1",
    ]
    if "nvenc" in encoder:
        args += _NVENC_OPTIONS
    elif "amf" in encoder:
        args += _AMF_OPTIONS
    elif "qsv" in encoder:
        args += _QSV_OPTIONS
    elif SOFTWARE_ENCODER in encoder:
        args += _X264_OPTIONS
    else:
        log.info("Encoder '%s' not specifically handled, using generic %s settings.",
                 encoder, SOFTWARE_ENCODER)
        args = replace_or_add_arg(args, "-c:v", SOFTWARE_ENCODER)
        args += _X264_OPTIONS
    return args


class ScreenCapture:
    """A running ffmpeg capture whose output is read in frames.

    If the child exits while the capture is open it is restarted, up to
    three attempts two seconds apart; after that the capture stops.
    """

    def __init__(
        self,
        encoder: str | None = None,
        bounds: tuple[int, int, int, int] | None = None,
        command: str | Sequence[str] = "ffmpeg",
    ) -> None:
        self.encoder = encoder or detect_encoder()
        self.bounds = bounds
        self._command = [command] if isinstance(command, str) else list(command)
        self._lock = threading.Lock()
        self._running = True
        self._process: subprocess.Popen | None = None
        self._output: IO[bytes] | None = None
        self._restart: queue.Queue[None] = queue.Queue(maxsize=1)
        self._start()
        self._monitor_thread = threading.Thread(
            target=self._monitor, name="screen-capture-monitor", daemon=True
        )
        self._monitor_thread.start()

    @property
    def running(self) -> bool:
        """Whether the capture is still meant to be producing output."""
        with self._lock:
            return self._running

    def _start(self) -> None:
        with self._lock:
            if not self._running:
                return
            x, y, width, height = self.bounds or (0, 0, 0, 0)
            log.info("Screen capture: display area %dx%d at offset (%d,%d)", width, height, x, y)
            args = build_ffmpeg_args(self.encoder, width, height, x, y)
            log.info("Screen capture: starting with args: %s", args)
            process = subprocess.Popen(
                [*self._command, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
            self._process = process
            self._output = process.stdout
            log.info("Screen capture started with %s encoder (PID: %d)", self.encoder, process.pid)
        threading.Thread(
            target=self._wait, args=(process,), name="screen-capture-wait", daemon=True
        ).start()

    def _wait(self, process: subprocess.Popen) -> None:
        assert process.stderr is not None
        with process.stderr:
            stderr = process.stderr.read()
        code = process.wait()
        text = stderr.decode("utf-8", errors="replace")
        with self._lock:
            if process is not self._process:
                return
            if not self._running:
                log.info("Screen capture: process (PID: %d) exited as expected, code %s. "
                         "Stderr: %s", process.pid, code, text)
                return
            log.warning("Screen capture: process (PID: %d) exited unexpectedly, code %s. "
                        "Stderr: %s", process.pid, code, text)
            self._close_output_locked()
            try:
                self._restart.put_nowait(None)
            except queue.Full:
                log.info("Screen capture: restart already pending.")

    def _monitor(self) -> None:
        while True:
            try:
                self._restart.get(timeout=_MONITOR_POLL)
            except queue.Empty:
                if not self.running:
                    log.info("Screen capture: monitor detected not running, exiting.")
                    return
                continue
            if not self.running:
                continue
            log.info("Screen capture: received restart signal. Attempting to restart...")
            with self._lock:
                self._cleanup_locked()
            for attempt in range(1, _RESTART_ATTEMPTS + 1):
                log.info("Screen capture: restart attempt #%d", attempt)
                try:
                    self._start()
                except OSError as exc:
                    log.warning("Screen capture: restart attempt #%d failed: %s", attempt, exc)
                    time.sleep(_RESTART_DELAY)
                else:
                    log.info("Screen capture: successfully restarted.")
                    break
            else:
                log.error("Screen capture: failed to restart after %d attempts.",
                          _RESTART_ATTEMPTS)
                with self._lock:
                    self._running = False
                return

    def _close_output_locked(self) -> None:
        if self._output is not None:
            with contextlib.suppress(OSError):
                self._output.close()
            self._output = None

    def _cleanup_locked(self) -> None:
        process = self._process
        if process is not None and process.poll() is None:
            log.info("Screen capture: killing process (PID: %d)...", process.pid)
            with contextlib.suppress(OSError):
                process.kill()
        self._close_output_locked()

    def read_frame(self, size: int = FRAME_BUFFER_SIZE) -> bytes:
        """Read up to ``size`` bytes of encoded output.

        Raises EOFError when the output is closed or has ended.
        """
        with self._lock:
            output = self._output
        if output is None:
            raise EOFError("screen capture output is closed")
        try:
            data = output.read1(size)  # type: ignore[attr-defined]
        except (OSError, ValueError) as exc:
            log.warning("Screen capture: error reading frame: %s", exc)
            raise EOFError(str(exc)) from exc
        if not data:
            raise EOFError("screen capture output ended")
        return data

    def close(self) -> None:
        """Stop the capture and its child process; later calls do nothing."""
        with self._lock:
            if not self._running:
                log.info("Screen capture: already closed or closing.")
                return
            self._running = False
            with contextlib.suppress(queue.Empty):
                self._restart.get_nowait()
            self._cleanup_locked()
        log.info("Screen capture: resources cleaned up after close.")

    def __enter__(self) -> ScreenCapture:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()