"""Helpers for the remote terminal: output cleaning and shell command lines."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

__all__ = ["build_command_line", "decode_output", "strip_ansi"]

log = logging.getLogger(__name__)

_ANSI_ESCAPE = re.compile(r"\x1b\[\??[0-9;]*[a-zA-Z]|\x1b\][^\x07]*\x07|\x07")


def strip_ansi(text: str) -> str:
    """Remove CSI sequences, OSC sequences ended by BEL, and stray BEL characters."""
    return _ANSI_ESCAPE.sub("", text)


def decode_output(data: bytes) -> str:
    """Turn a chunk of terminal output into text for the client.

    Valid UTF-8 is decoded and stripped of escape sequences; anything else
    is replaced by a single newline.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        log.warning("Invalid UTF-8 in terminal output chunk. Sending newline. "
                    "Original (hex): %s", data.hex())
        return "\n"
    return strip_ansi(text)


def build_command_line(shell_path: str, args: Iterable[str] = ()) -> str:
    """Join a shell path and its arguments, quoting arguments that hold spaces."""
    pieces = [shell_path]
    pieces.extend(f'"{arg}"' if " " in arg else arg for arg in args)
    return " ".join(pieces)