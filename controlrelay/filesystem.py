"""Filesystem browsing and streamed file / folder-as-zip downloads."""

from __future__ import annotations

import enum
import io
import logging
import os
import stat
import string
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass, field

__all__ = [
    "CHUNK_SIZE",
    "FSNode",
    "FSResponse",
    "FileChunk",
    "NodeType",
    "StatusCode",
    "TransferError",
    "get_fs",
    "get_roots",
    "iter_file_chunks",
    "iter_folder_zip_chunks",
    "list_directory_contents",
]

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class NodeType(enum.Enum):
    """Kind of a filesystem node."""

    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True)
class FSNode:
    """One entry of a directory listing."""

    path: str
    name: str
    type: NodeType
    has_children: bool = False
    size: int = 0


@dataclass
class FSResponse:
    """Result of a browse request."""

    requested_path: str
    nodes: list[FSNode] = field(default_factory=list)
    error_message: str = ""


@dataclass(frozen=True)
class FileChunk:
    """A piece of a download; the first one carries the total size."""

    content: bytes
    total_size: int | None = None


class StatusCode(enum.Enum):
    """Reason a transfer was refused or failed."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    INTERNAL = "internal"


class TransferError(Exception):
    """A download could not be started or continued."""

    def __init__(self, code: StatusCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _base(path: str) -> str:
    stripped = path.rstrip("/\\")
    if not path:
        return "."
    if not stripped:
        return os.sep
    return os.path.basename(stripped) or stripped


def _has_children(path: str) -> bool:
    try:
        with os.scandir(path) as entries:
            return next(entries, None) is not None
    except OSError as exc:
        log.debug("Cannot read '%s' to check for children: %s", path, exc)
        return False


def list_directory_contents(dir_path: str) -> list[FSNode]:
    """List a directory, sorted by name; raises OSError if it cannot be read."""
    with os.scandir(dir_path) as scan:
        entries = sorted(scan, key=lambda entry: entry.name)
    nodes = []
    for entry in entries:
        node_path = os.path.join(dir_path, entry.name)
        try:
            info = entry.stat(follow_symlinks=False)
        except OSError as exc:
            log.warning("Could not get file info for '%s': %s. Skipping.", node_path, exc)
            continue
        if entry.is_dir(follow_symlinks=False):
            nodes.append(FSNode(node_path, entry.name, NodeType.FOLDER,
                                _has_children(node_path), info.st_size))
        else:
            nodes.append(FSNode(node_path, entry.name, NodeType.FILE, False, info.st_size))
    log.info("Finished listing '%s'. Found %d valid nodes.", dir_path, len(nodes))
    return nodes


def get_roots() -> list[FSNode]:
    """Return the filesystem roots: drive letters on Windows, '/' elsewhere."""
    if os.name != "nt":
        return [FSNode("/", "/", NodeType.FOLDER, _has_children("/"), 0)]
    drives = []
    for letter in string.ascii_uppercase:
        path = f"{letter}:{os.sep}"
        if os.path.isdir(path):
            drives.append(FSNode(path, path, NodeType.FOLDER, _has_children(path), 0))
    if not drives:
        log.info("No accessible Windows drives found.")
    return drives


def get_fs(path: str) -> FSResponse:
    """Browse ``path``, or the roots when it is empty; errors go into the response."""
    response = FSResponse(requested_path=path)
    if not path:
        response.nodes = get_roots()
        return response
    try:
        response.nodes = list_directory_contents(path)
    except PermissionError:
        response.error_message = f"Permission denied: {_base(path)}"
    except FileNotFoundError:
        response.error_message = f"Path does not exist: {_base(path)}"
    except OSError as exc:
        response.error_message = f"Cannot access '{_base(path)}': {exc}"
    if response.error_message:
        log.warning("Error listing directory '%s': %s", path, response.error_message)
    return response


def _check_chunk_size(chunk_size: int) -> None:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")


def iter_file_chunks(path: str, chunk_size: int = CHUNK_SIZE) -> Iterator[FileChunk]:
    """Stream a regular file; the first chunk carries its size.

    The file is checked and opened before this returns, so refusals raise
    TransferError at call time.
    """
    _check_chunk_size(chunk_size)
    try:
        info = os.stat(path)
    except FileNotFoundError as exc:
        raise TransferError(StatusCode.NOT_FOUND, f"File not found: {exc}") from exc
    except OSError as exc:
        raise TransferError(StatusCode.INTERNAL,
                            f"Failed to access file information: {exc}") from exc
    if stat.S_ISDIR(info.st_mode):
        raise TransferError(
            StatusCode.INVALID_ARGUMENT,
            "Path is a directory, not a file. Use the folder download for directories.",
        )
    try:
        handle = open(path, "rb")
    except PermissionError as exc:
        raise TransferError(StatusCode.PERMISSION_DENIED,
                            f"Permission denied to open file: {exc}") from exc
    except OSError as exc:
        raise TransferError(StatusCode.INTERNAL, f"Failed to open file: {exc}") from exc
    return _stream_file(handle, info.st_size, chunk_size, path)


def _stream_file(handle, total_size: int, chunk_size: int, path: str) -> Iterator[FileChunk]:
    with handle:
        first = True
        while True:
            try:
                data = handle.read(chunk_size)
            except OSError as exc:
                raise TransferError(StatusCode.INTERNAL,
                                    f"Error reading file chunk: {exc}") from exc
            if not data:
                break
            yield FileChunk(data, total_size if first else None)
            first = False
    log.info("Successfully streamed file: '%s'", path)


def iter_folder_zip_chunks(path: str, chunk_size: int = CHUNK_SIZE) -> Iterator[FileChunk]:
    """Stream a directory as a zip archive built on the fly.

    The first chunk carries a total size of 0, since the archive size is not
    known in advance.
    """
    _check_chunk_size(chunk_size)
    try:
        info = os.stat(path)
    except FileNotFoundError as exc:
        raise TransferError(StatusCode.NOT_FOUND, f"Folder not found: {exc}") from exc
    except OSError as exc:
        raise TransferError(StatusCode.INTERNAL,
                            f"Failed to access folder information: {exc}") from exc
    if not stat.S_ISDIR(info.st_mode):
        raise TransferError(StatusCode.INVALID_ARGUMENT, "Path is not a directory.")
    return _stream_zip(path, chunk_size)


class _Sink(io.RawIOBase):
    """Non-seekable, write-only stream that zipfile writes into."""

    def __init__(self) -> None:
        super().__init__()
        self._pending = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        view = memoryview(data)
        self._pending += view
        return view.nbytes

    def take(self, chunk_size: int, final: bool) -> Iterator[bytes]:
        while len(self._pending) >= chunk_size or (final and self._pending):
            piece = bytes(self._pending[:chunk_size])
            del self._pending[:chunk_size]
            yield piece


def _walk(root: str, prefix: str = "") -> Iterator[tuple[str, str, bool]]:
    """Yield (full path, archive name, is_dir) in lexical order, parents first."""
    try:
        with os.scandir(root) as scan:
            entries = sorted(scan, key=lambda entry: entry.name)
    except PermissionError as exc:
        log.warning("Error accessing path '%s' during walk: %s. Skipping.", root, exc)
        return
    for entry in entries:
        rel = f"{prefix}{entry.name}"
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except PermissionError as exc:
            log.warning("Error accessing path '%s' during walk: %s. Skipping.", entry.path, exc)
            continue
        yield entry.path, rel, is_dir
        if is_dir:
            yield from _walk(entry.path, f"{rel}/")


def _stream_zip(root: str, chunk_size: int) -> Iterator[FileChunk]:
    for index, piece in enumerate(_zip_pieces(root, chunk_size)):
        yield FileChunk(piece, 0 if index == 0 else None)
    log.info("Successfully streamed zip archive for folder: '%s'", root)


def _zip_pieces(root: str, chunk_size: int) -> Iterator[bytes]:
    sink = _Sink()
    with zipfile.ZipFile(sink, "w") as archive:
        try:
            for full, rel, is_dir in _walk(root):
                try:
                    info = zipfile.ZipInfo.from_file(full, rel, strict_timestamps=False)
                except OSError as exc:
                    log.warning("Error creating zip header for '%s': %s. Skipping.", full, exc)
                    continue
                if is_dir:
                    info.compress_type = zipfile.ZIP_STORED
                    archive.writestr(info, b"")
                else:
                    info.compress_type = zipfile.ZIP_DEFLATED
                    try:
                        source = open(full, "rb")
                    except PermissionError as exc:
                        log.warning("Error opening '%s' for zipping: %s. Skipping.", full, exc)
                        continue
                    with source, archive.open(info, "w") as target:
                        while data := source.read(chunk_size):
                            target.write(data)
                            yield from sink.take(chunk_size, False)
                yield from sink.take(chunk_size, False)
        except OSError as exc:
            log.error("Directory walk or zipping failed for '%s': %s", root, exc)
    yield from sink.take(chunk_size, True)