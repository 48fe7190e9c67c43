"""Translation of remote mouse and keyboard events into local input actions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

__all__ = [
    "FeedRequest",
    "InputBackend",
    "InputHandler",
    "Point",
    "map_key",
    "process_keyboard_input",
    "scale_factors",
]

log = logging.getLogger(__name__)

_MODIFIERS = frozenset({"shift", "ctrl", "alt", "cmd"})

_SPECIAL_KEYS: dict[str, str] = {
    "Return": "enter",
    "Enter": "enter",
    "Space": "space",
    "Backspace": "backspace",
    "Delete": "delete",
    "Tab": "tab",
    "Escape": "escape",
    "Up": "up",
    "Down": "down",
    "Left": "left",
    "Right": "right",
    "Home": "home",
    "End": "end",
    "PageUp": "pageup",
    "PageDown": "pagedown",
    "NumLock": "numlock",
    "NumEnter": "enter",
    "NumAdd": "+",
    "NumpadAdd": "+",
    "NumSubtract": "-",
    "NumpadSubtract": "-",
    "NumMultiply": "*",
    "NumpadMultiply": "*",
    "NumDivide": "/",
    "NumpadDivide": "/",
    "NumDecimal": ".",
    "NumpadDecimal": ".",
}
_SPECIAL_KEYS.update(dict.fromkeys(("ShiftL", "LeftShift", "ShiftR", "RightShift"), "shift"))
_SPECIAL_KEYS.update(
    dict.fromkeys(("ControlL", "LeftControl", "ControlR", "RightControl"), "ctrl")
)
_SPECIAL_KEYS.update(dict.fromkeys(("AltL", "LeftAlt", "AltR", "RightAlt", "Menu"), "alt"))
_SPECIAL_KEYS.update(
    dict.fromkeys(("SuperL", "LeftSuper", "SuperR", "RightSuper", "MetaL", "MetaR"), "cmd")
)
_SPECIAL_KEYS.update({f"F{n}": f"f{n}" for n in range(1, 13)})
_SPECIAL_KEYS.update({f"Num{n}": str(n) for n in range(10)})

_KEY_SUFFIX_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789")


@dataclass(frozen=True)
class Point:
    """A pointer position in client coordinates."""

    x: float
    y: float


@dataclass
class FeedRequest:
    """One message sent by the viewing client: an input event or the initial size."""

    message: str = ""
    client_width: int = 0
    client_height: int = 0
    mouse_event_type: str = ""
    mouse_x: float = 0.0
    mouse_y: float = 0.0
    mouse_btn: str = "left"
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    batched_mouse_moves: list[Point | None] = field(default_factory=list)
    keyboard_event_type: str = ""
    key_name: str = ""
    key_char_str: str = ""
    modifier_shift: bool = False
    modifier_ctrl: bool = False
    modifier_alt: bool = False
    modifier_super: bool = False
    timestamp: int = 0


class InputBackend(Protocol):
    """Something that can drive the local mouse and keyboard."""

    def move(self, x: int, y: int) -> None: ...

    def mouse_down(self, button: str) -> None: ...

    def mouse_up(self, button: str) -> None: ...

    def scroll(self, amount: int, direction: str) -> None: ...

    def key_toggle(self, key: str, state: str) -> None: ...

    def key_tap(self, key: str) -> None: ...

    def type_str(self, text: str) -> None: ...


def _flag(value: bool) -> str:
    return "true" if value else "false"


def map_key(name: str) -> tuple[str, bool]:
    """Map a client key name to a backend key name and whether it is a special key."""
    special = _SPECIAL_KEYS.get(name)
    if special is not None:
        return special, True
    if name.startswith("Key") and len(name) == 4 and name[3] in _KEY_SUFFIX_CHARS:
        return name[3].lower(), False
    if len(name) == 1:
        return name.lower(), False
    if name:
        log.info("Unhandled key name for mapping: '%s'", name)
    return name.lower(), False


def scale_factors(
    server_width: int, server_height: int, client_width: int, client_height: int
) -> tuple[float, float]:
    """Return the factors that turn client coordinates into server coordinates."""
    if client_width == 0 or client_height == 0:
        log.info("Client width or height is zero, using 1.0 for scale factors.")
        return 1.0, 1.0
    return server_width / client_width, server_height / client_height


def process_keyboard_input(request: FeedRequest, backend: InputBackend) -> None:
    """Replay one keyboard event on ``backend``."""
    event_type = request.keyboard_event_type
    key_name = request.key_name
    key_char = request.key_char_str

    log.info(
        "Received KeyboardEvent: Type='%s', FyneKeyName='%s', KeyChar='%s', "
        "Modifiers: Shift[%s], Ctrl[%s], Alt[%s], Super[%s]",
        event_type, key_name, key_char,
        _flag(request.modifier_shift), _flag(request.modifier_ctrl),
        _flag(request.modifier_alt), _flag(request.modifier_super),
    )

    key, is_special = map_key(key_name)
    if key_name:
        log.info("Mapped FyneKeyName '%s' to backend key '%s' (isSpecial: %s)",
                 key_name, key, _flag(is_special))

    if event_type == "keydown" and key == "delete" and request.modifier_ctrl \
            and request.modifier_alt:
        log.info("Action: Simulating Ctrl+Alt+Delete")
        backend.key_toggle("ctrl", "down")
        backend.key_toggle("alt", "down")
        backend.key_tap("delete")
        backend.key_toggle("alt", "up")
        backend.key_toggle("ctrl", "up")
        return

    if event_type == "keydown":
        if key:
            if key in _MODIFIERS:
                log.info("Action: Modifier '%s' pressed down", key)
                backend.key_toggle(key, "down")
            elif is_special:
                log.info("Action: Tapping special key '%s'", key)
                backend.key_tap(key)
            else:
                log.info("Action: Tapping key '%s'", key)
                backend.key_tap(key)
        elif key_char:
            log.info("Action: Typing character from keyChar on keydown '%s'", key_char)
            backend.type_str(key_char)
        else:
            log.info("Action: Ignoring keydown event with empty key name and KeyChar.")
    elif event_type == "keyup":
        if key:
            if key in _MODIFIERS:
                log.info("Action: Modifier '%s' released", key)
                backend.key_toggle(key, "up")
            else:
                log.info("Action: Ignoring non-modifier keyup for '%s' "
                         "(handled by tap on keydown)", key)
        else:
            log.info("Action: Ignoring keyup event with empty key name.")
    elif event_type == "keychar":
        if key_char:
            log.info("Action: Typing character from keychar event '%s'", key_char)
            backend.type_str(key_char)
        else:
            log.info("Action: Ignoring keychar event with empty KeyChar.")
    else:
        log.info("Action: Unhandled keyboard event type: '%s'", event_type)


class InputHandler:
    """Applies client input events to a backend, scaling pointer coordinates."""

    def __init__(
        self,
        backend: InputBackend,
        scale_x: float = 1.0,
        scale_y: float = 1.0,
        allow_mouse: bool = True,
    ) -> None:
        self.backend = backend
        self.scale_x = scale_x
        self.scale_y = scale_y
        self.allow_mouse = allow_mouse

    def _move(self, x: float, y: float) -> None:
        self.backend.move(int(x * self.scale_x), int(y * self.scale_y))

    def handle(self, request: FeedRequest) -> None:
        """Apply one event."""
        if request.message == "mouse_event":
            self._handle_mouse(request)
        elif request.message == "keyboard_event":
            process_keyboard_input(request, self.backend)
        else:
            log.info("Unknown input event message type: %s", request.message)

    def _handle_mouse(self, request: FeedRequest) -> None:
        event_type = request.mouse_event_type
        if not self.allow_mouse:
            batched = event_type == "batched_mouse_moves" and bool(request.batched_mouse_moves)
            log.info("Mouse event (type: %s, batched: %s) ignored: "
                     "Mouse control denied by host permissions.", event_type, _flag(batched))
            return

        if event_type == "batched_mouse_moves":
            self._handle_batch(request.batched_mouse_moves)
            return

        self._move(request.mouse_x, request.mouse_y)
        if event_type == "down":
            self.backend.mouse_down(request.mouse_btn)
        elif event_type == "up":
            self.backend.mouse_up(request.mouse_btn)
        elif event_type == "scroll":
            self._scroll(request.scroll_x, request.scroll_y)
        elif event_type not in ("move", "in", "out"):
            log.info("Received unhandled mouse event type: %s", event_type)

    def _handle_batch(self, moves: Sequence[Point | None]) -> None:
        if not moves:
            log.info("'batched_mouse_moves' received, but the batch contains no points.")
            return
        log.info("Processing 'batched_mouse_moves' with %d points.", len(moves))
        for point in moves:
            if point is not None:
                self._move(point.x, point.y)

    def _scroll(self, scroll_x: float, scroll_y: float) -> None:
        if scroll_x > 0:
            self.backend.scroll(int(scroll_x), "right")
        elif scroll_x < 0:
            self.backend.scroll(int(-scroll_x), "left")
        if scroll_y > 0:
            self.backend.scroll(int(scroll_y), "down")
        elif scroll_y < 0:
            self.backend.scroll(int(-scroll_y), "up")
        log.info("Handled scroll event: dX=%.2f, dY=%.2f", scroll_x, scroll_y)