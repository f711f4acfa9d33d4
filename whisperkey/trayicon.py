"""System tray icon, menu and notifications.

The icon shows the session state as a coloured status dot on a microphone
badge: green when idle, red while recording, yellow while processing and
gray when the hotkey is disabled. Errors flash a red cross for a couple of
seconds.
"""

import threading
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from loguru import logger
from PIL import Image, ImageDraw

from whisperkey.state import SessionState, SessionStateMachine
from whisperkey.utils import open_path

if TYPE_CHECKING:
    import pystray

    from whisperkey.app_context import AppContext

APP_TITLE = "WhisperKey"

STATUS_COLORS: Dict[str, Tuple[int, int, int, int]] = {
    "idle": (40, 200, 40, 255),
    "recording": (220, 30, 30, 255),
    "processing": (255, 215, 0, 255),
    "disabled": (128, 128, 128, 255),
}


def _mic_icon(
    size: int = 64,
    color: Tuple[int, int, int] = (0, 128, 255),
    fg: Tuple[int, int, int] = (255, 255, 255),
) -> Image.Image:
    """
    Render a microphone glyph on a circular badge.
    """
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    d = ImageDraw.Draw(img)

    pad = max(2, size // 20)
    d.ellipse(
        [pad, pad, size - pad, size - pad],
        fill=color,
        outline=(20, 20, 20, 220),
        width=max(1, size // 36),
    )

    cx, cy = size // 2, size // 2
    mic_w = max(6, (size * 3) // 10)
    mic_h = max(10, (size * 11) // 20)
    body_top = cy - (mic_h * 4) // 7
    body_bottom = cy + mic_h // 5
    body_left = cx - mic_w // 2
    body_right = cx + mic_w // 2
    white = fg + (255,)

    d.ellipse([body_left, body_top, body_right, body_top + mic_w], fill=white)
    d.rectangle([body_left, body_top + mic_w // 2, body_right, body_bottom], fill=white)

    # Holder arc, stem and base
    holder_w = mic_w + max(6, size // 16)
    holder_top = body_bottom + max(1, size // 80)
    d.arc(
        [
            cx - holder_w // 2,
            holder_top - holder_w // 2,
            cx + holder_w // 2,
            holder_top + holder_w // 2,
        ],
        start=200,
        end=340,
        fill=white,
        width=max(2, size // 18),
    )
    stem_h = max(4, size // 10)
    stem_w = max(3, size // 20)
    stem_top = holder_top + max(1, size // 80)
    d.rectangle(
        [cx - stem_w // 2, stem_top, cx + stem_w // 2, stem_top + stem_h], fill=white
    )
    base_w = max(mic_w, (size * 2) // 5)
    base_top = stem_top + stem_h + max(1, size // 80)
    d.rectangle(
        [cx - base_w // 2, base_top, cx + base_w // 2, base_top + max(3, size // 22)],
        fill=white,
    )
    return img


def _desaturate(img: Image.Image) -> Image.Image:
    """Convert an RGBA image to grayscale, keeping its alpha channel."""
    r, g, b, a = img.convert("RGBA").split()
    gray = Image.merge("RGB", (r, g, b)).convert("L")
    return Image.merge("RGBA", (gray, gray, gray, a))


def _add_status_circle(base_img: Image.Image, fill: Tuple[int, int, int, int]) -> Image.Image:
    """Draw a status dot in the bottom right corner."""
    img = base_img.copy()
    w, h = img.size
    draw = ImageDraw.Draw(img)

    circle_size = max(12, min(w, h) // 3)
    margin = max(2, min(w, h) // 25)
    x = w - circle_size + margin
    y = h - circle_size + margin
    draw.ellipse(
        [x, y, x + circle_size, y + circle_size],
        fill=fill,
        outline=(0, 0, 0, 180),
        width=max(1, circle_size // 8),
    )
    return img


def _add_error_cross(base_img: Image.Image) -> Image.Image:
    img = base_img.copy()
    w, h = img.size
    draw = ImageDraw.Draw(img)
    stroke = max(2, min(w, h) // 10)
    margin = max(4, min(w, h) // 8)
    red = (220, 30, 30, 255)
    draw.line([(margin, margin), (w - margin, h - margin)], fill=red, width=stroke)
    draw.line([(w - margin, margin), (margin, h - margin)], fill=red, width=stroke)
    return img


def create_icon_image(name: str) -> Image.Image:
    """
    Build the tray image for an icon name.

    Args:
        name: "idle", "recording", "processing", "disabled" or "error"

    Returns:
        RGBA image
    """
    if name == "error":
        return _add_error_cross(_mic_icon(color=(180, 180, 0)))
    if name == "disabled":
        return _add_status_circle(_desaturate(_mic_icon()), STATUS_COLORS["disabled"])
    return _add_status_circle(_mic_icon(), STATUS_COLORS.get(name, STATUS_COLORS["idle"]))


def icon_name_for(state: SessionState, enabled: bool) -> str:
    if not enabled:
        return "disabled"
    return state.name.lower()


class TrayIconController:
    """
    Keeps the tray image in sync with the session state.

    Registered as a state listener, so every transition redraws the icon.
    set_icon() with a duration shows a temporary icon (e.g. "error") and then
    falls back to the icon for the current state.
    """

    def __init__(self, icon: "pystray.Icon", state: SessionStateMachine):
        self.icon = icon
        self.state = state
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _draw(self, name: str) -> None:
        try:
            self.icon.icon = create_icon_image(name)
            self.icon.title = f"{APP_TITLE} - {name.capitalize()}"
        except Exception as e:
            logger.warning(f"Failed to update tray icon to '{name}': {e}")

    def current_icon_name(self) -> str:
        return icon_name_for(self.state.get_state(), self.state.is_enabled())

    def set_icon(self, state: str, duration: Optional[float] = None) -> None:
        """
        Show the icon for `state`.

        Args:
            state: Icon name (see create_icon_image)
            duration: If given, revert to the current state's icon after this
                many seconds
        """
        with self._lock:
            self._cancel_timer()
            self._draw(state)
            if duration is not None:
                self._timer = threading.Timer(duration, self.refresh)
                self._timer.daemon = True
                self._timer.start()

    def refresh(self) -> None:
        """Redraw the icon for the current state and enabled flag."""
        with self._lock:
            self._cancel_timer()
            self._draw(self.current_icon_name())
        try:
            self.icon.update_menu()
        except Exception as e:
            logger.debug(f"Could not refresh tray menu: {e}")

    def on_state_change(self, old: SessionState, new: SessionState) -> None:
        self.refresh()

    def close(self) -> None:
        with self._lock:
            self._cancel_timer()


class TrayNotifier:
    """Shows error messages as desktop notifications from the tray icon."""

    def __init__(self, icon: "pystray.Icon"):
        self.icon = icon

    def show_error(self, title: str, message: str) -> None:
        logger.warning(f"{title}: {message}")
        try:
            self.icon.notify(message, title)
        except Exception as e:
            # Not every pystray backend supports notifications
            logger.warning(f"Could not show notification '{title}': {e}")


def _open_file(path) -> None:
    if path is None:
        logger.warning("No file to open")
        return
    try:
        open_path(path)
    except Exception as e:
        logger.error(f"Could not open {path}: {e}")


def build_menu(ctx: "AppContext") -> "pystray.Menu":
    """
    Build the tray menu.

    The menu offers Start/Stop Recording (the same trigger as the hotkey),
    Disable/Enable Hotkey, Open Logs, Open Traces when tracing is on, and
    Quit. Menu labels are evaluated each time the menu is shown.
    """
    from pystray import Menu
    from pystray import MenuItem as Item

    def recording_label(item) -> str:
        if ctx.state.get_state() is SessionState.RECORDING:
            return "Stop Recording"
        return "Start Recording"

    def can_trigger(item) -> bool:
        return (
            ctx.state.is_enabled()
            and ctx.state.get_state() is not SessionState.PROCESSING
        )

    def on_record(icon, item) -> None:
        if ctx.dispatcher is not None:
            ctx.dispatcher.submit("menu")

    def hotkey_label(item) -> str:
        return "Disable Hotkey" if ctx.state.is_enabled() else "Enable Hotkey"

    def on_toggle(icon, item) -> None:
        if ctx.controller is not None:
            ctx.controller.toggle_enabled()
        if ctx.icon_controller is not None:
            ctx.icon_controller.refresh()

    def on_open_logs(icon, item) -> None:
        _open_file(ctx.log_file_path)

    def on_open_traces(icon, item) -> None:
        _open_file(ctx.trace_file_path)

    def on_quit(icon, item) -> None:
        logger.info("Quit requested from tray menu")
        icon.stop()

    return Menu(
        Item(recording_label, on_record, enabled=can_trigger, default=True),
        Item(hotkey_label, on_toggle),
        Menu.SEPARATOR,
        Item("Open Logs", on_open_logs),
        Item("Open Traces", on_open_traces, visible=lambda item: ctx.telemetry_enabled),
        Item("Quit", on_quit),
    )


def create_tray(ctx: "AppContext") -> "pystray.Icon":
    """Create the tray icon (not yet running)."""
    import pystray

    return pystray.Icon(
        name="whisperkey_tray",
        title=APP_TITLE,
        icon=create_icon_image(icon_name_for(ctx.state.get_state(), ctx.state.is_enabled())),
        menu=build_menu(ctx),
    )
