from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from whisperkey.state import SessionState, SessionStateMachine

if TYPE_CHECKING:
    from whisperkey.controller import SessionController
    from whisperkey.dispatcher import TriggerDispatcher
    from whisperkey.hotkey_listener.hotkey_listener import HotkeyListener
    from whisperkey.trayicon import TrayIconController


@dataclass
class AppContext:
    """
    The application context, containing all services and state.
    """

    state: SessionStateMachine
    controller: Optional["SessionController"] = None
    dispatcher: Optional["TriggerDispatcher"] = None
    hotkey_listener: Optional["HotkeyListener"] = None
    icon_controller: Optional["TrayIconController"] = None
    log_file_path: Optional[Path] = None
    telemetry_enabled: bool = False
    trace_file_path: Optional[Path] = None

    @property
    def is_busy(self) -> bool:
        """True while a recording or its processing is in progress."""
        return self.state.get_state() is not SessionState.IDLE
