import argparse
import sys
from pathlib import Path

from loguru import logger

from whisperkey.app_context import AppContext
from whisperkey.audio import SoundDeviceRecorder
from whisperkey.commands import CommandParser
from whisperkey.controller import SessionController
from whisperkey.dispatcher import TriggerDispatcher
from whisperkey.errors import RecorderError, StartupError
from whisperkey.hotkey_listener import create_hotkey_listener
from whisperkey.output import PynputOutputSink
from whisperkey.refine import create_refiner
from whisperkey.settings import Settings, load_settings
from whisperkey.state import SessionStateMachine
from whisperkey.telemetry import (
    get_trace_file_path,
    initialize_telemetry,
    shutdown_telemetry,
)
from whisperkey.transcribe import WhisperTranscriber
from whisperkey.trayicon import TrayIconController, TrayNotifier, create_tray
from whisperkey.utils import get_app_data_dir


def get_log_file_path() -> Path:
    """Get the default path to the log file in the app data directory."""
    data_dir = get_app_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "whisperkey.log"


def configure_logging(log_file: Path | None = None) -> Path:
    """Configure loguru to log to both stderr and a rotating file.

    Args:
        log_file: Optional custom path to log file. If None, uses platform defaults.

    Returns:
        The path to the log file being used.
    """
    if log_file is None:
        log_file = get_log_file_path()
    else:
        log_file = Path(log_file).expanduser().resolve()
        log_file.parent.mkdir(parents=True, exist_ok=True)

    # The default stderr handler stays in place for console output
    logger.add(
        log_file,
        rotation="10 MB",
        retention=3,
        compression="zip",
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        backtrace=True,
        diagnose=True,
    )

    logger.info(f"Logging to file: {log_file}")
    return log_file


def build_recorder(settings: Settings) -> SoundDeviceRecorder:
    try:
        return SoundDeviceRecorder(
            device_name=settings.recorder.device_name,
            sample_rate=settings.recorder.sample_rate,
        )
    except RecorderError as e:
        raise StartupError(f"Audio input unavailable: {e}") from e


def main() -> int:
    """Main application entry point."""
    parser = argparse.ArgumentParser(description="WhisperKey voice typing.")
    parser.add_argument(
        "--settings-file",
        type=Path,
        help="Path to the settings TOML file.",
    )
    args = parser.parse_args()

    settings = load_settings(args.settings_file)
    log_file_path = configure_logging(settings.log_file)

    initialize_telemetry(
        service_name=settings.telemetry.service_name,
        otlp_endpoint=settings.telemetry.otlp_endpoint,
        export_to_file=settings.telemetry.export_to_file,
        trace_file=settings.telemetry.trace_file,
        enabled=settings.telemetry.enabled,
        rotation_enabled=settings.telemetry.rotation_enabled,
        rotation_max_size_mb=settings.telemetry.rotation_max_size_mb,
    )

    logger.info("Starting WhisperKey...")

    exit_code = 0
    recorder = None
    dispatcher = None
    hotkey_listener = None
    icon_controller = None
    output = None

    try:
        trace_file_path = None
        if settings.telemetry.enabled and settings.telemetry.export_to_file:
            trace_file_path = get_trace_file_path(settings.telemetry.trace_file)

        # The hotkey is registered by the controller once everything is wired
        state = SessionStateMachine(enabled=False)
        ctx = AppContext(
            state=state,
            log_file_path=log_file_path,
            telemetry_enabled=settings.telemetry.enabled,
            trace_file_path=trace_file_path,
        )

        # Collaborators; any failure here aborts startup
        recorder = build_recorder(settings)
        transcriber = WhisperTranscriber(settings.transcribe)
        transcriber.load()
        refiner = create_refiner(settings.refine)

        def on_hotkey_press(hotkey: str) -> None:
            logger.debug(f"Hotkey pressed: {hotkey}")
            if ctx.dispatcher is not None:
                ctx.dispatcher.submit("hotkey")

        try:
            hotkey_listener = create_hotkey_listener(
                settings.hotkey.hotkey, on_hotkey_press=on_hotkey_press
            )
        except (RuntimeError, ValueError) as e:
            raise StartupError(str(e)) from e
        ctx.hotkey_listener = hotkey_listener

        output = PynputOutputSink(
            method=settings.output.method,
            progress_indicators=settings.output.progress_indicators,
            char_delay=settings.output.char_delay,
            keys_released=hotkey_listener.keys_released,
            release_timeout=settings.output.release_timeout,
            restore_delay=settings.output.clipboard_restore_delay,
        )

        tray = create_tray(ctx)
        icon_controller = TrayIconController(tray, state)
        ctx.icon_controller = icon_controller
        state.add_listener(icon_controller.on_state_change)

        controller = SessionController(
            state=state,
            recorder=recorder,
            transcriber=transcriber,
            output=output,
            refiner=refiner,
            notifier=TrayNotifier(tray),
            trigger_source=hotkey_listener,
            icon_controller=icon_controller,
            parser=CommandParser(
                refine_keywords=settings.commands.refine_keywords,
                clipboard_keywords=settings.commands.clipboard_keywords,
            ),
            minimum_duration=settings.recorder.minimum_duration,
        )
        ctx.controller = controller

        dispatcher = TriggerDispatcher(controller)
        ctx.dispatcher = dispatcher
        dispatcher.start()

        if settings.hotkey.enabled:
            if controller.set_enabled(True):
                logger.info(f"Listening for hotkey: {settings.hotkey.hotkey}")
        else:
            logger.info("Hotkey disabled in settings; enable it from the tray menu")
        icon_controller.refresh()

        logger.info("Press Ctrl+C to exit.")
        # Blocks until Quit is chosen from the tray menu
        tray.run()

    except KeyboardInterrupt:
        logger.info("Shutdown requested via KeyboardInterrupt.")
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        exit_code = 1
    except Exception as e:
        logger.opt(exception=e).error(f"An unexpected error occurred: {e}")
        exit_code = 1
    finally:
        logger.info("Shutting down...")

        if hotkey_listener is not None:
            try:
                hotkey_listener.stop_listening()
            except Exception as e:
                logger.error(f"Error stopping listener: {e}")

        if dispatcher is not None:
            try:
                dispatcher.shutdown(timeout=5.0)
            except Exception as e:
                logger.error(f"Error shutting down dispatcher: {e}")

        if recorder is not None:
            recorder.close()

        if output is not None:
            output.close()

        if icon_controller is not None:
            icon_controller.close()

        try:
            shutdown_telemetry()
        except Exception as e:
            logger.error(f"Error shutting down telemetry: {e}")

        logger.info("WhisperKey finished.")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
