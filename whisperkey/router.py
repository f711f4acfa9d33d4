"""Deliver a parsed transcript to its destination.

    NONE                  -> type_text(text)
    CLIPBOARD             -> copy_to_clipboard(text)
    REFINE                -> refine(text), then type_text(refined)
    REFINE_AND_CLIPBOARD  -> refine(text), then copy_to_clipboard(refined)
"""

from loguru import logger

from whisperkey.commands import ParsedCommand
from whisperkey.errors import OutputError, RefinementError
from whisperkey.protocols import OutputSink, TextRefiner
from whisperkey.telemetry import traced_span

REFINE_PROGRESS_LABEL = "Asking Claude"


class ActionRouter:
    """Routes parsed commands to the output sink, refining first if asked."""

    def __init__(self, output: OutputSink, refiner: TextRefiner):
        self.output = output
        self.refiner = refiner

    def _refine(self, text: str) -> str:
        try:
            self.output.show_progress(REFINE_PROGRESS_LABEL)
        except Exception as e:
            logger.warning(f"Could not show refinement indicator: {e}")

        try:
            return self.refiner.refine(text)
        except RefinementError:
            raise
        except Exception as e:
            raise RefinementError(f"Refinement failed: {e}") from e

    def _deliver(self, text: str, to_clipboard: bool) -> None:
        try:
            if to_clipboard:
                self.output.copy_to_clipboard(text)
            else:
                self.output.type_text(text)
        except OutputError:
            raise
        except Exception as e:
            raise OutputError(str(e)) from e

    def route(self, parsed: ParsedCommand) -> str:
        """Deliver parsed.text according to parsed.command.

        Args:
            parsed: Result of the command parser

        Returns:
            The text that was delivered (refined text for refine commands)

        Raises:
            RefinementError: If the refiner fails; nothing is delivered
            OutputError: If typing or the clipboard fails
        """
        text = parsed.text
        if parsed.refine:
            logger.info(f"Refining text with {type(self.refiner).__name__}")
            with traced_span("stage.refine", refiner=type(self.refiner).__name__):
                text = self._refine(text)

        destination = "clipboard" if parsed.to_clipboard else "active window"
        logger.debug(f"Routing {parsed.command.name} to {destination}")
        with traced_span("stage.output", destination=destination):
            self._deliver(text, parsed.to_clipboard)
        return text
