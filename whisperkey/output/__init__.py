"""Text output to the focused window and the clipboard."""

from .pynput_output import OutputMethod, PynputOutputSink

__all__ = [
    "OutputMethod",
    "PynputOutputSink",
]
