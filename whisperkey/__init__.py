"""WhisperKey: push a hotkey, speak, and have the transcript typed for you."""

__version__ = "0.1.0"
