"""Microphone capture."""

from .recorder import SAMPLE_RATE, CapturedAudio, SoundDeviceRecorder

__all__ = [
    "SAMPLE_RATE",
    "CapturedAudio",
    "SoundDeviceRecorder",
]
