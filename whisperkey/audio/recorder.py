from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
from loguru import logger

from whisperkey.errors import RecorderError

SAMPLE_RATE = 16000  # Whisper models expect 16 kHz mono
CHANNELS = 1


@dataclass(frozen=True)
class CapturedAudio:
    """Mono float32 samples captured during one recording."""

    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE

    @property
    def duration(self) -> float:
        """Length of the recording in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / float(self.sample_rate)

    @classmethod
    def empty(cls, sample_rate: int = SAMPLE_RATE) -> "CapturedAudio":
        return cls(samples=np.zeros(0, dtype=np.float32), sample_rate=sample_rate)


class SoundDeviceRecorder:
    """Records microphone audio into memory using sounddevice.

    Audio blocks are appended from the PortAudio callback thread and joined
    into a single array when the recording stops.
    """

    def __init__(
        self,
        device_name: Optional[str] = None,
        sample_rate: int = SAMPLE_RATE,
    ) -> None:
        """Initialize the recorder and resolve the input device.

        Args:
            device_name: Substring of the input device name, or None for the
                system default device
            sample_rate: Capture sample rate in Hz

        Raises:
            RecorderError: If sounddevice is unavailable or no input device
                matches
        """
        try:
            logger.debug("Initializing sound device...")
            import sounddevice as sd

            self.sd = sd
        except (OSError, ModuleNotFoundError) as e:
            raise RecorderError(f"SoundDevice library error: {e}") from e

        self.sample_rate = sample_rate
        self.device_id = self._find_device_id(device_name)
        logger.debug(f"Using input device ID: {self.device_id}")

        self._stream = None
        self._blocks: List[np.ndarray] = []
        self._lock = threading.Lock()
        self._active = False

    def _find_device_id(self, device_name: Optional[str]) -> Optional[int]:
        """Find the input device ID by name or return None for default.

        Raises:
            RecorderError: If no input device exists or none matches
        """
        devices = self.sd.query_devices()
        input_devices = [
            (i, d) for i, d in enumerate(devices) if d["max_input_channels"] > 0
        ]
        if not input_devices:
            raise RecorderError("No audio input devices found.")

        if not device_name:
            return None

        for i, device in input_devices:
            if device_name.lower() in device["name"].lower():
                logger.debug(f"Found specified device: {device['name']} (ID: {i})")
                return i
        available_names = [d["name"] for _, d in input_devices]
        raise RecorderError(
            f"Device '{device_name}' not found. Available input devices: {available_names}"
        )

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any):
        if status:
            logger.debug(f"Audio callback status: {status}")
        with self._lock:
            if self._active:
                self._blocks.append(indata[:, 0].copy())

    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def start(self) -> None:
        """Start capturing audio.

        Raises:
            RecorderError: If already recording or the stream cannot start
        """
        with self._lock:
            if self._active:
                raise RecorderError("Already recording")
            self._blocks = []

        try:
            stream = self.sd.InputStream(
                samplerate=self.sample_rate,
                channels=CHANNELS,
                dtype="float32",
                callback=self._callback,
                device=self.device_id,
            )
            stream.start()
        except Exception as e:
            raise RecorderError(f"Failed to start audio stream: {e}") from e

        with self._lock:
            self._stream = stream
            self._active = True
        logger.debug("Recording started")

    def stop(self) -> CapturedAudio:
        """Stop capturing and return everything recorded since start().

        Raises:
            RecorderError: If not recording or the stream fails to close
        """
        with self._lock:
            if not self._active:
                raise RecorderError("Not recording")
            stream = self._stream
            self._stream = None
            self._active = False

        try:
            stream.stop()
            stream.close()
        except Exception as e:
            raise RecorderError(f"Failed to stop audio stream: {e}") from e
        finally:
            with self._lock:
                blocks = self._blocks
                self._blocks = []

        if blocks:
            samples = np.concatenate(blocks).astype(np.float32, copy=False)
        else:
            samples = np.zeros(0, dtype=np.float32)

        audio = CapturedAudio(samples=samples, sample_rate=self.sample_rate)
        logger.debug(
            f"Recorded {len(samples)} samples ({audio.duration:.2f} seconds)"
        )
        if len(samples):
            logger.debug(
                f"Audio levels - Max amplitude: {float(np.max(np.abs(samples))):.4f}, "
                f"RMS: {float(np.sqrt(np.mean(samples**2))):.4f}"
            )
        return audio

    def close(self) -> None:
        """Release the stream if a recording is still running."""
        with self._lock:
            stream = self._stream
            self._stream = None
            self._active = False
            self._blocks = []
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
