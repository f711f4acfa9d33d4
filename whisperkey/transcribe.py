"""Speech-to-text for captured recordings.

Transcribes CapturedAudio with either a local faster-whisper model or a hosted
model through LiteLLM. Exactly one runtime is used per transcription; a
failure is reported as TranscriptionError and never retried.
"""

import os
import tempfile
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field

from whisperkey.audio.recorder import CapturedAudio
from whisperkey.errors import StartupError, TranscriptionError
from whisperkey.utils import get_app_data_dir

FasterWhisperModels = Literal[
    "tiny",
    "tiny.en",
    "base",
    "base.en",
    "small",
    "small.en",
    "medium",
    "medium.en",
    "large-v3",
    "large-v3-turbo",
]


class LocalSTTRuntime(BaseModel):
    """Configuration for local Whisper transcription runtime."""

    provider: Literal["local"] = "local"
    model: FasterWhisperModels = Field(
        default="small.en",
        description="faster-whisper model name",
    )
    device: Literal["cuda", "cpu"] = Field(
        default="cpu", description="Device for inference"
    )


class LiteLLMSTTRuntime(BaseModel):
    """Configuration for LiteLLM API transcription runtime."""

    provider: Literal["litellm"] = "litellm"
    model: str = Field(
        default="whisper-1",
        description="LiteLLM model identifier (e.g., whisper-1, azure/whisper)",
    )
    timeout: int = Field(default=60, gt=0, description="Request timeout in seconds")


STTRuntime = Annotated[
    Union[LocalSTTRuntime, LiteLLMSTTRuntime],
    Field(discriminator="provider"),
]


class TranscribeConfig(BaseModel):
    """Configuration for the transcriber."""

    runtime: STTRuntime = Field(
        default_factory=LocalSTTRuntime,
        description="STT runtime configuration",
    )
    language: str = Field(
        default="en",
        description="Language code for transcription (e.g., en, es, fr)",
    )
    download_root: Optional[str] = Field(
        default=None,
        description="Directory for model downloads (local provider only)",
    )


class WhisperTranscriber:
    """Transcribes captured audio with the configured runtime."""

    def __init__(self, config: Optional[TranscribeConfig] = None):
        self.cfg = config or TranscribeConfig()
        self._model = None

    def describe(self) -> str:
        runtime = self.cfg.runtime
        if isinstance(runtime, LocalSTTRuntime):
            return f"local(model={runtime.model}, device={runtime.device})"
        return f"litellm(model={runtime.model})"

    def load(self) -> None:
        """Load the local model up front so a broken setup fails at startup.

        Raises:
            StartupError: If the local model cannot be loaded
        """
        if not isinstance(self.cfg.runtime, LocalSTTRuntime):
            return
        try:
            self._get_local_model()
        except Exception as e:
            raise StartupError(f"Failed to load Whisper model: {e}") from e
        logger.info(f"Whisper model loaded: {self.describe()}")

    def _get_local_model(self):
        if self._model is not None:
            return self._model

        from faster_whisper import WhisperModel

        runtime = self.cfg.runtime
        models_dir = self.cfg.download_root or str(get_app_data_dir() / "models")
        logger.debug(f"Using model download root: {models_dir}")

        compute_type = "float16" if runtime.device == "cuda" else "int8"
        self._model = WhisperModel(
            runtime.model,
            device=runtime.device,
            compute_type=compute_type,
            download_root=models_dir,
        )
        return self._model

    def _transcribe_local(self, audio: CapturedAudio) -> str:
        model = self._get_local_model()
        segments, _info = model.transcribe(audio.samples, language=self.cfg.language)
        return " ".join(
            segment.text.strip() for segment in segments if segment.text.strip()
        )

    def _transcribe_litellm(self, audio: CapturedAudio) -> str:
        if not os.getenv("OPENAI_API_KEY"):
            raise TranscriptionError(
                "OPENAI_API_KEY environment variable not set. "
                "Please set it to use the litellm provider."
            )

        import litellm
        import soundfile as sf

        runtime = self.cfg.runtime
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp_file:
            wav_path = Path(tmp_file.name)
        try:
            sf.write(str(wav_path), audio.samples, audio.sample_rate)
            with wav_path.open("rb") as fh:
                transcript = litellm.transcription(
                    model=runtime.model,
                    file=fh,
                    language=self.cfg.language,
                    timeout=runtime.timeout,
                )
            return transcript.text or ""
        finally:
            wav_path.unlink(missing_ok=True)

    def transcribe(self, audio: CapturedAudio) -> str:
        """Transcribe a recording.

        Args:
            audio: The captured recording

        Returns:
            Transcribed text with whitespace collapsed; empty if no speech

        Raises:
            TranscriptionError: If the runtime fails
        """
        if len(audio.samples) == 0:
            raise TranscriptionError("No audio samples provided")

        logger.debug(f"Transcribing {audio.duration:.2f}s with {self.describe()}")
        try:
            if isinstance(self.cfg.runtime, LocalSTTRuntime):
                text = self._transcribe_local(audio)
            else:
                text = self._transcribe_litellm(audio)
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(
                f"Transcription failed ({self.describe()}): {type(e).__name__}: {e}"
            ) from e

        return " ".join(text.split())
