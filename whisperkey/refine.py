"""Text refinement for "claude ..." voice commands.

Two providers are supported:

- claude_cli: runs the `claude` command line tool in print mode
- litellm: sends the text to any model LiteLLM supports (OpenAI, Anthropic,
  Ollama, ...)

Both return only the refined text and raise RefinementError on any failure,
including an empty response. Nothing is retried.
"""

import shutil
import subprocess
from typing import Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field

from whisperkey.errors import RefinementError, StartupError

DEFAULT_SYSTEM_PROMPT = (
    "You are a text refinement assistant. When given text, output ONLY the "
    "refined version without any explanation, formatting, or commentary. "
    "Just return the improved text directly."
)


class RefineConfig(BaseModel):
    """Configuration for the text refiner."""

    provider: Literal["claude_cli", "litellm"] = Field(
        default="claude_cli",
        description="Refinement backend",
    )
    command: str = Field(
        default="claude",
        description="Executable used by the claude_cli provider",
    )
    model: Optional[str] = Field(
        default=None,
        description="Model string for the litellm provider (e.g., 'gpt-4o-mini', 'ollama/llama3.2')",
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="Instructions for the model",
    )
    temperature: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Controls randomness (0.0-2.0, litellm only)",
    )
    timeout: int = Field(
        default=60,
        gt=0,
        description="Timeout in seconds for one refinement",
    )


class ClaudeCLIRefiner:
    """Refines text by invoking the `claude` CLI."""

    def __init__(self, config: RefineConfig):
        self.cfg = config

    def refine(self, text: str) -> str:
        """Rephrase text with the claude CLI.

        Raises:
            RefinementError: If the CLI is missing, fails, times out or
                prints nothing
        """
        command = [
            self.cfg.command,
            "--print",
            "--system-prompt",
            self.cfg.system_prompt,
            "-p",
            text,
        ]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.cfg.timeout,
            )
        except FileNotFoundError as e:
            raise RefinementError(f"'{self.cfg.command}' executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise RefinementError(
                f"Claude CLI timed out after {self.cfg.timeout}s"
            ) from e

        if result.returncode != 0:
            logger.error(
                f"Claude CLI error: exit code {result.returncode}, output: {result.stdout}{result.stderr}"
            )
            raise RefinementError(
                f"Failed to rephrase with Claude (exit code {result.returncode})"
            )

        refined = result.stdout.strip()
        if not refined:
            raise RefinementError("Claude returned empty response")

        logger.info(f"Claude rephrasing:\nOriginal: {text}\nRephrased: {refined}")
        return refined


class LiteLLMRefiner:
    """Refines text through a LiteLLM completion."""

    def __init__(self, config: RefineConfig):
        if not config.model:
            raise StartupError("The litellm refiner requires 'model' to be set")
        self.cfg = config

    def refine(self, text: str) -> str:
        """Rephrase text with the configured model.

        Raises:
            RefinementError: If the request fails or returns nothing
        """
        completion_kwargs = {
            "model": self.cfg.model,
            "messages": [
                {"role": "system", "content": self.cfg.system_prompt},
                {"role": "user", "content": text},
            ],
            "timeout": self.cfg.timeout,
        }
        if self.cfg.temperature is not None:
            completion_kwargs["temperature"] = self.cfg.temperature

        try:
            import litellm

            response = litellm.completion(**completion_kwargs)
            output_text = response.choices[0].message.content
        except Exception as e:
            raise RefinementError(f"LLM refinement failed: {e}") from e

        refined = (output_text or "").strip()
        if not refined:
            raise RefinementError("LLM returned empty response")

        logger.info(f"LLM refinement complete: {refined[:100]}")
        return refined


def create_refiner(config: RefineConfig) -> Union[ClaudeCLIRefiner, LiteLLMRefiner]:
    """Build the refiner for the configured provider."""
    if config.provider == "claude_cli":
        if shutil.which(config.command) is None:
            # Only "claude ..." commands need the CLI
            logger.warning(
                f"'{config.command}' not found on PATH; refinement commands will fail"
            )
        return ClaudeCLIRefiner(config)
    return LiteLLMRefiner(config)
