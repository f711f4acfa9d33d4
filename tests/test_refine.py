"""Tests for the text refiners."""

import subprocess
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from whisperkey.errors import RefinementError, StartupError
from whisperkey.refine import (
    DEFAULT_SYSTEM_PROMPT,
    ClaudeCLIRefiner,
    LiteLLMRefiner,
    RefineConfig,
    create_refiner,
)


def completed(stdout: str = "", stderr: str = "", returncode: int = 0):
    return subprocess.CompletedProcess(
        args=["claude"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestClaudeCLIRefiner:
    """Tests for the claude CLI provider."""

    def test_invokes_cli_in_print_mode(self):
        """Test the command line passed to subprocess.run."""
        refiner = ClaudeCLIRefiner(RefineConfig())

        with patch("whisperkey.refine.subprocess.run") as mock_run:
            mock_run.return_value = completed("Polished text.\n")
            result = refiner.refine("fix this sentence")

        assert result == "Polished text."
        args, kwargs = mock_run.call_args
        assert args[0] == [
            "claude",
            "--print",
            "--system-prompt",
            DEFAULT_SYSTEM_PROMPT,
            "-p",
            "fix this sentence",
        ]
        assert kwargs["capture_output"] is True
        assert kwargs["timeout"] == 60

    def test_custom_command_and_timeout(self):
        """Test that the executable and timeout come from the config."""
        refiner = ClaudeCLIRefiner(RefineConfig(command="/opt/bin/claude", timeout=5))

        with patch("whisperkey.refine.subprocess.run") as mock_run:
            mock_run.return_value = completed("ok")
            refiner.refine("x")

        assert mock_run.call_args[0][0][0] == "/opt/bin/claude"
        assert mock_run.call_args[1]["timeout"] == 5

    def test_nonzero_exit(self, captured_logs):
        """Test that a failing CLI raises RefinementError and logs its output."""
        refiner = ClaudeCLIRefiner(RefineConfig())

        with patch("whisperkey.refine.subprocess.run") as mock_run:
            mock_run.return_value = completed(stderr="not logged in", returncode=1)
            with pytest.raises(RefinementError, match="exit code 1"):
                refiner.refine("x")

        assert "not logged in" in captured_logs.getvalue()

    def test_empty_output(self):
        """Test that whitespace-only output is an error."""
        refiner = ClaudeCLIRefiner(RefineConfig())

        with patch("whisperkey.refine.subprocess.run") as mock_run:
            mock_run.return_value = completed("  \n")
            with pytest.raises(RefinementError, match="empty response"):
                refiner.refine("x")

    def test_missing_executable(self):
        """Test that a missing CLI raises RefinementError."""
        refiner = ClaudeCLIRefiner(RefineConfig())

        with patch("whisperkey.refine.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(RefinementError, match="not found"):
                refiner.refine("x")

    def test_timeout(self):
        """Test that a hung CLI raises RefinementError."""
        refiner = ClaudeCLIRefiner(RefineConfig(timeout=1))

        with patch(
            "whisperkey.refine.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="claude", timeout=1),
        ):
            with pytest.raises(RefinementError, match="timed out"):
                refiner.refine("x")


class TestLiteLLMRefiner:
    """Tests for the LiteLLM provider."""

    def test_requires_model(self):
        """Test that the provider cannot be built without a model."""
        with pytest.raises(StartupError):
            LiteLLMRefiner(RefineConfig(provider="litellm"))

    def test_completion(self):
        """Test the messages sent and the text returned."""
        refiner = LiteLLMRefiner(
            RefineConfig(provider="litellm", model="gpt-4o-mini", temperature=0.2)
        )
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=" Better text. "))]
        )
        fake_litellm = MagicMock()
        fake_litellm.completion.return_value = response

        with patch.dict("sys.modules", {"litellm": fake_litellm}):
            result = refiner.refine("worse text")

        assert result == "Better text."
        kwargs = fake_litellm.completion.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.2
        assert kwargs["messages"][0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert kwargs["messages"][1] == {"role": "user", "content": "worse text"}

    def test_api_error_is_wrapped(self):
        """Test that API failures become RefinementError."""
        refiner = LiteLLMRefiner(RefineConfig(provider="litellm", model="gpt-4o-mini"))
        fake_litellm = MagicMock()
        fake_litellm.completion.side_effect = RuntimeError("rate limited")

        with patch.dict("sys.modules", {"litellm": fake_litellm}):
            with pytest.raises(RefinementError, match="rate limited"):
                refiner.refine("x")

    def test_empty_completion(self):
        """Test that an empty completion is an error."""
        refiner = LiteLLMRefiner(RefineConfig(provider="litellm", model="gpt-4o-mini"))
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        )
        fake_litellm = MagicMock()
        fake_litellm.completion.return_value = response

        with patch.dict("sys.modules", {"litellm": fake_litellm}):
            with pytest.raises(RefinementError, match="empty response"):
                refiner.refine("x")


class TestCreateRefiner:
    """Tests for provider selection."""

    def test_claude_cli_missing_warns(self, captured_logs):
        """Test that a missing CLI is reported at startup but not fatal."""
        with patch("whisperkey.refine.shutil.which", return_value=None):
            refiner = create_refiner(RefineConfig())

        assert isinstance(refiner, ClaudeCLIRefiner)
        assert "not found on PATH" in captured_logs.getvalue()

    def test_litellm_provider(self):
        """Test that the litellm provider is selected."""
        refiner = create_refiner(RefineConfig(provider="litellm", model="ollama/llama3.2"))

        assert isinstance(refiner, LiteLLMRefiner)
