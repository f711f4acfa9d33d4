"""Unit tests for ActionRouter."""

import pytest

from whisperkey.commands import Command, ParsedCommand, parse_command
from whisperkey.errors import OutputError, RefinementError
from whisperkey.router import REFINE_PROGRESS_LABEL, ActionRouter


@pytest.fixture
def router(output, refiner):
    return ActionRouter(output, refiner)


class TestRouting:
    """Tests for the four destinations."""

    def test_plain_text_is_typed(self, router, output, refiner):
        """Test that NONE types the text unchanged."""
        delivered = router.route(parse_command("just some text"))

        assert delivered == "just some text"
        assert output.typed == ["just some text"]
        assert output.copied == []
        assert refiner.calls == []

    def test_clipboard_is_copied_not_typed(self, router, output, refiner):
        """Test that CLIPBOARD copies the stripped text."""
        router.route(parse_command("clipboard copy this text"))

        assert output.copied == ["copy this text"]
        assert output.typed == []
        assert refiner.calls == []

    def test_refine_types_refined_text(self, router, output, refiner):
        """Test that REFINE refines, then types the result."""
        delivered = router.route(parse_command("claude make this nicer"))

        assert refiner.calls == ["make this nicer"]
        assert delivered == "Refined: make this nicer"
        assert output.typed == ["Refined: make this nicer"]
        assert output.copied == []

    def test_refine_and_clipboard_never_types(self, router, output, refiner):
        """Test that REFINE_AND_CLIPBOARD copies the refined text only."""
        router.route(parse_command("clipboard claude fix this sentence"))

        assert refiner.calls == ["fix this sentence"]
        assert output.copied == ["Refined: fix this sentence"]
        assert output.typed == []

    def test_refine_shows_progress(self, router, output):
        """Test the "Asking Claude" indicator while refining."""
        router.route(parse_command("claude hello"))

        assert output.progress == [REFINE_PROGRESS_LABEL]

    def test_progress_failure_does_not_block_refinement(self, router, output):
        """Test that a broken indicator is only logged."""
        output.progress_error = RuntimeError("no keyboard")

        router.route(parse_command("claude hello"))

        assert output.typed == ["Refined: hello"]


class TestRoutingErrors:
    """Tests for error classification."""

    def test_refinement_error_delivers_nothing(self, router, output, refiner):
        """Test that a refiner failure propagates and nothing is output."""
        refiner.error = RefinementError("claude exited 1")

        with pytest.raises(RefinementError):
            router.route(parse_command("claude clipboard fix this"))

        assert output.typed == []
        assert output.copied == []

    def test_unexpected_refiner_error_is_wrapped(self, router, refiner):
        """Test that other refiner exceptions become RefinementError."""
        refiner.error = ValueError("bad response")

        with pytest.raises(RefinementError, match="bad response"):
            router.route(parse_command("claude fix this"))

    def test_output_error_propagates(self, router, output):
        """Test that typing failures surface as OutputError."""
        output.type_error = OutputError("not trusted")

        with pytest.raises(OutputError, match="not trusted"):
            router.route(parse_command("hello"))

    def test_unexpected_output_error_is_wrapped(self, router, output):
        """Test that other output exceptions become OutputError."""
        output.copy_error = RuntimeError("xclip missing")

        with pytest.raises(OutputError, match="xclip missing"):
            router.route(
                ParsedCommand(command=Command.CLIPBOARD, text="x", original="clipboard x")
            )
