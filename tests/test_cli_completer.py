"""Tests for DocUploadCompleter."""

import pytest

from prompt_toolkit.completion import CompleteEvent
from prompt_toolkit.document import Document

from cli.completer import DocUploadCompleter
from cli.constants import COMMANDS, DOCUMENT_TYPES


@pytest.fixture
def completer():
    """Create a DocUploadCompleter instance."""
    return DocUploadCompleter()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """
    Working directory with a few files to complete.

    Returns:
        Path to the temporary working directory
    """
    (tmp_path / "report.pdf").write_text("content")
    (tmp_path / "notes.txt").write_text("content")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def get_completions_list(completer, text):
    """Helper to get list of completion texts from completer."""
    doc = Document(text, len(text))
    return [c.text for c in completer.get_completions(doc, CompleteEvent())]


def get_completions_display(completer, text):
    """Helper to get list of completion display texts from completer."""
    doc = Document(text, len(text))
    return [c.display_text for c in completer.get_completions(doc, CompleteEvent())]


class TestCommandCompletion:
    """Tests for command name completion."""

    def test_empty_input_shows_all_commands(self, completer):
        """Empty input should suggest all commands."""
        completions = get_completions_list(completer, "")
        for cmd in COMMANDS:
            assert cmd in completions

    def test_partial_command_filters(self, completer):
        """Partial command should filter to matching commands."""
        completions = get_completions_list(completer, "c")
        assert "cleanup" in completions
        assert "clear" in completions
        assert "upload" not in completions

    def test_command_completion_case_insensitive(self, completer):
        """Command completion should be case insensitive."""
        completions = get_completions_list(completer, "UP")
        assert completions == ["upload"]


class TestUploadCompletion:
    """Tests for argument completion of the upload command."""

    def test_first_argument_completes_paths(self, completer, workdir):
        """After 'upload ', should show files from the working directory."""
        displays = get_completions_display(completer, "upload ")
        assert "report.pdf" in displays
        assert "notes.txt" in displays

    def test_partial_path_filters_files(self, completer, workdir):
        """Partial path should filter matching files."""
        displays = get_completions_display(completer, "upload rep")
        assert "report.pdf" in displays
        assert "notes.txt" not in displays

    def test_second_argument_completes_document_types(self, completer, workdir):
        completions = get_completions_list(completer, "upload report.pdf ")
        assert completions == DOCUMENT_TYPES

    def test_document_type_completion_case_insensitive(self, completer, workdir):
        completions = get_completions_list(completer, "upload report.pdf th")
        assert completions == ["THESIS"]

    def test_options_complete_after_double_dash(self, completer, workdir):
        completions = get_completions_list(completer, "upload report.pdf --c")
        assert set(completions) == {"--chunk-size", "--category"}

    def test_option_value_has_no_completion(self, completer, workdir):
        assert get_completions_list(completer, "upload report.pdf --chunk-size ") == []

    def test_options_do_not_count_as_positionals(self, completer, workdir):
        """A document type is still offered after an option and its value."""
        completions = get_completions_list(completer, "upload --category misc report.pdf SY")
        assert completions == ["SYNERGY"]

    def test_no_completion_after_document_type(self, completer, workdir):
        assert get_completions_list(completer, "upload report.pdf THESIS ") == []

    def test_other_commands_have_no_argument_completion(self, completer, workdir):
        """Non-upload commands should not trigger file completion."""
        assert get_completions_list(completer, "cleanup ") == []
