"""Custom completer for DocUpload CLI with file and document type autocompletion."""

from typing import Iterable

from prompt_toolkit.completion import Completer, Completion, PathCompleter
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, DOCUMENT_TYPES

UPLOAD_OPTIONS = ["--chunk-size", "--category"]


class DocUploadCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - File path completion for the first 'upload' argument
    - Document type completion for the second 'upload' argument
    - Option names for 'upload' arguments starting with '--'
    """

    def __init__(self):
        self._paths = PathCompleter(expanduser=True)

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For 'upload' arguments, completes paths, then document types.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command != "upload":
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        previous = tokens[:-1] if not is_typing_new_token else tokens

        if previous and previous[-1] in UPLOAD_OPTIONS:
            return

        if current_word.startswith("--"):
            yield from self._complete_from(UPLOAD_OPTIONS, current_word)
            return

        position = self._positional_count(previous[1:])
        if position == 0:
            yield from self._complete_paths(current_word, complete_event)
        elif position == 1:
            yield from self._complete_from(DOCUMENT_TYPES, current_word, ignore_case=True)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        yield from self._complete_from(COMMANDS, partial, ignore_case=True)

    def _complete_from(
        self, words: list[str], partial: str, ignore_case: bool = False
    ) -> Iterable[Completion]:
        needle = partial.lower() if ignore_case else partial
        for word in words:
            candidate = word.lower() if ignore_case else word
            if candidate.startswith(needle):
                yield Completion(word, start_position=-len(partial))

    def _complete_paths(self, partial: str, complete_event) -> Iterable[Completion]:
        """Complete file system paths relative to the working directory."""
        sub_document = Document(partial, cursor_position=len(partial))
        yield from self._paths.get_completions(sub_document, complete_event)

    @staticmethod
    def _positional_count(args: list[str]) -> int:
        """Count positional arguments, skipping options and their values."""
        count = 0
        skip_next = False
        for arg in args:
            if skip_next:
                skip_next = False
                continue
            if arg in UPLOAD_OPTIONS:
                skip_next = True
                continue
            count += 1
        return count
