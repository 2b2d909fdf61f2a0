"""Command parser for CLI input."""

import shlex

from cli.models import CleanupCommand, CommandRequest, TypesCommand, UploadCommand


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Upload/Cleanup/Types)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    return parse_tokens(tokens)


def parse_tokens(tokens: list[str]) -> CommandRequest:
    """Parse an already split command line (REPL input or argv)."""
    command_name = tokens[0].lower()

    if command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "cleanup":
        return _parse_cleanup(tokens[1:])
    elif command_name == "types":
        return _parse_types(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {tokens[0]}")


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> [document_type] [--chunk-size N] [--category LABEL]' command."""
    positional = []
    chunk_size = None
    category = ""

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--chunk-size", "--category"):
            if i + 1 >= len(args):
                raise ParseError(f"{arg} requires a value")
            value = args[i + 1]
            if arg == "--chunk-size":
                chunk_size = _parse_chunk_size(value)
            else:
                category = value
            i += 2
            continue
        if arg.startswith("--"):
            raise ParseError(f"Unknown option: {arg}")
        positional.append(arg)
        i += 1

    if not positional:
        raise ParseError("upload requires a file path")
    if len(positional) > 2:
        raise ParseError("upload takes at most 2 arguments: <path> [document_type]")

    path = positional[0]
    document_type = positional[1].upper() if len(positional) > 1 else None

    return UploadCommand(
        path=path,
        document_type=document_type,
        chunk_size=chunk_size,
        category=category,
    )


def _parse_chunk_size(value: str) -> int:
    try:
        chunk_size = int(value)
    except ValueError:
        raise ParseError(f"Invalid chunk size: {value}")
    if chunk_size < 1:
        raise ParseError("Chunk size must be at least 1 byte")
    return chunk_size


def _parse_cleanup(args: list[str]) -> CleanupCommand:
    """Parse 'cleanup <fileId>' command."""
    if len(args) != 1:
        raise ParseError("cleanup requires exactly 1 argument: <fileId>")

    return CleanupCommand(file_id=args[0])


def _parse_types(args: list[str]) -> TypesCommand:
    if args:
        raise ParseError("types takes no arguments")
    return TypesCommand()
