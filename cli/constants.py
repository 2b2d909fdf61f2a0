"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

from common.types import DocumentType

COMMANDS = ["upload", "cleanup", "types", "clear", "exit", "help"]

DOCUMENT_TYPES = [t.value for t in DocumentType]

STYLE = Style.from_dict(
    {
        "prompt": "#10B981 bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[38;2;16;185;129m"
RESET = "\033[0m"

LOGO = f"""{GREEN}
 ____   ___   ____ _   _ ____  _     ___    _    ____
|  _ \\ / _ \\ / ___| | | |  _ \\| |   / _ \\  / \\  |  _ \\
| | | | | | | |   | | | | |_) | |  | | | |/ _ \\ | | | |
| |_| | |_| | |___| |_| |  __/| |__| |_| / ___ \\| |_| |
|____/ \\___/ \\____|\\___/|_|   |_____\\___/_/   \\_\\____/
{RESET}"""

WELCOME_TITLE = "DocUpload CLI - Chunked Document Upload"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "docupload> "

HELP_TEXT = """Available commands:
  upload <path> [document_type] [--chunk-size BYTES] [--category LABEL]
                                      Upload a file in chunks (type from --category, else config)
  cleanup <fileId>                    Discard the temporary chunks of an upload
  types                               List document types
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Document types: THESIS, DISSERTATION, CONFLUENCE, SYNERGY, HELLO (unknown types are filed as HELLO).
Examples:
  upload thesis.pdf THESIS
  upload big-dataset.zip CONFLUENCE --chunk-size 4194304
  upload notes.txt --category Synergy
  cleanup thesis.pdf_3_5f0c2a7e9b1d4c6e8a0b2d4f6a8c0e1f"""
