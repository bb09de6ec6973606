"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "list", "download", "delete", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#3B82F6 bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;59;130;246m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
 ██╗   ██╗ █████╗ ██╗   ██╗██╗  ████████╗
 ██║   ██║██╔══██╗██║   ██║██║  ╚══██╔══╝
 ██║   ██║███████║██║   ██║██║     ██║
 ╚██╗ ██╔╝██╔══██║██║   ██║██║     ██║
  ╚████╔╝ ██║  ██║╚██████╔╝███████╗██║
   ╚═══╝  ╚═╝  ╚═╝ ╚═════╝ ╚══════╝╚═╝
{RESET}"""

WELCOME_TITLE = "Vault CLI - Encrypted chunked file storage"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "vault> "

DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  upload <path>                   Encrypt and store a local file
  list                            List stored files (newest first)
  download <id> [output_path]     Download file by id (defaults to downloads/<name>)
  delete <id>                     Delete file and its remote chunks
  clear                           Clear screen and redisplay welcome message
  help                            Show this help
  exit                            Exit REPL

Examples:
  upload ./report.pdf
  list
  download 3
  download 3 restored/report.pdf
  delete 3"""
