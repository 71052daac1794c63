"""
Shared utilities for CLI commands.

Console output helpers and the confirmation prompt used by setup and
uninstall.
"""

import sys
from typing import Optional

# Replacements used when the console cannot encode the Unicode symbols
_ASCII_FALLBACKS = {
    "✓": "[OK]",
    "✗": "[FAILED]",
    "→": "->",
    "⚠": "WARNING:",
}


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        for line in details.splitlines():
            print(f"  {line}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str = "", file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII-safe characters if Unicode symbols can't be encoded.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = message
        for symbol, replacement in _ASCII_FALLBACKS.items():
            safe_message = safe_message.replace(symbol, replacement)
        print(safe_message.encode("ascii", "replace").decode("ascii"), file=file)


def confirm(prompt: str) -> bool:
    """
    Ask a yes/no question; anything but y/yes means no.

    End of input (e.g. stdin closed in CI) counts as no.
    """
    try:
        answer = input(prompt)
    except EOFError:
        print()
        return False
    return answer.strip().lower() in ("y", "yes")


def format_size(size: int) -> str:
    """
    Format a byte count for display.

    Example:
        >>> format_size(512)
        '512 B'
        >>> format_size(2048)
        '2.0 KB'
    """
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.1f} MB"


__all__ = [
    "print_error",
    "print_warning",
    "safe_print",
    "confirm",
    "format_size",
]
