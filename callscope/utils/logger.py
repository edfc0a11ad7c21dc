"""Terminal-safe output handling with Unicode fallback.

Detects terminal encoding and provides ASCII alternatives for the Unicode
glyphs callscope prints, so non-UTF-8 terminals never crash on output.
Debug lines and loader warnings go to stderr so `--json` output stays clean.
"""
import sys
import locale
from typing import Callable


# Unicode to ASCII icon mapping for non-UTF-8 terminals
ICON_MAP = {
    # Status icons
    '✓': '[OK]',
    '✗': '[FAIL]',
    '⚠': '[WARN]',

    # Arrows (equivalence edges, call chains)
    '→': '->',
    '←': '<-',
    '⇒': '=>',

    # Structural icons
    '│': '|',
    '─': '-',
    '└': '+',
    '├': '+',

    # Symbols
    '…': '...',
    '•': '*',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if hasattr(sys.stdout, 'encoding') and sys.stdout.encoding:
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (LookupError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding() in ('utf-8', 'utf8', 'utf_8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if terminal doesn't support UTF-8.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Sanitized text safe for current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)
    return sanitized


def create_safe_print() -> Callable:
    """Create a print function that automatically sanitizes output.

    Returns:
        Callable: Safe print function
    """
    def safe_print(*args, **kwargs):
        """Print with automatic Unicode sanitization."""
        sanitized_args = []
        for arg in args:
            if isinstance(arg, str):
                sanitized_args.append(sanitize_for_terminal(arg))
            else:
                sanitized_args.append(arg)

        print(*sanitized_args, **kwargs)

    return safe_print


# Export safe print function
safe_print = create_safe_print()

_debug_enabled = False


def set_debug(enabled: bool):
    """Toggle `[debug]` output for the current process."""
    global _debug_enabled
    _debug_enabled = bool(enabled)


def debug(message: str):
    """Print a `[debug]` line to stderr when debug mode is on."""
    if _debug_enabled:
        safe_print(f"[debug] {message}", file=sys.stderr)


def warn(component: str, message: str):
    """Print a non-fatal warning with a `[Component]` prefix to stderr."""
    safe_print(f"[{component}] Warning: {message}", file=sys.stderr)
