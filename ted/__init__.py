"""ted: an AI-powered command line assistant.

``ted`` turns natural language into shell commands using Google Gemini,
asks before running them and remembers the last few interactions.  The
command line interface lives in ``cli.py``; helper modules handle the
model providers, command safety checks, configuration and the bounded
history log.

When installed via pip the CLI is available as ``ted``.  For local
development run ``python -m ted.cli``.
"""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "colors",
    "config",
    "history",
    "providers",
    "server",
    "shell",
    "ui",
    "validator",
]
