"""Safety checks for generated commands.

Model output is shown to the user before it runs, but some outputs
should never be run without a second look: Markdown-wrapped text,
commands with unfilled ``<placeholders>`` and a handful of destructive
operations.  :func:`validate_command` flags those.  ``ted agent --yes``
refuses to run a flagged command; interactive runs print the reason as
a warning and still ask for confirmation.
"""

import re
from typing import Tuple

DANGEROUS_PATTERNS = [
    r"\brm\s+-[a-z]*r[a-z]*f[a-z]*\s+(/|~|\*)(\s|$)",  # recursive remove of / ~ or *
    r"\brm\s+-[a-z]*f[a-z]*r[a-z]*\s+(/|~|\*)(\s|$)",
    r"\bmkfs(\.\w+)?\b",  # format filesystem
    r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",  # fork bomb
    r"\bdd\b.*\bof=/dev/",  # overwrite a block device
    r">\s*/dev/sd[a-z]",
    r"\bchmod\s+-R\s+777\s+/(\s|$)",
]


def validate_command(command: str) -> Tuple[bool, str]:
    """Check a generated command before it is executed.

    :returns: ``(is_valid, reason)``; ``reason`` is empty when valid.
    """
    cmd = command.strip()
    if not cmd:
        return False, "Command is empty"
    if "```" in cmd or (cmd.startswith("`") and cmd.endswith("`")):
        return False, "Command is wrapped in backticks or Markdown fences"
    if re.search(r"<[A-Za-z_][^<>]*>", cmd):
        return False, "Command contains unresolved placeholders"
    for pattern in DANGEROUS_PATTERNS:
        if re.search(pattern, cmd, flags=re.IGNORECASE):
            return False, "Command contains potentially dangerous operations"
    return True, ""
