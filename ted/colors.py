"""Named terminal styles shared by ted's commands."""

from functools import partial

import click

# Hex colours need a truecolor terminal; click passes RGB tuples through
# as 24-bit escape codes.
PRIMARY = (124, 58, 237)  # purple
SECONDARY = (16, 185, 129)  # green
ACCENT = (245, 158, 11)  # amber
ERROR = (239, 68, 68)  # red
MUTED = (107, 114, 128)  # gray
LIGHT_GRAY = (229, 231, 235)
LIGHT_PURPLE = (167, 139, 250)

title = partial(click.style, fg=PRIMARY, bold=True)
header = partial(click.style, fg=SECONDARY, bold=True)
entry = partial(click.style, fg=LIGHT_GRAY)
command = partial(click.style, fg=ACCENT, bold=True)
query = partial(click.style, fg=LIGHT_GRAY, italic=True)
time = partial(click.style, fg=MUTED, italic=True)
selected_option = partial(click.style, fg=SECONDARY, bold=True)
prompt = partial(click.style, fg=PRIMARY, bold=True)
error = partial(click.style, fg=ERROR, bold=True)
success = partial(click.style, fg=SECONDARY, bold=True)
detail = partial(click.style, fg=LIGHT_GRAY)
thinking = partial(click.style, fg="cyan", bold=True)
running = partial(click.style, fg="bright_green", bold=True)
full_response = partial(click.style, fg=LIGHT_PURPLE, bold=True)

settings_label = partial(click.style, fg=PRIMARY, bold=True)
settings_value = partial(click.style, fg=SECONDARY)
settings_configured = partial(click.style, fg=ACCENT, bold=True)
settings_not_set = partial(click.style, fg=ERROR, bold=True)
settings_option = partial(click.style, fg=LIGHT_GRAY)
settings_warning = partial(click.style, fg=ACCENT, bold=True)
settings_info = partial(click.style, fg="cyan")


def highlight_commands(text: str) -> str:
    """Restyle every backtick-delimited span of ``text`` as a command.

    The backticks are kept.  An unterminated span is left as plain text.
    """
    parts = text.split("`")
    if len(parts) % 2 == 0:
        # odd number of backticks: the last one opens nothing
        tail = "`" + parts.pop()
    else:
        tail = ""
    out = []
    for i, part in enumerate(parts):
        out.append(command(f"`{part}`") if i % 2 else part)
    return "".join(out) + tail
