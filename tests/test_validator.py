import pytest

from ted.validator import validate_command


@pytest.mark.parametrize(
    "command",
    [
        "ls -la",
        "python3 -m venv .venv",
        "git add . && git commit -m \"fix\"",
        "sort < input.txt > output.txt",
        "rm -rf ./build",
    ],
)
def test_accepts_ordinary_commands(command):
    assert validate_command(command) == (True, "")


@pytest.mark.parametrize(
    "command, reason",
    [
        ("   ", "empty"),
        ("```bash\nls\n```", "backticks"),
        ("`ls -la`", "backticks"),
        ("git clone <repo-url>", "placeholders"),
        ("rm -rf /", "dangerous"),
        ("sudo rm -fr ~", "dangerous"),
        ("mkfs.ext4 /dev/sdb1", "dangerous"),
        (":(){ :|:& };:", "dangerous"),
        ("dd if=/dev/zero of=/dev/sda", "dangerous"),
    ],
)
def test_rejects(command, reason):
    valid, message = validate_command(command)
    assert not valid
    assert reason in message.lower()
