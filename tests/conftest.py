import pytest
import yaml

from ted import history


@pytest.fixture(autouse=True)
def ted_home(monkeypatch, tmp_path):
    """Point ~/.ted at a temporary directory for every test."""
    home = tmp_path / "ted-home"
    monkeypatch.setenv("TED_HOME", str(home))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return home


@pytest.fixture
def mock_config(ted_home):
    """Configure the offline mock provider."""
    ted_home.mkdir(parents=True, exist_ok=True)
    (ted_home / "config.yaml").write_text(yaml.safe_dump({"provider": "mock"}))
    return ted_home


@pytest.fixture
def log(tmp_path):
    with history.load(tmp_path / "history.db") as opened:
        yield opened
