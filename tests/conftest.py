import pytest

from app.config.settings import settings
from app.services import room_store


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Chaque test écrit ses rooms dans un dossier temporaire, cache vidé."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    room_store.clear_cache()
    yield tmp_path / "data"
    room_store.clear_cache()


@pytest.fixture
def make_players():
    def _make(count: int) -> list[dict]:
        return [
            {"id": f"p{i}", "name": f"Player {i}", "is_ready": True, "joined_at": 1000 + i}
            for i in range(1, count + 1)
        ]

    return _make
