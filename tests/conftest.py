import httpx
import pytest
from httpx import ASGITransport


@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SCREENSHOT_DIR", str(tmp_path / "screenshots"))
    monkeypatch.setenv("HEADLESS", "true")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")


@pytest.fixture
async def client(mock_env):
    from app.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
