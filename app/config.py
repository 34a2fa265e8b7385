from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Launch flags are fixed; only headless mode is configurable.
BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-blink-features=AutomationControlled",
    "--window-size=1920,1080",
    "--start-maximized",
)


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    port: int = 3000
    headless: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    navigation_timeout: int = 60000  # ms
    default_timeout: int = 120000  # ms
    screenshot_dir: Path = _PROJECT_ROOT / "screenshots"
    accept_language: str = "en-US,en;q=0.9"
    log_level: str = "INFO"

    @field_validator("headless", mode="before")
    @classmethod
    def _only_false_disables_headless(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() != "false"
