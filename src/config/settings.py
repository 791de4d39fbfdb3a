# Runtime settings for the grabber, read from the environment / .env file

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_RETRY_DELAYS: tuple[float, ...] = (10, 30, 60, 120)
DEFAULT_USER_AGENT = "wiki-grabber/1.0 (+https://www.mediawiki.org/wiki/API:Etiquette)"


def _parse_delays(raw: str | None) -> tuple[float, ...]:
    if not raw:
        return DEFAULT_RETRY_DELAYS
    delays = tuple(float(x) for x in raw.split(",") if x.strip())
    return delays or DEFAULT_RETRY_DELAYS


@dataclass(frozen=True)
class GrabberSettings:
    api_url: str | None = None
    username: str | None = None
    password: str | None = None
    db_path: Path = Path("artifacts/mirror/wiki_mirror.db")
    raw_dir: Path = Path("artifacts/mirror/raw")
    user_agent: str = DEFAULT_USER_AGENT
    retry_delays: tuple[float, ...] = field(default=DEFAULT_RETRY_DELAYS)


def load_settings() -> GrabberSettings:
    return GrabberSettings(
        api_url=os.getenv("GRABBER_API_URL") or None,
        username=os.getenv("GRABBER_USERNAME") or None,
        password=os.getenv("GRABBER_PASSWORD") or None,
        db_path=Path(os.getenv("GRABBER_DB_PATH", "artifacts/mirror/wiki_mirror.db")),
        raw_dir=Path(os.getenv("GRABBER_RAW_DIR", "artifacts/mirror/raw")),
        user_agent=os.getenv("GRABBER_USER_AGENT", DEFAULT_USER_AGENT),
        retry_delays=_parse_delays(os.getenv("GRABBER_RETRY_DELAYS")),
    )
