import os
from pathlib import Path
from types import SimpleNamespace

import pytest

VALID_LOG_PATH = Path(__file__).parent / "valid_access_log.txt"
INVALID_LOG_PATH = Path(__file__).parent / "invalid_logs.txt"


@pytest.fixture(scope="session", autouse=True)
def disable_wait_env():
    """Ensure retry loops are disabled during test runs.

    Sets DISABLE_WAIT=true for the entire pytest session so any @wait-decorated
    functions run once and return immediately, preventing slow/hanging tests.
    """
    os.environ["DISABLE_WAIT"] = "true"


@pytest.fixture(scope="session", autouse=True)
def baseline_settings_env():
    """Provide baseline env vars so tests are not affected by local .env.

    Pydantic-settings precedence: init args > env vars > .env > defaults.
    Setting these ensures stable defaults regardless of any .env present.
    """
    os.environ.update({
        # App
        "APP_NAME": "LogMetrikks",
        "APP_VERSION": "0.1.0",
        "APP_DEBUG": "false",
        "APP_ENVIRONMENT": "development",
        # API
        "API_HOST": "0.0.0.0",
        "API_PORT": "5001",
        "API_WORKERS": "1",
        "API_RELOAD": "false",
        "API_LOG_LEVEL": "INFO",
        # Database
        "DB_URL": "sqlite:///nginx.sqlite3",
        "DB_ECHO": "false",
        "DB_DROP_ON_STARTUP": "false",
        # Log parser
        "LOGPARSER_LOG_PATH": "app-access.log",
        "LOGPARSER_BATCH_SIZE": "50000",
    })


@pytest.fixture(autouse=True)
def refresh_settings_cache():
    """Clear settings cache so env changes take effect per test.

    Ensures tests using monkeypatch.setenv() get a fresh Settings instance.
    """
    from logmetrikks.config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeGeoReader:
    """Stand-in for geoip2.database.Reader backed by a dict of address -> ISO code.

    Records every lookup so tests can assert on cache behavior.
    """

    def __init__(self, countries: dict[str, str] | None = None, database_type: str = "GeoLite2-Country") -> None:
        self.countries = countries or {}
        self.database_type = database_type
        self.calls: list[str] = []

    def metadata(self) -> SimpleNamespace:
        return SimpleNamespace(database_type=self.database_type)

    def country(self, ip: str) -> SimpleNamespace:
        self.calls.append(ip)
        if ip not in self.countries:
            raise ValueError(f"The address {ip} is not in the database.")
        return SimpleNamespace(country=SimpleNamespace(iso_code=self.countries[ip]))

    city = country


@pytest.fixture
def fake_reader() -> FakeGeoReader:
    return FakeGeoReader({"203.0.113.5": "US", "198.51.100.7": "DE", "192.0.2.44": "FR"})


@pytest.fixture
def load_valid_log() -> list[str]:
    """Load the lines of the valid access log file."""
    with open(VALID_LOG_PATH, "r", encoding="utf-8") as f:
        return f.read().splitlines()


@pytest.fixture
def load_invalid_logs() -> list[str]:
    """Load the lines of the invalid log file."""
    with open(INVALID_LOG_PATH, "r", encoding="utf-8") as f:
        return f.read().splitlines()


@pytest.fixture
def store(tmp_path):
    """SQLite store in a temporary directory with the schema created."""
    from logmetrikks.db.store import Store

    store = Store(f"sqlite:///{tmp_path / 'visits.sqlite3'}")
    store.setup()
    yield store
    store.dispose()
