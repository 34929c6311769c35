"""
Shared fixtures: an in-memory provider with the example.com zone, a small
built site, and settings that never touch a .env file.
"""

import pytest

from sitedeploy.api.base_provider import ProviderBundle
from sitedeploy.api.memory_provider import InMemoryProvider
from sitedeploy.utils.config import Settings, reset_settings

DOMAIN = "example.com"
BACKEND = "api.internal"

INDEX_HTML = b"<!doctype html><html><body><div id='root'></div></body></html>"
APP_JS = b"console.log('app');"


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def memory():
    provider = InMemoryProvider()
    provider.add_zone(DOMAIN)
    return provider


@pytest.fixture
def zone(memory):
    return memory.find_zone(DOMAIN)


@pytest.fixture
def providers(memory):
    return ProviderBundle(
        zones=memory,
        certificates=memory,
        cdn=memory,
        dns=memory,
        storage=memory,
    )


@pytest.fixture
def artifact_dir(tmp_path):
    site = tmp_path / "dist"
    (site / "assets").mkdir(parents=True)
    (site / "index.html").write_bytes(INDEX_HTML)
    (site / "app.js").write_bytes(APP_JS)
    (site / "assets" / "logo.svg").write_bytes(b"<svg/>")
    return site


@pytest.fixture
def settings(artifact_dir):
    return Settings(
        _env_file=None,
        provider="MEMORY",
        apex_domain=DOMAIN,
        backend_hostname=BACKEND,
        artifact_dir=str(artifact_dir),
        cert_poll_seconds=0,
        distribution_poll_seconds=0,
    )
