import pytest


@pytest.fixture(autouse=True)
def clear_env_overrides(monkeypatch):
    """Keep the host environment from leaking into config loading."""
    for name in ("PUSH_URL", "PUSH_BEARER_TOKEN", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
