import os

import pytest


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isoliert os.environ, load_dotenv schreibt direkt hinein."""
    saved = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("FORWARDEMAIL_") or key == "LOG_LEVEL":
            monkeypatch.delenv(key, raising=False)
    yield
    os.environ.clear()
    os.environ.update(saved)
