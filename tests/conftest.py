import sys
from pathlib import Path

import pytest


def pytest_configure():
    # Ensure `src/` is on sys.path so `import mcptoolkit` works without an editable install.
    root = Path(__file__).resolve().parent.parent
    src = root / "src"
    if src.exists():
        p = str(src)
        if p not in sys.path:
            sys.path.insert(0, p)


FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def fake_server_config():
    return {"command": sys.executable, "args": [str(FIXTURES / "fake_mcp_server.py")]}


@pytest.fixture
def raw_server_config():
    def _make(mode: str, env=None):
        return {"command": sys.executable, "args": [str(FIXTURES / "raw_mcp_server.py"), mode], "env": env or {}}

    return _make
