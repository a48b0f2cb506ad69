import os
import pytest

# Headless CI: always the host backend unless a test asks for the GPU explicitly
os.environ.setdefault("BOXBLUR_BACKEND", "cpu")
os.environ.setdefault("BOXBLUR_LOG_LEVEL", "WARNING")


@pytest.fixture(scope="session", autouse=True)
def boxblur_logging():
    from boxblur.kernel.system.logging import setup_logging

    setup_logging()
    yield
