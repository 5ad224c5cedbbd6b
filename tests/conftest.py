import pytest

from tootsnap.config import ControllerConfig


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store_config() -> ControllerConfig:
    # Wide enough that stub completions always land inside one quiet window.
    return ControllerConfig(render_debounce_seconds=0.05)
