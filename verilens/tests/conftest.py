import pytest


@pytest.fixture
def anyio_backend():
    # The code under test is built directly on asyncio.
    return "asyncio"
