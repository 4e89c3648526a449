import pytest

from fakes import FakeServer


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()
