import pytest

from hoops.tests.factories import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
