import sys
from pathlib import Path

import pytest

# Add the src and tests directories to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from helpers import FakeTransport, encode_png


@pytest.fixture
def png_factory():
    """Build PNG bytes of a solid-colour image."""
    return encode_png


@pytest.fixture
def red_png() -> bytes:
    return encode_png(100, 50)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
