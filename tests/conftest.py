import sys
from pathlib import Path

import pytest

# Ensure `src` is on sys.path for tests when the package is not installed editable.
SRC = Path(__file__).resolve().parent.parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mapping_connector.mapping.transform_catalog import default_catalog  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_default_catalog():
    # Tests that register custom logic on the default catalog must not leak it.
    before = set(default_catalog.names())
    yield
    for name in set(default_catalog.names()) - before:
        default_catalog.unregister(name)
