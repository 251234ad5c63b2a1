import pytest

from ai_tool_finder.seed import sample_catalog
from ai_tool_finder.seed import seed_catalog
from ai_tool_finder.storage import InMemoryCatalogStore
from ai_tool_finder.storage import SqliteCatalogStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Empty catalog store, once per implementation."""
    if request.param == "sqlite":
        return SqliteCatalogStore(tmp_path / "catalog.db")
    return InMemoryCatalogStore()


@pytest.fixture
def sample_store(store):
    """Store seeded with the bundled sample catalog (7 tools, 8 categories, 9 tags)."""
    seed_catalog(store, sample_catalog())
    return store
