import sqlite3

import pytest
from pydantic import ValidationError

from ai_tool_finder.errors import CatalogIntegrityError
from ai_tool_finder.errors import DuplicateEntryError
from ai_tool_finder.errors import StoreUnavailableError
from ai_tool_finder.models import NewCategory
from ai_tool_finder.models import NewTag
from ai_tool_finder.models import NewTool
from ai_tool_finder.models import ToolCategory
from ai_tool_finder.storage import InMemoryCatalogStore
from ai_tool_finder.storage import SqliteCatalogStore


def _new_tool(name: str, **overrides) -> NewTool:
    fields = {
        "name": name,
        "description": f"{name} does things",
        "company_name": "Acme",
        "logo_url": "https://example.com/logo.png",
        "image_url": "https://example.com/image.png",
        "rating": "4.5",
        "pricing": "Free",
        "website_url": "https://example.com",
    }
    fields.update(overrides)
    return NewTool(**fields)


class TestTools:
    def test_create_tool_assigns_sequential_ids(self, store):
        first = store.create_tool(_new_tool("First"))
        second = store.create_tool(_new_tool("Second"))

        assert (first.id, second.id) == (1, 2)
        assert first.created_at is not None
        assert store.get_tool(2) == second
        assert store.count_tools() == 2

    def test_get_missing_tool_returns_none(self, store):
        assert store.get_tool(42) is None

    def test_rating_is_kept_as_text(self, store):
        created = store.create_tool(_new_tool("Rated", rating="4.80"))
        assert store.get_tool(created.id).rating == "4.80"

    def test_get_tools_in_id_order(self, sample_store):
        names = [tool.name for tool in sample_store.get_tools()]
        assert names == ["DALL-E", "Midjourney", "Stable Diffusion", "ChatGPT", "Jasper", "Notion AI", "Descript"]

    def test_featured_tools_default_limit(self, sample_store):
        names = [tool.name for tool in sample_store.get_featured_tools()]
        assert names == ["DALL-E", "ChatGPT", "Jasper", "Notion AI"]

    def test_featured_tools_custom_limit(self, sample_store):
        assert [tool.name for tool in sample_store.get_featured_tools(limit=2)] == ["DALL-E", "ChatGPT"]

    def test_search_tools_matches_company_name(self, sample_store):
        names = [tool.name for tool in sample_store.search_tools("OpenAI")]
        assert names == ["DALL-E", "ChatGPT"]

    def test_tools_by_category(self, sample_store):
        image_generation = sample_store.get_category_by_name("Image Generation")
        names = [tool.name for tool in sample_store.get_tools_by_category(image_generation.id)]
        assert names == ["DALL-E", "Midjourney", "Stable Diffusion"]

    def test_tools_by_unused_category_is_empty(self, sample_store):
        translation = sample_store.get_category_by_name("Translation")
        assert sample_store.get_tools_by_category(translation.id) == []


class TestCategoriesAndTags:
    def test_lookup_by_name_ignores_case(self, sample_store):
        category = sample_store.get_category_by_name("image generation")
        tag = sample_store.get_tag_by_name("OPEN SOURCE")

        assert category.name == "Image Generation"
        assert tag.name == "Open Source"

    def test_unknown_names_return_none(self, sample_store):
        assert sample_store.get_category_by_name("Robotics") is None
        assert sample_store.get_tag_by_name("Robotics") is None

    def test_duplicate_category_rejected(self, store):
        store.create_category(NewCategory(name="Chatbots", icon="fa-comments", description="Assistants"))
        with pytest.raises(DuplicateEntryError):
            store.create_category(NewCategory(name="Chatbots", icon="fa-robot", description="Again"))

    def test_duplicate_tag_rejected(self, store):
        store.create_tag(NewTag(name="Art"))
        with pytest.raises(DuplicateEntryError):
            store.create_tag(NewTag(name="Art"))

    def test_counts(self, sample_store):
        assert len(sample_store.get_categories()) == 8
        assert len(sample_store.get_tags()) == 9


class TestRelationships:
    def test_tool_categories_in_join_order(self, sample_store):
        descript = sample_store.get_tools()[-1]
        names = [category.name for category in sample_store.get_tool_categories(descript.id)]
        assert names == ["Audio Processing", "Video Editing"]

    def test_tool_tags_in_join_order(self, sample_store):
        dalle = sample_store.get_tool(1)
        assert [tag.name for tag in sample_store.get_tool_tags(dalle.id)] == ["Art", "Design"]

    def test_tool_without_joins_has_no_categories(self, store):
        tool = store.create_tool(_new_tool("Lonely"))
        assert store.get_tool_categories(tool.id) == []
        assert store.get_tool_tags(tool.id) == []

    def test_linking_missing_records_is_rejected(self, store):
        tool = store.create_tool(_new_tool("Linked"))
        with pytest.raises(CatalogIntegrityError):
            store.add_tool_category(tool.id, 99)
        with pytest.raises(CatalogIntegrityError):
            store.add_tool_tag(99, 1)


def test_new_tool_rejects_out_of_range_rating():
    with pytest.raises(ValidationError):
        _new_tool("Bad", rating="6")
    with pytest.raises(ValidationError):
        _new_tool("Bad", rating="great")


def test_in_memory_dangling_join_raises():
    store = InMemoryCatalogStore()
    tool = store.create_tool(_new_tool("Orphaned"))
    store._tool_categories.insert(lambda new_id: ToolCategory(id=new_id, tool_id=tool.id, category_id=7))

    with pytest.raises(CatalogIntegrityError, match="Category with ID 7 not found"):
        store.get_tool_categories(tool.id)


def test_sqlite_dangling_join_raises(tmp_path):
    db_path = tmp_path / "catalog.db"
    store = SqliteCatalogStore(db_path)
    tool = store.create_tool(_new_tool("Orphaned"))

    # Foreign keys are off by default on a fresh connection
    conn = sqlite3.connect(str(db_path))
    conn.execute("INSERT INTO tool_tags (tool_id, tag_id) VALUES (?, ?)", [tool.id, 5])
    conn.commit()
    conn.close()

    with pytest.raises(CatalogIntegrityError, match="Tag with ID 5 not found"):
        store.get_tool_tags(tool.id)


def test_sqlite_data_survives_reopen(tmp_path):
    db_path = tmp_path / "catalog.db"
    SqliteCatalogStore(db_path).create_tool(_new_tool("Persistent"))

    reopened = SqliteCatalogStore(db_path)
    assert [tool.name for tool in reopened.get_tools()] == ["Persistent"]


def test_sqlite_corrupt_database_is_unavailable(tmp_path):
    db_path = tmp_path / "catalog.db"
    store = SqliteCatalogStore(db_path)
    db_path.write_bytes(b"this is not a sqlite database" * 64)

    with pytest.raises(StoreUnavailableError):
        store.get_tools()
