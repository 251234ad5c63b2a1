"""Catalog storage: tools, categories, tags and their join tables.

Two implementations share the ``CatalogStore`` interface:

- ``InMemoryCatalogStore`` keeps each table as an arena (a list of rows plus an
  id-to-position map) and is used for tests and local development.
- ``SqliteCatalogStore`` persists to a SQLite file, opening one connection per
  operation so it can be shared across request threads.

Join rows that point at a missing record are an integrity failure: lookups
raise ``CatalogIntegrityError`` instead of silently dropping the row.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from datetime import timezone
from pathlib import Path
from typing import Callable
from typing import Dict
from typing import Generic
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Optional
from typing import Protocol
from typing import TypeVar

from .config import Settings
from .errors import CatalogIntegrityError
from .errors import DuplicateEntryError
from .errors import StoreUnavailableError
from .models import Category
from .models import NewCategory
from .models import NewTag
from .models import NewTool
from .models import Tag
from .models import Tool
from .models import ToolCategory
from .models import ToolTag

logger = logging.getLogger(__name__)

DEFAULT_FEATURED_LIMIT = 4
# Largest value SQLite can bind as an INTEGER parameter.
MAX_SQL_INTEGER = 2**63 - 1

T = TypeVar("T")


class CatalogStore(Protocol):
    """Read/write operations the rest of the application needs from a catalog."""

    def get_tool(self, tool_id: int) -> Optional[Tool]: ...

    def get_tools(self) -> List[Tool]: ...

    def get_featured_tools(self, limit: int = DEFAULT_FEATURED_LIMIT) -> List[Tool]: ...

    def create_tool(self, tool: NewTool) -> Tool: ...

    def search_tools(self, query: str) -> List[Tool]: ...

    def get_tools_by_category(self, category_id: int) -> List[Tool]: ...

    def count_tools(self) -> int: ...

    def get_categories(self) -> List[Category]: ...

    def get_category(self, category_id: int) -> Optional[Category]: ...

    def get_category_by_name(self, name: str) -> Optional[Category]: ...

    def create_category(self, category: NewCategory) -> Category: ...

    def get_tags(self) -> List[Tag]: ...

    def get_tag(self, tag_id: int) -> Optional[Tag]: ...

    def get_tag_by_name(self, name: str) -> Optional[Tag]: ...

    def create_tag(self, tag: NewTag) -> Tag: ...

    def add_tool_category(self, tool_id: int, category_id: int) -> ToolCategory: ...

    def add_tool_tag(self, tool_id: int, tag_id: int) -> ToolTag: ...

    def get_tool_categories(self, tool_id: int) -> List[Category]: ...

    def get_tool_tags(self, tool_id: int) -> List[Tag]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _query_terms(query: str) -> List[str]:
    return [term for term in query.lower().split(" ") if term]


def _matches_any_term(tool: Tool, terms: Iterable[str]) -> bool:
    search_text = f"{tool.name} {tool.description} {tool.company_name}".lower()
    return any(term in search_text for term in terms)


class _Arena(Generic[T]):
    """Append-only table with auto-incrementing ids."""

    def __init__(self) -> None:
        self._rows: List[T] = []
        self._positions: Dict[int, int] = {}
        self._next_id = 1

    def insert(self, build: Callable[[int], T]) -> T:
        row = build(self._next_id)
        self._positions[self._next_id] = len(self._rows)
        self._rows.append(row)
        self._next_id += 1
        return row

    def get(self, row_id: int) -> Optional[T]:
        position = self._positions.get(row_id)
        return None if position is None else self._rows[position]

    def all(self) -> List[T]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryCatalogStore:
    """Catalog kept entirely in process memory."""

    def __init__(self) -> None:
        self._tools: _Arena[Tool] = _Arena()
        self._categories: _Arena[Category] = _Arena()
        self._tags: _Arena[Tag] = _Arena()
        self._tool_categories: _Arena[ToolCategory] = _Arena()
        self._tool_tags: _Arena[ToolTag] = _Arena()

    # Tools
    def get_tool(self, tool_id: int) -> Optional[Tool]:
        return self._tools.get(tool_id)

    def get_tools(self) -> List[Tool]:
        return self._tools.all()

    def get_featured_tools(self, limit: int = DEFAULT_FEATURED_LIMIT) -> List[Tool]:
        return [tool for tool in self._tools.all() if tool.featured][:limit]

    def create_tool(self, tool: NewTool) -> Tool:
        return self._tools.insert(lambda new_id: Tool(**tool.model_dump(), id=new_id, created_at=_now()))

    def search_tools(self, query: str) -> List[Tool]:
        terms = _query_terms(query)
        return [tool for tool in self._tools.all() if _matches_any_term(tool, terms)]

    def get_tools_by_category(self, category_id: int) -> List[Tool]:
        tool_ids = dict.fromkeys(tc.tool_id for tc in self._tool_categories.all() if tc.category_id == category_id)
        return [self._require(self._tools, tool_id, "Tool") for tool_id in tool_ids]

    def count_tools(self) -> int:
        return len(self._tools)

    # Categories
    def get_categories(self) -> List[Category]:
        return self._categories.all()

    def get_category(self, category_id: int) -> Optional[Category]:
        return self._categories.get(category_id)

    def get_category_by_name(self, name: str) -> Optional[Category]:
        wanted = name.lower()
        return next((c for c in self._categories.all() if c.name.lower() == wanted), None)

    def create_category(self, category: NewCategory) -> Category:
        if any(existing.name == category.name for existing in self._categories.all()):
            raise DuplicateEntryError(f"Category {category.name!r} already exists")
        return self._categories.insert(lambda new_id: Category(**category.model_dump(), id=new_id))

    # Tags
    def get_tags(self) -> List[Tag]:
        return self._tags.all()

    def get_tag(self, tag_id: int) -> Optional[Tag]:
        return self._tags.get(tag_id)

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        wanted = name.lower()
        return next((t for t in self._tags.all() if t.name.lower() == wanted), None)

    def create_tag(self, tag: NewTag) -> Tag:
        if any(existing.name == tag.name for existing in self._tags.all()):
            raise DuplicateEntryError(f"Tag {tag.name!r} already exists")
        return self._tags.insert(lambda new_id: Tag(**tag.model_dump(), id=new_id))

    # Relationships
    def add_tool_category(self, tool_id: int, category_id: int) -> ToolCategory:
        self._require(self._tools, tool_id, "Tool")
        self._require(self._categories, category_id, "Category")
        return self._tool_categories.insert(
            lambda new_id: ToolCategory(id=new_id, tool_id=tool_id, category_id=category_id)
        )

    def add_tool_tag(self, tool_id: int, tag_id: int) -> ToolTag:
        self._require(self._tools, tool_id, "Tool")
        self._require(self._tags, tag_id, "Tag")
        return self._tool_tags.insert(lambda new_id: ToolTag(id=new_id, tool_id=tool_id, tag_id=tag_id))

    def get_tool_categories(self, tool_id: int) -> List[Category]:
        return [
            self._require(self._categories, tc.category_id, "Category")
            for tc in self._tool_categories.all()
            if tc.tool_id == tool_id
        ]

    def get_tool_tags(self, tool_id: int) -> List[Tag]:
        return [self._require(self._tags, tt.tag_id, "Tag") for tt in self._tool_tags.all() if tt.tool_id == tool_id]

    @staticmethod
    def _require(arena: _Arena[T], row_id: int, kind: str) -> T:
        row = arena.get(row_id)
        if row is None:
            raise CatalogIntegrityError(f"{kind} with ID {row_id} not found")
        return row


SCHEMA = """
CREATE TABLE IF NOT EXISTS tools (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL,
    company_name TEXT NOT NULL,
    logo_url TEXT NOT NULL,
    image_url TEXT NOT NULL,
    rating TEXT NOT NULL,             -- decimal kept as text, e.g. '4.8'
    pricing TEXT NOT NULL,
    website_url TEXT NOT NULL,
    featured INTEGER NOT NULL DEFAULT 0,
    created_at TEXT                   -- ISO timestamp
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    icon TEXT NOT NULL,
    description TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS tool_categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tool_id INTEGER NOT NULL REFERENCES tools(id),
    category_id INTEGER NOT NULL REFERENCES categories(id)
);

CREATE TABLE IF NOT EXISTS tool_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tool_id INTEGER NOT NULL REFERENCES tools(id),
    tag_id INTEGER NOT NULL REFERENCES tags(id)
);
"""

TOOL_COLUMNS = (
    "id, name, description, company_name, logo_url, image_url, rating, pricing, website_url, featured, created_at"
)
JOINED_TOOL_COLUMNS = ", ".join(f"t.{column.strip()}" for column in TOOL_COLUMNS.split(","))


def _tool_from_row(row: sqlite3.Row) -> Tool:
    return Tool(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        company_name=row["company_name"],
        logo_url=row["logo_url"],
        image_url=row["image_url"],
        rating=row["rating"],
        pricing=row["pricing"],
        website_url=row["website_url"],
        featured=bool(row["featured"]),
        created_at=row["created_at"],
    )


def _category_from_row(row: sqlite3.Row) -> Category:
    return Category(id=row["id"], name=row["name"], icon=row["icon"], description=row["description"])


def _tag_from_row(row: sqlite3.Row) -> Tag:
    return Tag(id=row["id"], name=row["name"])


class SqliteCatalogStore:
    """Catalog persisted in a SQLite database file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        logger.info(f"Opened catalog database at {self.db_path}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, committing on success and mapping sqlite errors to catalog errors."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open catalog database {self.db_path}: {exc}") from exc

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "UNIQUE" in str(exc):
                raise DuplicateEntryError(str(exc)) from exc
            raise CatalogIntegrityError(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error(f"Catalog database error: {exc}")
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    # Tools
    def get_tool(self, tool_id: int) -> Optional[Tool]:
        with self._connect() as conn:
            row = conn.execute(f"SELECT {TOOL_COLUMNS} FROM tools WHERE id = ?", [tool_id]).fetchone()
        return _tool_from_row(row) if row else None

    def get_tools(self) -> List[Tool]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT {TOOL_COLUMNS} FROM tools ORDER BY id").fetchall()
        return [_tool_from_row(row) for row in rows]

    def get_featured_tools(self, limit: int = DEFAULT_FEATURED_LIMIT) -> List[Tool]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {TOOL_COLUMNS} FROM tools WHERE featured = 1 ORDER BY id LIMIT ?", [limit]
            ).fetchall()
        return [_tool_from_row(row) for row in rows]

    def create_tool(self, tool: NewTool) -> Tool:
        created_at = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tools
                (name, description, company_name, logo_url, image_url, rating, pricing, website_url,
                 featured, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                [
                    tool.name,
                    tool.description,
                    tool.company_name,
                    tool.logo_url,
                    tool.image_url,
                    tool.rating,
                    tool.pricing,
                    tool.website_url,
                    int(tool.featured),
                    created_at.isoformat(),
                ],
            )
            new_id = cursor.lastrowid
        return Tool(**tool.model_dump(), id=new_id, created_at=created_at)

    def search_tools(self, query: str) -> List[Tool]:
        terms = _query_terms(query)
        return [tool for tool in self.get_tools() if _matches_any_term(tool, terms)]

    def get_tools_by_category(self, category_id: int) -> List[Tool]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT tc.tool_id AS ref_id, {JOINED_TOOL_COLUMNS}
                FROM tool_categories tc
                LEFT JOIN tools t ON t.id = tc.tool_id
                WHERE tc.category_id = ?
                ORDER BY tc.id
            """,
                [category_id],
            ).fetchall()

        tools: Dict[int, Tool] = {}
        for row in rows:
            if row["id"] is None:
                raise CatalogIntegrityError(f"Tool with ID {row['ref_id']} not found")
            tools.setdefault(row["id"], _tool_from_row(row))
        return list(tools.values())

    def count_tools(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM tools").fetchone()[0]

    # Categories
    def get_categories(self) -> List[Category]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, name, icon, description FROM categories ORDER BY id").fetchall()
        return [_category_from_row(row) for row in rows]

    def get_category(self, category_id: int) -> Optional[Category]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, icon, description FROM categories WHERE id = ?", [category_id]
            ).fetchone()
        return _category_from_row(row) if row else None

    def get_category_by_name(self, name: str) -> Optional[Category]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, icon, description FROM categories WHERE lower(name) = lower(?) ORDER BY id",
                [name],
            ).fetchone()
        return _category_from_row(row) if row else None

    def create_category(self, category: NewCategory) -> Category:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO categories (name, icon, description) VALUES (?, ?, ?)",
                [category.name, category.icon, category.description],
            )
            new_id = cursor.lastrowid
        return Category(**category.model_dump(), id=new_id)

    # Tags
    def get_tags(self) -> List[Tag]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, name FROM tags ORDER BY id").fetchall()
        return [_tag_from_row(row) for row in rows]

    def get_tag(self, tag_id: int) -> Optional[Tag]:
        with self._connect() as conn:
            row = conn.execute("SELECT id, name FROM tags WHERE id = ?", [tag_id]).fetchone()
        return _tag_from_row(row) if row else None

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name FROM tags WHERE lower(name) = lower(?) ORDER BY id", [name]
            ).fetchone()
        return _tag_from_row(row) if row else None

    def create_tag(self, tag: NewTag) -> Tag:
        with self._connect() as conn:
            cursor = conn.execute("INSERT INTO tags (name) VALUES (?)", [tag.name])
            new_id = cursor.lastrowid
        return Tag(**tag.model_dump(), id=new_id)

    # Relationships
    def add_tool_category(self, tool_id: int, category_id: int) -> ToolCategory:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO tool_categories (tool_id, category_id) VALUES (?, ?)", [tool_id, category_id]
            )
            new_id = cursor.lastrowid
        return ToolCategory(id=new_id, tool_id=tool_id, category_id=category_id)

    def add_tool_tag(self, tool_id: int, tag_id: int) -> ToolTag:
        with self._connect() as conn:
            cursor = conn.execute("INSERT INTO tool_tags (tool_id, tag_id) VALUES (?, ?)", [tool_id, tag_id])
            new_id = cursor.lastrowid
        return ToolTag(id=new_id, tool_id=tool_id, tag_id=tag_id)

    def get_tool_categories(self, tool_id: int) -> List[Category]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT tc.category_id AS ref_id, c.id, c.name, c.icon, c.description
                FROM tool_categories tc
                LEFT JOIN categories c ON c.id = tc.category_id
                WHERE tc.tool_id = ?
                ORDER BY tc.id
            """,
                [tool_id],
            ).fetchall()

        categories = []
        for row in rows:
            if row["id"] is None:
                raise CatalogIntegrityError(f"Category with ID {row['ref_id']} not found")
            categories.append(_category_from_row(row))
        return categories

    def get_tool_tags(self, tool_id: int) -> List[Tag]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT tt.tag_id AS ref_id, t.id, t.name
                FROM tool_tags tt
                LEFT JOIN tags t ON t.id = tt.tag_id
                WHERE tt.tool_id = ?
                ORDER BY tt.id
            """,
                [tool_id],
            ).fetchall()

        tags = []
        for row in rows:
            if row["id"] is None:
                raise CatalogIntegrityError(f"Tag with ID {row['ref_id']} not found")
            tags.append(_tag_from_row(row))
        return tags


def build_store(settings: Settings) -> CatalogStore:
    """Create the catalog store selected by ``settings.catalog_backend``."""
    if settings.catalog_backend == "sqlite":
        return SqliteCatalogStore(settings.catalog_db_path)
    return InMemoryCatalogStore()
