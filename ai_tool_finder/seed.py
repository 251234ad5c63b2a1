"""Load a catalog document into an empty store."""

import json
import logging
from pathlib import Path
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from minio import Minio
from minio.error import S3Error
from pydantic import BaseModel
from pydantic import Field

from .config import Settings
from .errors import CatalogIntegrityError
from .logging_config import IndentLogger
from .models import NewCategory
from .models import NewTag
from .models import NewTool
from .storage import CatalogStore

base_logger = logging.getLogger(__name__)
logger = IndentLogger(base_logger)

SAMPLE_CATALOG_PATH = Path(__file__).parent / "sample_catalog.json"
EMPTY_CATALOG: Dict[str, List] = {"categories": [], "tags": [], "tools": []}


class SeedTool(NewTool):
    categories: List[str] = Field(default_factory=list, description="Category names")
    tags: List[str] = Field(default_factory=list, description="Tag names")


class CatalogDocument(BaseModel):
    categories: List[NewCategory] = Field(default_factory=list)
    tags: List[NewTag] = Field(default_factory=list)
    tools: List[SeedTool] = Field(default_factory=list)


def load_catalog_file(path: Path) -> Dict[str, Any]:
    """Read a catalog document from a local JSON file."""
    data = json.loads(Path(path).read_text())
    base_logger.info(f"Loaded catalog with {len(data.get('tools', [])):,} tools from {path}")
    return data


def sample_catalog() -> Dict[str, Any]:
    return load_catalog_file(SAMPLE_CATALOG_PATH)


def get_minio_client(settings: Settings) -> Minio:
    missing = [
        name
        for name, value in (
            ("MINIO_ENDPOINT", settings.minio_endpoint),
            ("MINIO_ACCESS_KEY", settings.minio_access_key),
            ("MINIO_SECRET_KEY", settings.minio_secret_key),
            ("MINIO_BUCKET_NAME", settings.minio_bucket_name),
        )
        if not value
    ]
    if missing:
        raise RuntimeError(f"MinIO catalog source requires {', '.join(missing)} to be set")

    return Minio(
        endpoint=settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_secure,
    )


def load_catalog_from_minio(client: Minio, bucket_name: str, key: str) -> Dict[str, Any]:
    """Read a catalog document from MinIO; a missing object yields an empty catalog."""
    try:
        response = client.get_object(bucket_name, key)
    except S3Error as e:
        if "NoSuchKey" in str(e):
            base_logger.info(f"No {key} found in bucket {bucket_name}, using empty catalog")
            return json.loads(json.dumps(EMPTY_CATALOG))
        base_logger.error(f"Failed to get {key}: {e}")
        raise

    try:
        data = json.loads(response.read())
    finally:
        response.close()
        response.release_conn()
    base_logger.info(f"Loaded catalog with {len(data.get('tools', [])):,} tools from MinIO")
    return data


def load_seed_document(settings: Settings) -> Optional[Dict[str, Any]]:
    """Resolve ``settings.catalog_seed`` to a catalog document, or ``None`` to skip seeding."""
    source = settings.catalog_seed
    if source == "none":
        return None
    if source == "sample":
        return sample_catalog()
    if source == "minio":
        client = get_minio_client(settings)
        return load_catalog_from_minio(client, settings.minio_bucket_name, settings.catalog_seed_key)
    return load_catalog_file(Path(source))


def _check_references(store: CatalogStore, catalog: CatalogDocument) -> None:
    """Raise ``CatalogIntegrityError`` for any tool naming an unknown category or tag.

    Runs before the first write so a bad document leaves the store empty.
    """
    category_names = {category.name.lower() for category in catalog.categories}
    category_names.update(category.name.lower() for category in store.get_categories())
    tag_names = {tag.name.lower() for tag in catalog.tags}
    tag_names.update(tag.name.lower() for tag in store.get_tags())

    problems = []
    for seed_tool in catalog.tools:
        problems.extend(
            f"{seed_tool.name!r} references unknown category {name!r}"
            for name in seed_tool.categories
            if name.lower() not in category_names
        )
        problems.extend(
            f"{seed_tool.name!r} references unknown tag {name!r}"
            for name in seed_tool.tags
            if name.lower() not in tag_names
        )
    if problems:
        raise CatalogIntegrityError("Catalog document is inconsistent: " + "; ".join(problems))


def seed_catalog(store: CatalogStore, document: Dict[str, Any]) -> int:
    """Populate an empty store from a catalog document.

    Returns the number of tools created; a store that already holds tools is
    left untouched. References are checked before anything is written.
    """
    existing = store.count_tools()
    if existing:
        logger.info(f"Catalog already contains {existing} tools, skipping seed")
        return 0

    catalog = CatalogDocument.model_validate(document)
    _check_references(store, catalog)

    with logger.section("Seeding catalog"):
        category_ids = {}
        for new_category in catalog.categories:
            category = store.get_category_by_name(new_category.name) or store.create_category(new_category)
            category_ids[category.name.lower()] = category.id
        for category in store.get_categories():
            category_ids.setdefault(category.name.lower(), category.id)
        logger.info(f"{len(catalog.categories)} categories")

        tag_ids = {}
        for new_tag in catalog.tags:
            tag = store.get_tag_by_name(new_tag.name) or store.create_tag(new_tag)
            tag_ids[tag.name.lower()] = tag.id
        for tag in store.get_tags():
            tag_ids.setdefault(tag.name.lower(), tag.id)
        logger.info(f"{len(catalog.tags)} tags")

        for seed_tool in catalog.tools:
            tool = store.create_tool(NewTool(**seed_tool.model_dump(exclude={"categories", "tags"})))
            for name in seed_tool.categories:
                store.add_tool_category(tool.id, category_ids[name.lower()])
            for name in seed_tool.tags:
                store.add_tool_tag(tool.id, tag_ids[name.lower()])
        logger.info(f"{len(catalog.tools)} tools")

    logger.info("Catalog seed complete")
    return len(catalog.tools)
