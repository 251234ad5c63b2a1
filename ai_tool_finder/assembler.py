"""Attach category and tag names to tools for API responses."""

import logging
from typing import Iterable
from typing import List

from .models import DecoratedTool
from .models import Tool
from .storage import CatalogStore

logger = logging.getLogger(__name__)


class ToolAssembler:
    """Builds ``DecoratedTool`` records from the store's join tables.

    Store errors, including ``CatalogIntegrityError`` for dangling join rows,
    propagate to the caller.
    """

    def __init__(self, store: CatalogStore):
        self.store = store

    def decorate(self, tool: Tool) -> DecoratedTool:
        categories = self.store.get_tool_categories(tool.id)
        tags = self.store.get_tool_tags(tool.id)
        return DecoratedTool(
            **tool.model_dump(),
            categories=[category.name for category in categories],
            tags=[tag.name for tag in tags],
        )

    def decorate_all(self, tools: Iterable[Tool]) -> List[DecoratedTool]:
        decorated = [self.decorate(tool) for tool in tools]
        logger.debug(f"Decorated {len(decorated)} tools")
        return decorated
