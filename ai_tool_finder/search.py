"""Search orchestration: model ranking with a local keyword fallback."""

import logging
from typing import Optional

from pydantic import ValidationError

from .assembler import ToolAssembler
from .errors import AdapterError
from .models import SearchResult
from .ranking import local_search
from .recommender import Ranker
from .storage import CatalogStore

logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """Answers search queries against the catalog.

    Candidates are loaded and decorated first; store failures at that stage
    propagate because neither ranking path can run without them. The model
    ranking is tried next, and any failure there (or a result that does not
    validate) falls back to local keyword ranking over the same candidates.
    """

    def __init__(self, store: CatalogStore, ranker: Ranker, assembler: Optional[ToolAssembler] = None):
        self.store = store
        self.ranker = ranker
        self.assembler = assembler or ToolAssembler(store)

    def search(self, query: str) -> SearchResult:
        tools = self.store.get_tools()
        candidates = self.assembler.decorate_all(tools)

        try:
            ranking = self.ranker.rank(query, tools)
            decorated_by_id = {tool.id: tool for tool in candidates}
            result = SearchResult.model_validate(
                {
                    "tools": [decorated_by_id[tool.id] for tool in ranking.tools],
                    "context": ranking.context,
                }
            )
        except (AdapterError, ValidationError) as exc:
            logger.warning(f"External ranking failed, using local search: {exc}")
            return local_search(query, candidates)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error in external ranking, using local search")
            return local_search(query, candidates)

        logger.info(f"Model ranking returned {len(result.tools)} tools for {query!r}")
        return result
