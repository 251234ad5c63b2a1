"""Local keyword ranking used when the model-backed ranking is unavailable."""

import logging
from typing import List
from typing import Sequence
from typing import Set
from typing import Tuple

from .models import MAX_SEARCH_RESULTS
from .models import DecoratedTool
from .models import SearchContext
from .models import SearchResult

logger = logging.getLogger(__name__)

NAME_WEIGHT = 3
CATEGORY_WEIGHT = 2
BASE_WEIGHT = 1


def query_terms(query: str) -> Set[str]:
    """Lowercase whitespace-separated terms that contain at least one letter or digit."""
    return {term for term in query.lower().split() if any(char.isalnum() for char in term)}


def score_tool(tool: DecoratedTool, terms: Set[str]) -> int:
    """Score a tool against query terms.

    A term found anywhere in the tool's text earns 1 point, plus 3 more when it
    is in the name and 2 more when it is in a category name.
    """
    name = tool.name.lower()
    categories = [category.lower() for category in tool.categories]
    haystack = " ".join([name, tool.description.lower(), *categories, *(tag.lower() for tag in tool.tags)])

    score = 0
    for term in terms:
        if term not in haystack:
            continue
        if term in name:
            score += NAME_WEIGHT
        if any(term in category for category in categories):
            score += CATEGORY_WEIGHT
        score += BASE_WEIGHT
    return score


def rank_tools(
    query: str, candidates: Sequence[DecoratedTool], limit: int = MAX_SEARCH_RESULTS
) -> List[Tuple[DecoratedTool, int]]:
    """Return ``(tool, score)`` pairs with a positive score, best first.

    Ties keep the candidates' original order.
    """
    terms = query_terms(query)
    if not terms:
        return []

    scored = [(tool, score_tool(tool, terms)) for tool in candidates]
    matches = [pair for pair in scored if pair[1] > 0]
    matches.sort(key=lambda pair: pair[1], reverse=True)
    return matches[:limit]


def fallback_context(query: str) -> SearchContext:
    return SearchContext(
        heading=f'AI Tools for "{query}"',
        description=(
            f"Here are some AI tools that might help you with {query}. "
            "(Using local search - AI-powered ranking is unavailable)"
        ),
    )


def local_search(query: str, candidates: Sequence[DecoratedTool]) -> SearchResult:
    """Rank candidates locally and wrap them in a search result."""
    ranked = rank_tools(query, candidates)
    logger.info(f"Local search matched {len(ranked)} of {len(candidates)} tools for {query!r}")
    return SearchResult(tools=[tool for tool, _ in ranked], context=fallback_context(query))
