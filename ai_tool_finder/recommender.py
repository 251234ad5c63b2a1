"""Model-backed ranking of catalog tools against a free-text query."""

import json
import logging
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Protocol
from typing import Sequence

from openai import OpenAIError
from pydantic import ValidationError

from .errors import AdapterError
from .models import MAX_SEARCH_RESULTS
from .models import RankingResponse
from .models import SearchContext
from .models import Tool
from .openai_utils import extract_message_text
from .openai_utils import parse_json_response

logger = logging.getLogger(__name__)

RANKING_TEMPERATURE = 0.5


@dataclass
class Ranking:
    tools: List[Tool]
    context: SearchContext


class Ranker(Protocol):
    def rank(self, query: str, tools: Sequence[Tool]) -> Ranking: ...


def candidate_summary(tool: Tool) -> Dict[str, Any]:
    """Minimal projection of a tool sent to the model."""
    return {
        "id": tool.id,
        "name": tool.name,
        "description": tool.description,
        "companyName": tool.company_name,
        "pricing": tool.pricing,
    }


def build_ranking_prompt(query: str, tools: Sequence[Tool], max_results: int = MAX_SEARCH_RESULTS) -> str:
    tools_json = json.dumps([candidate_summary(tool) for tool in tools], indent=2)
    return f"""You are an AI tool recommendation engine.
Given a user query about what they want to achieve with AI, recommend the most relevant AI tools from the list below.

USER QUERY: "{query}"

AVAILABLE TOOLS:
{tools_json}

Return a JSON object with exactly this structure:
{{
  "tools": [ids of the most relevant tools, most relevant first],
  "context": {{
    "heading": "A short, catchy heading summarizing the user's need",
    "description": "One or two sentences on what the user is looking for and how AI can help"
  }}
}}

Only include tools that are truly relevant to the query, at most {max_results}.
If none of the tools match, return an empty array for "tools"."""


class OpenAIRanker:
    """Ranks tools with one OpenAI chat completion returning a JSON object.

    ``client`` may be ``None`` when no API key is configured; every call then
    fails fast with ``AdapterError``.
    """

    def __init__(self, client: Optional[Any], model: str, max_results: int = MAX_SEARCH_RESULTS):
        self.client = client
        self.model = model
        self.max_results = max_results

    def rank(self, query: str, tools: Sequence[Tool]) -> Ranking:
        if self.client is None:
            raise AdapterError("OpenAI API key is not configured")

        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_ranking_prompt(query, tools, self.max_results)}],
                response_format={"type": "json_object"},
                temperature=RANKING_TEMPERATURE,
            )
        except OpenAIError as exc:
            raise AdapterError(f"OpenAI request failed: {exc}") from exc

        return self.parse(extract_message_text(completion), tools)

    def parse(self, content: str, tools: Sequence[Tool]) -> Ranking:
        """Map a raw model reply back onto the candidate tools."""
        if not content.strip():
            raise AdapterError("Empty response from OpenAI")

        payload = parse_json_response(content, context="search ranking")
        if payload is None:
            raise AdapterError("OpenAI response is not valid JSON")

        try:
            response = RankingResponse.model_validate(payload)
        except ValidationError as exc:
            raise AdapterError(f"OpenAI response is missing required fields: {exc}") from exc

        by_id = {tool.id: tool for tool in tools}
        ranked = []
        for tool_id in response.tools:
            tool = by_id.get(tool_id)
            if tool is None:
                logger.info(f"Dropping unknown tool id {tool_id} from model ranking")
                continue
            if tool not in ranked:
                ranked.append(tool)

        return Ranking(tools=ranked[: self.max_results], context=response.context)
