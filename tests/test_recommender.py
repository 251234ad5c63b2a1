import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from ai_tool_finder.config import Settings
from ai_tool_finder.errors import AdapterError
from ai_tool_finder.openai_utils import build_openai_client
from ai_tool_finder.openai_utils import strip_json_fences
from ai_tool_finder.recommender import OpenAIRanker
from ai_tool_finder.recommender import candidate_summary

CONTEXT = {"heading": "Make art with AI", "description": "Image tools for illustrations."}


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, content=None, error=None):
        self.completions = FakeCompletions(content, error)
        self.chat = SimpleNamespace(completions=self.completions)


def _reply(tool_ids, context=CONTEXT) -> str:
    return json.dumps({"tools": tool_ids, "context": context})


@pytest.fixture
def tools(sample_store):
    return sample_store.get_tools()


def test_ids_are_mapped_in_model_order(tools):
    ranker = OpenAIRanker(FakeClient(_reply([3, 1])), model="test-model")

    ranking = ranker.rank("open source art", tools)

    assert [tool.name for tool in ranking.tools] == ["Stable Diffusion", "DALL-E"]
    assert ranking.context.heading == CONTEXT["heading"]


def test_unknown_ids_are_dropped(tools):
    ranker = OpenAIRanker(FakeClient(_reply([99, 2, 42])), model="test-model")

    ranking = ranker.rank("art", tools)

    assert [tool.id for tool in ranking.tools] == [2]


def test_result_is_truncated_to_max_results(tools):
    ranker = OpenAIRanker(FakeClient(_reply([1, 2, 3, 4, 5, 6, 7])), model="test-model")
    assert len(ranker.rank("everything", tools).tools) == 5


def test_fenced_json_is_accepted(tools):
    content = "```json\n" + _reply([4]) + "\n```"
    ranking = OpenAIRanker(FakeClient(content), model="test-model").rank("chat", tools)
    assert [tool.name for tool in ranking.tools] == ["ChatGPT"]


def test_empty_tool_list_is_a_valid_answer(tools):
    ranking = OpenAIRanker(FakeClient(_reply([])), model="test-model").rank("quantum baking", tools)
    assert ranking.tools == []


@pytest.mark.parametrize(
    "content",
    [
        None,
        "",
        "not json at all",
        json.dumps({"tools": [1]}),
        json.dumps({"context": CONTEXT}),
        json.dumps({"tools": "1,2", "context": CONTEXT}),
        json.dumps({"tools": [1], "context": {"heading": "Only a heading"}}),
    ],
)
def test_malformed_replies_raise_adapter_error(tools, content):
    ranker = OpenAIRanker(FakeClient(content), model="test-model")
    with pytest.raises(AdapterError):
        ranker.rank("art", tools)


def test_missing_client_raises_adapter_error(tools):
    with pytest.raises(AdapterError, match="not configured"):
        OpenAIRanker(None, model="test-model").rank("art", tools)


def test_api_errors_become_adapter_errors(tools):
    ranker = OpenAIRanker(FakeClient(error=OpenAIError("rate limited")), model="test-model")
    with pytest.raises(AdapterError, match="rate limited"):
        ranker.rank("art", tools)


def test_request_sends_minimal_projection(tools):
    client = FakeClient(_reply([]))

    OpenAIRanker(client, model="test-model").rank("write a blog post", tools)

    call = client.completions.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    prompt = call["messages"][0]["content"]
    assert 'USER QUERY: "write a blog post"' in prompt
    assert '"companyName": "Jasper AI"' in prompt
    assert "logoUrl" not in prompt


def test_candidate_summary_fields(tools):
    assert set(candidate_summary(tools[0])) == {"id", "name", "description", "companyName", "pricing"}


def test_strip_json_fences():
    assert strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_json_fences('  {"a": 1} ') == '{"a": 1}'


def test_no_api_key_means_no_client():
    assert build_openai_client(Settings(openai_api_key=None)) is None


def test_client_never_retries_and_uses_configured_timeout():
    client = build_openai_client(Settings(openai_api_key="sk-test", search_timeout=3.0))

    assert client is not None
    assert client.max_retries == 0
    assert client.timeout.read == 3.0
    assert client.timeout.connect == 3.0


def test_connect_timeout_is_capped():
    client = build_openai_client(Settings(openai_api_key="sk-test", search_timeout=30.0))

    assert client.timeout.read == 30.0
    assert client.timeout.connect == 5.0
