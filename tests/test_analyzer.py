import asyncio

import pytest

from tokenpulse.exceptions import LLMError, NoResultsError, XApiError
from tokenpulse.schemas import AnalyzeResponse, ErrorResponse
from tokenpulse.services.analyzer import analyze, run_analysis
from tokenpulse.services.prompt import REPAIR_INSTRUCTION
from tokenpulse.sources.collector import SearchOptions

from conftest import NOW, FakeLLMClient, FakeXClient, make_post, model_reply


def _posts():
    return [
        make_post("1", author="alice", verified=True, likes=50),
        make_post("2", author="bob", likes=20, minutes_ago=400),
        make_post("3", author="carol", likes=5),
    ]


def _run(token, action, x_client, llm_client, options=None):
    return asyncio.run(
        analyze(token, action, options or SearchOptions(), x_client=x_client,
                llm_client=llm_client, now=NOW)
    )


def test_happy_path_single_model_call():
    x_client = FakeXClient(_posts())
    llm = FakeLLMClient([model_reply(post_ids_used=["1", "2", "42"])])

    result = _run("$sol", "BUY", x_client, llm)

    assert isinstance(result, AnalyzeResponse)
    assert result.token == "SOL"
    assert result.decision == "ALLOW"
    assert result.post_ids_used == ["1", "2"]
    assert [p.id for p in result.top_posts] == ["1", "2", "3"]
    assert result.as_of == NOW.isoformat()
    assert len(llm.calls) == 1
    assert llm.calls[0]["follow_up"] is None
    assert "token=SOL" in llm.calls[0]["user"]


def test_search_uses_built_query_and_options():
    x_client = FakeXClient(_posts())
    llm = FakeLLMClient([model_reply()])
    options = SearchOptions(max_posts=2, official_only=True, lang="en")

    result = _run("sol", "BUY", x_client, llm, options)

    query, max_results = x_client.queries[0]
    assert query.startswith("from:solana ")
    assert query.endswith("lang:en")
    assert max_results == 100
    assert len(result.top_posts) == 2


def test_invalid_reply_triggers_one_repair():
    llm = FakeLLMClient(["I think SOL is going up!", model_reply(recommended_action="SELL", bias="BEARISH")])

    result = _run("sol", "BUY", FakeXClient(_posts()), llm)

    assert len(llm.calls) == 2
    assert llm.calls[1]["follow_up"] == REPAIR_INSTRUCTION
    assert llm.calls[1]["user"] == llm.calls[0]["user"]
    assert result.recommended_action == "SELL"
    assert result.decision == "REVERSE"


def test_two_invalid_replies_fall_back():
    llm = FakeLLMClient(["nope", '{"decision": "ALLOW"}'])

    result = _run("sol", "SELL", FakeXClient(_posts()), llm)

    assert len(llm.calls) == 2
    assert result.requested_action == "SELL"
    assert result.recommended_action == "HOLD"
    assert result.decision == "ABORT"
    assert result.reason == "AI unavailable"
    assert len(result.top_posts) == 3


def test_empty_model_reply_falls_back_after_repair():
    llm = FakeLLMClient([None, None])

    result = _run("sol", "BUY", FakeXClient(_posts()), llm)

    assert len(llm.calls) == 2
    assert result.reason == "AI unavailable"


def test_unusable_ticker_never_hits_network():
    x_client = FakeXClient(_posts())
    llm = FakeLLMClient([model_reply()])

    with pytest.raises(NoResultsError):
        _run("$", "BUY", x_client, llm)

    assert x_client.queries == []
    assert llm.calls == []


def test_no_posts_is_no_results():
    llm = FakeLLMClient([model_reply()])

    with pytest.raises(NoResultsError):
        _run("sol", "BUY", FakeXClient([]), llm)

    assert llm.calls == []


def test_collaborator_errors_propagate():
    with pytest.raises(XApiError):
        _run("sol", "BUY", FakeXClient(error=XApiError("X API: Rate limit exceeded.", 429)), FakeLLMClient())

    with pytest.raises(LLMError):
        _run("sol", "BUY", FakeXClient(_posts()), FakeLLMClient(error=LLMError("OpenAI: quota")))


def test_run_analysis_reports_structured_errors():
    empty = asyncio.run(run_analysis("sol", "BUY", SearchOptions(), x_client=FakeXClient([]),
                                     llm_client=FakeLLMClient(), now=NOW))
    failed = asyncio.run(run_analysis("sol", "BUY", SearchOptions(),
                                      x_client=FakeXClient(_posts()),
                                      llm_client=FakeLLMClient(error=LLMError("OpenAI: bad key")),
                                      now=NOW))

    assert isinstance(empty, ErrorResponse)
    assert "No recent posts" in empty.error
    assert failed == ErrorResponse(error="OpenAI: bad key")


def test_run_analysis_passes_through_success():
    result = asyncio.run(run_analysis("eth", "SELL", SearchOptions(), x_client=FakeXClient(_posts()),
                                      llm_client=FakeLLMClient([model_reply()]), now=NOW))

    assert isinstance(result, AnalyzeResponse)
    assert result.requested_action == "SELL"
    assert result.decision == "REVERSE"


def test_prompt_and_query_share_the_normalized_ticker():
    x_client = FakeXClient(_posts())
    llm = FakeLLMClient([model_reply()])

    result = _run("$#sol", "BUY", x_client, llm)

    assert result.token == "SOL"
    assert "token=SOL\n" in llm.calls[0]["user"]
    assert '"$SOL"' in x_client.queries[0][0]
    assert "#SOL" in x_client.queries[0][0]
    assert "##SOL" not in x_client.queries[0][0]
