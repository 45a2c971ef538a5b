"""Tests for forgiving JSON parsing and the JSON LLM client."""

from __future__ import annotations

import asyncio

import pytest  # type: ignore

from jobfunnel.errors import MalformedResponseError
from jobfunnel.llm.parsing import drop_nulls, parse_json_response, try_salvage, try_strict_parse
from jobfunnel.llm.schemas import ScoreUrlsResponse

from conftest import ScriptedProvider, make_client


def test_strict_parse() -> None:
    assert try_strict_parse('{"a": 1}').value == {"a": 1}
    result = try_strict_parse("Sure! {\"a\": 1}")
    assert not result.ok and result.error


def test_salvage_finds_first_balanced_object() -> None:
    text = 'Here you go:\n```json\n{"results": [{"url": "https://x/{1}", "score": 90}]}\n```\nThanks'
    result = try_salvage(text)
    assert result.ok
    assert result.value["results"][0]["url"] == "https://x/{1}"


def test_salvage_finds_array_and_skips_broken_prefix() -> None:
    assert try_salvage("noise [1, 2, [3]] trailing").value == [1, 2, [3]]
    assert try_salvage("a {broken then {\"ok\": true}").value == {"ok": True}
    assert not try_salvage("no json here").ok


def test_drop_nulls() -> None:
    assert drop_nulls({"a": None, "b": [1, None, {"c": None, "d": 2}]}) == {"b": [1, {"d": 2}]}


def test_parse_json_response_raises_on_garbage() -> None:
    with pytest.raises(MalformedResponseError):
        parse_json_response("I cannot help with that")
    with pytest.raises(MalformedResponseError):
        parse_json_response("")


def test_client_validates_shape() -> None:
    provider = ScriptedProvider({"score": lambda payload: {"results": [{"url": "https://a", "score": "85"}]}})
    client = make_client(provider)
    from jobfunnel.llm import prompts

    resp = asyncio.run(client.call(prompts.URL_SCORING, {"urls": ["https://a"]}, ScoreUrlsResponse))
    assert resp.results[0].score == 85.0
    assert resp.results[0].kind == "irrelevant"


def test_client_accepts_bare_list_and_rejects_wrong_shape() -> None:
    from jobfunnel.llm import prompts

    provider = ScriptedProvider({"score": lambda payload: [{"url": "https://a", "score": 10}]})
    resp = asyncio.run(make_client(provider).call(prompts.URL_SCORING, {}, ScoreUrlsResponse))
    assert resp.results[0].url == "https://a"

    provider = ScriptedProvider({"score": lambda payload: {"results": [{"score": 10}]}})
    with pytest.raises(MalformedResponseError):
        asyncio.run(make_client(provider).call(prompts.URL_SCORING, {}, ScoreUrlsResponse))
