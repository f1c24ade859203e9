"""Tests for the artwork classifier."""

import json
from types import SimpleNamespace

import httpx
import pytest

from printbrain.services.tagger import (
    MAX_TAGS,
    ArtTagger,
    TaggerError,
    TaggerParseError,
    build_prompt,
    normalize_classification,
    parse_classifications,
)


class TestParseClassifications:
    def test_bare_array(self):
        assert parse_classifications('[{"style": "Baroque"}]') == [{"style": "Baroque"}]

    @pytest.mark.parametrize("key", ["results", "artworks", "classifications"])
    def test_known_wrappers(self, key):
        content = json.dumps({key: [{"style": "Cubism"}], "note": "x"})
        assert parse_classifications(content) == [{"style": "Cubism"}]

    def test_single_unknown_array_key(self):
        assert parse_classifications('{"items": [{"mood": "Serene"}]}') == [{"mood": "Serene"}]

    def test_ambiguous_object(self):
        with pytest.raises(TaggerParseError):
            parse_classifications('{"a": [1], "b": [2]}')

    def test_invalid_json(self):
        with pytest.raises(TaggerParseError):
            parse_classifications("not json")


class TestNormalizeClassification:
    def test_canonical_spelling(self):
        result = normalize_classification(
            {"style": " impressionism ", "mood": "SERENE", "subject": "landscape", "era": "unknown"}
        )
        assert result["style"] == "Impressionism"
        assert result["mood"] == "Serene"
        assert result["subject"] == "Landscape"
        assert result["era"] == "Unknown"

    def test_out_of_vocabulary_value_kept(self):
        assert normalize_classification({"style": "Vaporwave"})["style"] == "Vaporwave"

    def test_tags_deduplicated_and_capped(self):
        tags = ["sea", "sea", " boats ", ""] + [f"t{i}" for i in range(30)]
        result = normalize_classification({"tags": tags})
        assert result["ai_tags"][:2] == ["sea", "boats"]
        assert len(result["ai_tags"]) == MAX_TAGS

    def test_non_dict(self):
        assert normalize_classification("Baroque") == {}


def test_prompt_lists_items_in_order():
    prompt = build_prompt(
        [SimpleNamespace(title="Harbour", artist="Jane Doe"), SimpleNamespace(title=None, artist=None)]
    )
    assert '0:"Harbour" by Jane Doe' in prompt
    assert '1:"Untitled" by ?' in prompt


def tagger_with(handler) -> ArtTagger:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.test/v1")
    return ArtTagger(api_key="sk-test", client=client, attempts=2)


def completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


async def test_classify_returns_one_result_per_asset():
    def handler(request):
        body = json.loads(request.content)
        assert body["response_format"] == {"type": "json_object"}
        return completion(json.dumps({"results": [{"style": "baroque", "tags": ["gold"]}]}))

    tagger = tagger_with(handler)
    results = await tagger.classify([SimpleNamespace(title="A", artist="B")])
    await tagger.close()

    assert results[0]["style"] == "Baroque"
    assert results[0]["ai_tags"] == ["gold"]


async def test_classify_retries_then_fails():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(500, text="upstream error")

    tagger = tagger_with(handler)
    with pytest.raises(TaggerError):
        await tagger.classify([SimpleNamespace(title="A", artist="B")])
    await tagger.close()
    assert calls["n"] == 2


def test_missing_api_key():
    with pytest.raises(TaggerError):
        ArtTagger(api_key="")


