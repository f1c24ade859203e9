"""LLM artwork classifier (OpenAI chat completions)."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from printbrain.services.vocabulary import ERAS, MOODS, PALETTES, STYLES, SUBJECTS, canonical

logger = logging.getLogger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1"
SYSTEM_PROMPT = "Art classification bot. Return valid JSON array only."
WRAPPER_KEYS = ("results", "artworks", "classifications")
MIN_TAGS = 5
MAX_TAGS = 15


class TaggerError(Exception):
    """Classification request failed."""

    pass


class TaggerParseError(TaggerError):
    """Model output could not be read as a list of classifications."""

    pass


def build_prompt(assets: Sequence[Any]) -> str:
    """Compose the user prompt for one batch.

    Each asset is listed as ``i:"title" by artist`` in batch order.
    """
    items = "\n".join(
        f'{i}:"{getattr(a, "title", None) or "Untitled"}" by {getattr(a, "artist", None) or "?"}'
        for i, a in enumerate(assets)
    )
    return (
        "Classify each artwork. Return JSON array, one object per item, same order.\n"
        'Each: {"style":"...","mood":"...","subject":"...","era":"...","palette":"...",'
        '"tags":["t1","t2",...]}\n'
        f"styles:{','.join(STYLES)}\n"
        f"moods:{','.join(MOODS)}\n"
        f"subjects:{','.join(SUBJECTS)}\n"
        f"eras:{','.join(ERAS)}\n"
        f"palettes:{','.join(PALETTES)}\n"
        f"tags: {MIN_TAGS}-{MAX_TAGS} descriptive SEO keywords.\n\n"
        f"{items}"
    )


def parse_classifications(content: str) -> List[Dict[str, Any]]:
    """Read the model's JSON output as a list of objects.

    Accepts a bare array, an object wrapping the array under ``results``,
    ``artworks`` or ``classifications``, or an object whose only array
    value is the list.

    Raises:
        TaggerParseError: If no list can be found

    Examples:
        >>> parse_classifications('{"results": [{"style": "Baroque"}]}')
        [{'style': 'Baroque'}]
    """
    try:
        parsed = json.loads(content)
    except (TypeError, json.JSONDecodeError) as e:
        raise TaggerParseError(f"Invalid JSON from model: {e}")

    if isinstance(parsed, list):
        return parsed
    if not isinstance(parsed, dict):
        raise TaggerParseError(f"Unexpected JSON type: {type(parsed).__name__}")

    for key in WRAPPER_KEYS:
        if isinstance(parsed.get(key), list):
            return parsed[key]

    arrays = [value for value in parsed.values() if isinstance(value, list)]
    if len(arrays) == 1:
        return arrays[0]
    raise TaggerParseError(f"No array in model output (keys: {list(parsed.keys())[:5]})")


def normalize_classification(raw: Any) -> Dict[str, Any]:
    """Keep the declared keys and map them onto the vocabularies."""
    if not isinstance(raw, dict):
        return {}
    tags = raw.get("tags") or raw.get("ai_tags") or []
    if not isinstance(tags, list):
        tags = []
    clean_tags: List[str] = []
    for tag in tags:
        if isinstance(tag, str) and tag.strip() and tag.strip() not in clean_tags:
            clean_tags.append(tag.strip())
    return {
        "style": canonical("style", raw.get("style")),
        "mood": canonical("mood", raw.get("mood")),
        "subject": canonical("subject", raw.get("subject")),
        "era": canonical("era", raw.get("era")),
        "palette": canonical("palette", raw.get("palette")),
        "ai_tags": clean_tags[:MAX_TAGS],
    }


class ArtTagger:
    """Classify artwork batches with a chat-completions model.

    Example:
        >>> tagger = ArtTagger(api_key="sk-...")
        >>> results = await tagger.classify(assets)
        >>> results[0]["style"]
        'Impressionism'
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = OPENAI_API_URL,
        timeout: float = 120.0,
        attempts: int = 2,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise TaggerError("OPENAI_API_KEY is not configured")
        self.model = model
        self.timeout = timeout
        self.attempts = attempts
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )

    async def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
            "max_tokens": 8000,
            "response_format": {"type": "json_object"},
        }
        response = await self._client.post("/chat/completions", json=payload)
        if response.status_code >= 400:
            raise TaggerError(f"OpenAI HTTP {response.status_code}: {response.text[:300]}")
        data = response.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise TaggerError("OpenAI response missing message content")

    async def classify(self, assets: Sequence[Any]) -> List[Dict[str, Any]]:
        """Classify one batch, retrying with 1s * n back-off.

        Each attempt is bounded by a hard timeout.

        Returns:
            One normalized classification per asset that the model answered,
            in batch order

        Raises:
            TaggerError: When every attempt fails
        """
        prompt = build_prompt(assets)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.attempts + 1):
            try:
                content = await asyncio.wait_for(self._complete(prompt), timeout=self.timeout)
                results = parse_classifications(content)
                return [normalize_classification(r) for r in results[: len(assets)]]
            except (TaggerError, httpx.HTTPError, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(f"Classification attempt {attempt}/{self.attempts} failed: {e}")
                if attempt < self.attempts:
                    await asyncio.sleep(1.0 * attempt)

        raise TaggerError(f"Classification failed after {self.attempts} attempts: {last_error}")

    async def close(self) -> None:
        await self._client.aclose()
