"""Visual oracle client.

Sends an image URL to an OpenAI-compatible chat completions endpoint and
parses the list of ``{tag, confidence, reason}`` objects it returns.
"""

import json
import logging
import re
from typing import List, Optional

import httpx

from snaptag.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

PROMPT = (
    "You are tagging reference images for an architecture practice. "
    "List 4-8 architectural tags you can see in this image: spaces, elements, "
    "materials and styles. Respond with only a JSON array of objects with the "
    'keys "tag" (lower-case, one or two words), "confidence" (0 to 1) and '
    '"reason" (a short phrase).'
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class VisualOracle:
    """Client for a vision model that proposes tags for an image URL."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout: Optional[float] = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> Optional["VisualOracle"]:
        """Build an oracle from app settings, or None when no key is set."""
        if not settings.vision_enabled:
            return None
        return cls(
            api_key=settings.vision_api_key,
            base_url=settings.vision_api_base,
            model=settings.vision_model,
            timeout=settings.vision_timeout_seconds,
        )

    def suggest_tags(self, image_url: str) -> List[dict]:
        """Ask the model for tags visible at ``image_url``.

        Returns a list of dicts with ``tag``, ``confidence`` (0-1) and ``reason``.

        Raises:
            UpstreamUnavailable: no API key, transport failure, non-2xx status or
                an answer that is not a JSON array of tag objects.
        """
        if not self.api_key:
            raise UpstreamUnavailable("Visual oracle is not configured (missing API key)")

        payload = {
            "model": self.model,
            "temperature": 0.2,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/chat/completions"

        try:
            if self.client is not None:
                response = self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                response = httpx.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Visual oracle request failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable(f"Visual oracle returned a non-JSON body: {exc}") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamUnavailable("Visual oracle response has no message content") from exc

        tags = parse_tag_list(content)
        logger.info("Visual oracle proposed %d tags", len(tags))
        return tags


def normalize_confidence(value) -> float:
    """Coerce a model confidence to 0-1; values above 1 are read as percentages."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.5
    if confidence > 1:
        confidence = confidence / 100.0
    return max(0.0, min(1.0, confidence))


def parse_tag_list(content) -> List[dict]:
    """Parse the model answer into tag dicts, dropping malformed entries."""
    if isinstance(content, list):
        # Some servers return content parts instead of a string.
        content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
    text = _FENCE_RE.sub("", (content or "").strip())

    try:
        data = json.loads(text)
    except ValueError:
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            raise UpstreamUnavailable("Visual oracle answer is not a JSON array")
        try:
            data = json.loads(text[start:end + 1])
        except ValueError as exc:
            raise UpstreamUnavailable("Visual oracle answer is not a JSON array") from exc

    if isinstance(data, dict):
        data = data.get("tags", [])
    if not isinstance(data, list):
        raise UpstreamUnavailable("Visual oracle answer is not a JSON array")

    tags = []
    for item in data:
        if not isinstance(item, dict):
            continue
        tag = str(item.get("tag") or "").strip()
        if not tag:
            continue
        tags.append({
            "tag": tag,
            "confidence": normalize_confidence(item.get("confidence")),
            "reason": str(item.get("reason") or "Visual analysis").strip(),
        })
    return tags
