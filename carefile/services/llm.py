import logging
import re

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from carefile.config import (
    ANTHROPIC_API_KEY,
    LLM_DEFAULT_TIER,
    LLM_MODEL_FAST,
    LLM_MODEL_HIGH,
    LLM_MODEL_STANDARD,
    LLM_PROVIDER,
    OPENAI_API_KEY,
)
from carefile.services.media import split_data_uri

logger = logging.getLogger(__name__)

_ANTHROPIC_DEFAULTS = {
    "fast": "claude-3-5-haiku-latest",
    "standard": "claude-sonnet-4-5",
    "high": "claude-sonnet-4-5",
}

_OPENAI_DEFAULTS = {
    "fast": "gpt-4o-mini",
    "standard": "gpt-4o",
    "high": "gpt-4o",
}


def strip_json(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start:end + 1]
    return text


def _openai_content(user: str, images: list[str]) -> str | list[dict]:
    if not images:
        return user
    parts: list[dict] = [{"type": "text", "text": user}]
    for uri in images:
        parts.append({"type": "image_url", "image_url": {"url": uri}})
    return parts


def _anthropic_content(user: str, images: list[str]) -> str | list[dict]:
    if not images:
        return user
    parts: list[dict] = [{"type": "text", "text": user}]
    for uri in images:
        media_type, data = split_data_uri(uri)
        parts.append({
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        })
    return parts


class LLMClient:
    def __init__(self) -> None:
        provider = (LLM_PROVIDER or "auto").lower()
        if provider == "auto":
            if OPENAI_API_KEY:
                provider = "openai"
            elif ANTHROPIC_API_KEY:
                provider = "anthropic"
            else:
                provider = "dummy"
        self.provider = provider

        self._anthropic = AsyncAnthropic(api_key=ANTHROPIC_API_KEY) if ANTHROPIC_API_KEY else None
        self._openai = AsyncOpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None

    def available(self) -> bool:
        if self.provider == "anthropic":
            return self._anthropic is not None
        if self.provider == "openai":
            return self._openai is not None
        return False

    def model_for_tier(self, tier: str | None) -> str:
        tier = (tier or LLM_DEFAULT_TIER or "standard").lower()
        if tier not in ("fast", "standard", "high"):
            tier = "standard"

        if tier == "fast" and LLM_MODEL_FAST:
            return LLM_MODEL_FAST
        if tier == "standard" and LLM_MODEL_STANDARD:
            return LLM_MODEL_STANDARD
        if tier == "high" and LLM_MODEL_HIGH:
            return LLM_MODEL_HIGH

        if self.provider == "anthropic":
            return _ANTHROPIC_DEFAULTS[tier]
        return _OPENAI_DEFAULTS[tier]

    async def generate_text(
        self,
        *,
        system: str,
        user: str,
        images: list[str] | None = None,
        max_tokens: int = 2000,
        tier: str | None = None,
    ) -> str:
        """Send one system + user turn (text plus optional data-URI images) and return the reply text."""
        if not self.available():
            raise RuntimeError("LLM provider unavailable")

        images = images or []
        model = self.model_for_tier(tier)
        logger.debug("LLM request: provider=%s model=%s images=%d", self.provider, model, len(images))

        if self.provider == "anthropic":
            message = await self._anthropic.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": _anthropic_content(user, images)}],
            )
            raw = ""
            for block in message.content:
                if hasattr(block, "text"):
                    raw += block.text
            return raw

        response = await self._openai.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": _openai_content(user, images)},
            ],
            max_tokens=max_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
