from typing import Optional
import logging

import httpx

from ..config import settings
from ..core.errors import UpstreamProviderError

logger = logging.getLogger("blograg.llm")

GEMINI_GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class LLMError(UpstreamProviderError):
    """Raised when answer generation fails."""


class LLMClient:
    def __init__(
        self,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
    ):
        self.provider = provider or settings.provider
        if api_key is None:
            secret = settings.qwen_api_key if self.provider == "qwen" else settings.google_api_key
            api_key = secret.get_secret_value()
        self.api_key = api_key

        default_model = "qwen-plus" if self.provider == "qwen" else "gemini-2.5-flash"
        self.model = model or settings.llm_model or default_model
        self.timeout = timeout

    async def generate(self, prompt: str) -> str:
        """
        Single-turn generation. Returns the answer text ("" when the
        provider returns no content).
        """
        if self.provider == "gemini":
            url = GEMINI_GENERATE_URL.format(model=self.model)
            payload = {"contents": [{"parts": [{"text": prompt}]}]}
            data = await self._post(url, payload, params={"key": self.api_key})

            candidates = data.get("candidates") or [{}]
            parts = (candidates[0].get("content") or {}).get("parts") or []
            return "".join(p.get("text", "") for p in parts)

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are the assistant of a bilingual technical blog."},
                {"role": "user", "content": prompt},
            ],
        }
        data = await self._post(
            settings.qwen_chat_base,
            payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""

    async def _post(
        self,
        url: str,
        payload: dict,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("LLM request failed (%s): %s", type(exc).__name__, exc)
            raise LLMError(f"{self.provider} generate error: {type(exc).__name__}") from exc

        return resp.json()
