"""
Embedding Client

This module implements a test-friendly embedding client for the two
supported providers:

- ``qwen``: OpenAI-compatible ``/embeddings`` endpoint, batched requests
- ``gemini``: ``embedContent`` endpoint, one request per text

It is responsible for batching, transport error isolation, strict response
validation and clamping vectors to the configured dimension. The class is
stateless and safe to reuse across requests.
"""

from __future__ import annotations

from typing import List, Sequence, Optional
import logging
import httpx

from ..config import settings
from ..core.errors import UpstreamProviderError

logger = logging.getLogger("blograg.embedder")

GEMINI_EMBED_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "text-embedding-004:embedContent"
)


class EmbeddingError(UpstreamProviderError):
    """Raised when embedding generation fails."""


class Embedder:
    """
    Asynchronous embedding generator for batches of text.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        dim: Optional[int] = None,
        timeout: float = 60.0,
    ) -> None:
        """
        Parameters
        ----------
        provider : Optional[str]
            ``qwen`` or ``gemini``. Defaults to settings.provider.

        api_key : Optional[str]
            Override for the provider API key.

        model : Optional[str]
            Override for the qwen embedding model.

        base_url : Optional[str]
            Override for the qwen API base (``.../v1`` or ``.../v1/embeddings``).

        dim : Optional[int]
            Output dimensionality. Defaults to settings.embed_dim.

        timeout : float
            HTTP timeout for each request.
        """
        self.provider = provider or settings.provider
        if self.provider not in ("qwen", "gemini"):
            raise ValueError(f"Unknown provider: {self.provider}")

        if api_key is None:
            secret = settings.qwen_api_key if self.provider == "qwen" else settings.google_api_key
            api_key = secret.get_secret_value()

        self.api_key = api_key
        self.model = model or settings.qwen_embed_model
        self.dim = dim or settings.embed_dim
        self.timeout = timeout

        base = base_url or settings.qwen_base
        self.base_url = base if base.endswith("/embeddings") else base.rstrip("/") + "/embeddings"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(
        self,
        texts: Sequence[str],
        batch_size: int = 10,
    ) -> List[List[float]]:
        """
        Generate embeddings for a sequence of input texts.

        Parameters
        ----------
        texts : Sequence[str]
            Input text strings.

        batch_size : int
            Maximum batch size per request (qwen only).

        Returns
        -------
        List[List[float]]
            One vector per input text, at most ``dim`` long.

        Raises
        ------
        EmbeddingError
            If any request fails or the response is malformed.
        """
        if not texts:
            return []

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            if self.provider == "gemini":
                vectors = await self._embed_gemini(client, texts)
            else:
                vectors = await self._embed_qwen(client, texts, batch_size)

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding count mismatch: expected {len(texts)}, got {len(vectors)}"
            )

        # Some providers return longer vectors; truncate
        return [v[: self.dim] for v in vectors]

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def _embed_qwen(
        self,
        client: httpx.AsyncClient,
        texts: Sequence[str],
        batch_size: int,
    ) -> List[List[float]]:
        all_embeddings: List[List[float]] = []
        headers = {"Authorization": f"Bearer {self.api_key}"}

        for start in range(0, len(texts), batch_size):
            batch = list(texts[start : start + batch_size])
            payload = {
                "model": self.model,
                "input": batch,
            }

            data = await self._post(client, self.base_url, payload, headers=headers)
            all_embeddings.extend(self._extract_openai_embeddings(data))

        return all_embeddings

    async def _embed_gemini(
        self,
        client: httpx.AsyncClient,
        texts: Sequence[str],
    ) -> List[List[float]]:
        embeddings: List[List[float]] = []

        for text in texts:
            payload = {
                "model": "models/text-embedding-004",
                "content": {"parts": [{"text": text}]},
                "outputDimensionality": self.dim,
            }
            data = await self._post(
                client,
                GEMINI_EMBED_URL,
                payload,
                params={"key": self.api_key},
            )

            try:
                values = data["embedding"]["values"]
            except (KeyError, TypeError) as exc:
                raise EmbeddingError("Gemini response missing 'embedding.values'.") from exc

            embeddings.append(self._validate_vector(values, 0))

        return embeddings

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        try:
            response = await client.post(url, json=payload, headers=headers, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "Embedding request failed (%s): provider=%s, error=%s",
                type(exc).__name__,
                self.provider,
                str(exc),
            )
            raise EmbeddingError(
                f"Embedding generation failed: {type(exc).__name__}"
            ) from exc

        return response.json()

    @staticmethod
    def _validate_vector(emb: object, index: int) -> List[float]:
        if not isinstance(emb, list) or not all(
            isinstance(x, (float, int)) for x in emb
        ):
            raise EmbeddingError(
                f"Invalid embedding vector at index {index}: must be float list."
            )
        return [float(x) for x in emb]

    @classmethod
    def _extract_openai_embeddings(cls, data: dict) -> List[List[float]]:
        """
        Parse and validate OpenAI-compatible embedding output:
            { "data": [ {"embedding": [...]}, ... ] }
        """
        if "data" not in data:
            raise EmbeddingError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list):
            raise EmbeddingError("'data' field must be a list.")

        embeddings: List[List[float]] = []

        for index, record in enumerate(records):
            if not isinstance(record, dict) or "embedding" not in record:
                raise EmbeddingError(
                    f"Malformed embedding record at index {index}: {record!r}"
                )
            embeddings.append(cls._validate_vector(record["embedding"], index))

        return embeddings
