"""
Embedding client: Hugging Face Inference API feature-extraction (all-MiniLM-L6-v2 by default).

Responsibility: text -> normalized vector. Used by ingestion (documents) and retrieval (queries).
"""

import logging

import httpx

from app.core.errors import ServiceUnavailableError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


class HFEmbeddings:
    """Batch embeddings over the HF router, falling back to the standard inference URL on 403."""

    def __init__(self, api_key: str, model: str, timeout: float = 30.0, batch_size: int = 32) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.batch_size = batch_size
        self.router_url = f"https://router.huggingface.co/hf-inference/models/{model}/pipeline/feature-extraction"
        self.standard_url = f"https://api-inference.huggingface.co/models/{model}"

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Batch embed texts. Batch embeddings reduce latency and improve throughput.
        Returns vectors normalized for cosine similarity.
        """
        if not texts:
            return []
        if not self.api_key:
            raise ServiceUnavailableError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens"
            )
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        all_embeddings: list[list[float]] = []
        try:
            with httpx.Client(timeout=self.timeout) as client:
                for i in range(0, len(texts), self.batch_size):
                    batch = texts[i : i + self.batch_size]
                    result = self._post_batch(client, batch, headers)
                    all_embeddings.extend(_normalize(vec) for vec in _as_vectors(result))
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Embedding request timed out, please retry: {e}") from e
        logger.info("[embeddings] OUT texts=%d vectors=%d", len(texts), len(all_embeddings))
        return all_embeddings

    def embed_query(self, text: str) -> list[float]:
        vectors = self.embed_documents([text])
        if not vectors:
            raise RuntimeError("embedding API returned no vector for query")
        return vectors[0]

    def _post_batch(self, client: httpx.Client, batch: list[str], headers: dict[str, str]):
        payload = {"inputs": batch, "options": {"wait_for_model": True}}
        response = client.post(self.router_url, json=payload, headers=headers)
        if response.status_code == 403:
            logger.info("[embeddings] router returned 403, retrying standard inference URL")
            response = client.post(self.standard_url, json=payload, headers=headers)
        if response.status_code == 200:
            return response.json()
        msg = response.text[:300]
        if response.status_code == 503:
            raise UpstreamTimeoutError(f"HF model is loading. Retry later. {msg}")
        if response.status_code == 401:
            raise ServiceUnavailableError("Invalid HF API key. Check HF_API_KEY at https://huggingface.co/settings/tokens")
        if response.status_code == 403:
            raise ServiceUnavailableError(f"HF token lacks Inference API permission. Create a token with read access. {msg}")
        raise RuntimeError(f"HF API error {response.status_code}: {msg}")


def _as_vectors(result) -> list[list[float]]:
    if isinstance(result, list) and result and isinstance(result[0], list):
        return result
    return [item if isinstance(item, list) else [item] for item in (result if isinstance(result, list) else [result])]


def _normalize(vec: list[float]) -> list[float]:
    norm = sum(x * x for x in vec) ** 0.5 or 1.0
    return [x / norm for x in vec]
