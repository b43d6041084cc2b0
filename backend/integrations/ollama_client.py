"""
Ollama REST API client used to draft cleaning SQL.
Health checks read /api/tags; drafts go through /api/generate with retries.
"""
import logging
import time
from typing import Optional
import httpx

from config import settings

logger = logging.getLogger(__name__)

SQL_SYSTEM_PROMPT = "You write PostgreSQL data-cleaning scripts. Reply with SQL only."


class OllamaClient:
    def __init__(self, host: Optional[str] = None, model: Optional[str] = None):
        self.model = model or settings.OLLAMA_MODEL
        self._http = httpx.Client(
            base_url=(host or settings.OLLAMA_HOST).rstrip("/"),
            timeout=settings.OLLAMA_TIMEOUT_SECONDS,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def is_healthy(self) -> tuple[bool, Optional[str]]:
        """(True, model) when the server answers and has the model pulled, else (False, reason)."""
        try:
            resp = self._http.get("/api/tags", timeout=5)
            resp.raise_for_status()
            pulled = {m.get("name") for m in resp.json().get("models", [])}
        except (httpx.HTTPError, ValueError) as e:
            return False, str(e)
        if self.model not in pulled:
            return False, f"model {self.model} is not pulled"
        return True, self.model

    def generate(self, prompt: str, max_retries: int = 3) -> str:
        """
        Non-streaming completion for `prompt`. Low temperature keeps SQL
        drafts deterministic. Raises RuntimeError once retries are exhausted.
        """
        body = {
            "model": self.model,
            "system": SQL_SYSTEM_PROMPT,
            "prompt": prompt,
            "stream": False,
            "options": {"num_ctx": 4096, "temperature": 0.1},
        }
        last_err: Optional[Exception] = None
        for attempt in range(1, max_retries + 1):
            try:
                resp = self._http.post("/api/generate", json=body)
                resp.raise_for_status()
                reply = resp.json().get("response", "")
                logger.debug("Ollama replied with %d chars on attempt %d", len(reply), attempt)
                return reply.strip()
            except (httpx.HTTPError, ValueError) as e:
                last_err = e
                logger.warning("Ollama attempt %d/%d failed: %s", attempt, max_retries, e)
                if attempt < max_retries:
                    time.sleep(2 ** attempt)
        raise RuntimeError(f"Ollama failed after {max_retries} attempts: {last_err}")
