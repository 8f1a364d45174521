import time
import asyncio
import logging
from typing import Dict, Any, List, Optional

from langchain_ollama import ChatOllama
from langchain_core.messages import HumanMessage
import httpx

logger = logging.getLogger(__name__)


class OllamaClient:
    """
    LangChain-based Ollama client with retry on connection failures.
    Used by the fish generator; responses are requested in JSON mode.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        temperature: float = 0.9,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 120.0,
        json_mode: bool = True,
    ):
        # ChatOllama talks to the native API, not the OpenAI-compatible /v1 one
        if base_url.endswith("/v1"):
            base_url = base_url[:-3]
        elif base_url.endswith("/v1/"):
            base_url = base_url[:-4]

        self.base_url = base_url.rstrip('/')
        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        options: Dict[str, Any] = {
            "base_url": self.base_url,
            "model": model,
            "temperature": temperature,
            "num_ctx": 4096,
        }
        if json_mode:
            options["format"] = "json"
        self.llm = ChatOllama(**options)

    @staticmethod
    def _is_connection_error(error: Exception) -> bool:
        if isinstance(error, (httpx.ConnectError, httpx.ConnectTimeout, ConnectionError)):
            return True
        message = str(error).lower()
        return "connection" in message or "connect" in message

    async def _invoke_with_retry(self, messages: List[HumanMessage]) -> Any:
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await asyncio.wait_for(
                    self.llm.ainvoke(messages),
                    timeout=self.timeout,
                )

            except asyncio.TimeoutError:
                last_exception = TimeoutError(
                    f"Request timed out after {self.timeout}s"
                )
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries}: Timeout, retrying..."
                )

            except Exception as e:
                if not self._is_connection_error(e):
                    raise
                last_exception = e
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries}: Connection error - {e} (base_url={self.base_url}, model={self.model})"
                )

            if attempt < self.max_retries:
                await asyncio.sleep(self.retry_delay * attempt)

        raise last_exception or ConnectionError("All connection attempts failed")

    async def complete(self, prompt: str) -> Dict[str, Any]:
        """
        Send a single prompt and return the content with its latency.
        """
        start = time.time()

        response = await self._invoke_with_retry([HumanMessage(content=prompt)])

        latency_ms = int((time.time() - start) * 1000)

        return {
            "content": response.content,
            "latency_ms": latency_ms,
        }

    async def health_check(self) -> bool:
        """
        Check that the Ollama server is reachable via /api/tags.
        """
        url = f"{self.base_url}/api/tags"
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(url)
                if resp.status_code == 200:
                    return True
                logger.error(f"Ollama health check failed: {resp.status_code} {resp.text}")
                return False
        except httpx.HTTPError as e:
            logger.error(f"Ollama health check error: {e} (url={url})")
            return False
