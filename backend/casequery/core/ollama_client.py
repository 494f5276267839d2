"""
Ollama chat API client used by the AI escalation adapter
"""
import asyncio
import json
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from casequery.core.config import Settings, get_settings
from casequery.core.logging_config import LoggingConfig
from casequery.core.metrics import llm_request_duration_seconds, llm_requests_total


class OllamaResponse(BaseModel):
    """Ollama API response model"""
    model: str
    response: str
    done: bool = False

    def json_payload(self) -> Dict[str, Any]:
        """Parse the response text as a JSON object"""
        try:
            parsed = json.loads(self.response or "{}")
        except json.JSONDecodeError as e:
            raise OllamaError(f"Model returned invalid JSON: {e}", kind="invalid_response")
        if not isinstance(parsed, dict):
            raise OllamaError("Model returned JSON that is not an object", kind="invalid_response")
        return parsed


class OllamaError(Exception):
    """Raised for any failure talking to the Ollama server"""

    def __init__(self, message: str, kind: str = "http", status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class OllamaClient:
    """
    Client for the Ollama /api/chat endpoint

    A fresh httpx client is opened per request so no connection state or lock
    is shared between concurrent queries. Connection errors are retried;
    timeouts and HTTP errors are not.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 2,
    ):
        self.settings = settings or get_settings()
        self.base_url = self._normalize_base_url(base_url or self.settings.ollama_url)
        self.model = model or self.settings.ollama_model
        self.transport = transport
        self.max_retries = max(1, max_retries)
        self.logger = LoggingConfig.get_logger(__name__)

    @staticmethod
    def _normalize_base_url(url: str) -> str:
        """Strip an OpenAI-style /v1 suffix; Ollama native endpoints live at the root"""
        url = (url or "").strip().rstrip("/")
        if url and not url.startswith(("http://", "https://")):
            url = f"http://{url}"
        if url.endswith("/v1"):
            url = url[:-3]
        return url

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
        operation: str = "chat",
        timeout: Optional[float] = None,
        **kwargs
    ) -> OllamaResponse:
        """
        Send one chat turn to the model

        Args:
            prompt: User message
            system_prompt: System message placed before the user message
            json_mode: Ask Ollama to constrain output to JSON
            operation: Label used for metrics and logs
            timeout: Request timeout in seconds (defaults to llm_timeout_seconds)
            **kwargs: temperature, num_ctx overrides

        Returns:
            OllamaResponse object

        Raises:
            OllamaError: on timeout, HTTP error or malformed payload
        """
        if not self.base_url or not self.model:
            raise OllamaError("Ollama URL and model must be configured", kind="config")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": kwargs.get("temperature", self.settings.llm_temperature),
                "num_ctx": kwargs.get("num_ctx", self.settings.llm_num_ctx),
            },
        }
        if json_mode:
            payload["format"] = "json"

        timeout_value = float(timeout or self.settings.llm_timeout_seconds)
        started = time.monotonic()
        status = "error"

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout_value,
                transport=self.transport,
            ) as client:
                for attempt in range(self.max_retries):
                    try:
                        response = await client.post("/api/chat", json=payload)
                        response.raise_for_status()
                        data = response.json()
                        status = "success"
                        return OllamaResponse(
                            model=data.get("model") or self.model,
                            response=(data.get("message") or {}).get("content", ""),
                            done=bool(data.get("done", False)),
                        )
                    except httpx.TimeoutException:
                        status = "timeout"
                        raise OllamaError(
                            f"Request to {self.base_url} timed out after {timeout_value}s",
                            kind="timeout",
                        )
                    except httpx.HTTPStatusError as e:
                        code = e.response.status_code
                        if code == 429:
                            kind = "rate_limit"
                        elif code in (401, 403):
                            kind = "auth"
                        else:
                            kind = "http"
                        status = kind
                        raise OllamaError(
                            f"HTTP error from {self.base_url}: {code}",
                            kind=kind,
                            status_code=code,
                        )
                    except httpx.TransportError as e:
                        if attempt < self.max_retries - 1:
                            self.logger.warning(
                                "Ollama transport error, retrying",
                                extra={"attempt": attempt + 1, "error": str(e)},
                            )
                            await asyncio.sleep(0.5 * (attempt + 1))
                            continue
                        status = "unavailable"
                        raise OllamaError(
                            f"Error calling Ollama at {self.base_url}: {e}",
                            kind="unavailable",
                        )
                    except ValueError as e:
                        status = "invalid_response"
                        raise OllamaError(f"Malformed response from Ollama: {e}", kind="invalid_response")
            raise OllamaError(f"Failed to get a response after {self.max_retries} attempts", kind="unavailable")
        finally:
            llm_requests_total.labels(operation=operation, status=status).inc()
            llm_request_duration_seconds.labels(operation=operation).observe(time.monotonic() - started)
