import json
import re
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import AIError, AIKillSwitchError
from resume_optimizer.core.schemas import Malformed, Ok, ParseResult

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON = re.compile(r"\{.*\}", re.DOTALL)


def _is_transient(exc: BaseException) -> bool:
    """Transport failures, rate limits and upstream 5xx are worth another attempt."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


def extract_json(text: str) -> ParseResult[Dict[str, Any]]:
    """Locate and decode the JSON object inside a model reply."""
    if not text or not text.strip():
        return Malformed(raw_text=text or "", reason="empty response")

    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        bare = _BARE_JSON.search(text)
        candidate = bare.group() if bare else text
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return Malformed(raw_text=text, reason=f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return Malformed(raw_text=text, reason="expected a JSON object")
    return Ok(data)


class AIOrchestrator:
    """
    Client for the text-generation capability.
    Handles the kill switch, bounded retries with backoff and one fallback model.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._client = http_client

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.ai.http_timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @retry(
        stop=stop_after_attempt(settings.ai.max_attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    async def _do_call(self, messages: List[Dict[str, str]], model_name: str, temperature: float) -> str:
        """Internal method to perform the actual API call with retries."""
        logger.info(f"Calling AI Model: {model_name}")
        response = await self._http().post(
            settings.ai.base_url,
            headers={
                "Authorization": f"Bearer {settings.ai.openrouter_api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": "http://localhost:3000",
            },
            json={
                "model": model_name,
                "messages": messages,
                "temperature": temperature,
            },
        )
        response.raise_for_status()
        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise AIError(f"Unexpected AI response shape: {e}")

    async def call_model(self, messages: List[Dict[str, str]], temperature: Optional[float] = None) -> str:
        """
        Centralized model caller with kill-switch, retries and fallback.
        Raises AIError when neither model produced a reply.
        """
        if settings.ai.kill_switch:
            logger.warning("AI Kill-switch is active. Blocking request.")
            raise AIKillSwitchError()

        if not settings.ai.openrouter_api_key:
            logger.error("OpenRouter API Key missing.")
            raise AIError("AI service configuration error.")

        temperature = settings.ai.temperature if temperature is None else temperature
        try:
            return await self._do_call(messages, settings.ai.model_name, temperature)
        except (httpx.HTTPError, AIError) as e:
            logger.warning(f"Primary model {settings.ai.model_name} failed: {e}. Attempting fallback.")
            try:
                return await self._do_call(messages, settings.ai.fallback_model, temperature)
            except (httpx.HTTPError, AIError) as fe:
                logger.error(f"Fallback model {settings.ai.fallback_model} also failed: {fe}")
                raise AIError(
                    "AI service completely unavailable",
                    details={"primary": str(e), "fallback": str(fe)},
                )

    async def generate_structured(
        self,
        system_prompt: str,
        user_content: str,
        temperature: Optional[float] = None,
    ) -> ParseResult[Dict[str, Any]]:
        """Ask for JSON back. Transport failures raise; a bad reply is Malformed."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]
        text = await self.call_model(messages, temperature=temperature)
        result = extract_json(text)
        if isinstance(result, Malformed):
            logger.warning(f"Malformed AI response: {result.reason}")
        return result
