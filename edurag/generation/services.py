"""
Text-Generation Services
-------------------------
Every backend implements one method, `complete(prompt) -> str`, and
reports failures through the GenerationError taxonomy so the generator
can treat them uniformly:

  OpenAIChatService     -- OpenAI chat completions (openai SDK)
  AnthropicChatService  -- Anthropic messages API (anthropic SDK)
  WatsonxChatService    -- IBM watsonx.ai chat endpoint over httpx,
                           with a cached IAM access token

`build_service()` picks the backend named in GenerationSettings.
"""
from __future__ import annotations

import os
import threading
import time
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import httpx
from loguru import logger

from edurag.errors import (
    GenerationError,
    GenerationTimeoutError,
    RateLimitError,
    ServiceAuthError,
    ServiceResponseError,
    TransportError,
)

SYSTEM_PROMPT = (
    "You are EduBot AI, a helpful educational assistant. Always provide clear, "
    "educational responses using markdown formatting. Focus on helping students "
    "learn with explanations, examples, and encouraging content. If you cannot "
    "answer based on available information, suggest alternative learning approaches."
)

GENERATION_TIMEOUT = 30.0
AUTH_TIMEOUT = 15.0


@runtime_checkable
class TextGenerationService(Protocol):
    """Anything that turns a prompt into generated text."""

    def complete(self, prompt: str) -> str:
        """Return generated text, or raise a GenerationError subclass."""
        ...


# ---------------------------------------------------------------------------
# SDK error translation (openai and anthropic share the same exception names)
# ---------------------------------------------------------------------------

def _translate_sdk_error(sdk: Any, exc: Exception) -> GenerationError:
    if isinstance(exc, sdk.APITimeoutError):
        return GenerationTimeoutError(str(exc))
    if isinstance(exc, (sdk.AuthenticationError, sdk.PermissionDeniedError)):
        return ServiceAuthError(str(exc))
    if isinstance(exc, sdk.RateLimitError):
        return RateLimitError(str(exc))
    if isinstance(exc, sdk.APIConnectionError):
        return TransportError(str(exc))
    if isinstance(exc, sdk.APIStatusError):
        return ServiceResponseError(str(exc), status_code=exc.status_code)
    return GenerationError(str(exc))


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class OpenAIChatService:
    """
    Chat completions via the OpenAI SDK.

    The SDK's own retries are disabled; retrying is the generator's
    RetryPolicy's job.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 800,
        temperature: float = 0.7,
        timeout_seconds: float = GENERATION_TIMEOUT,
        api_key: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise ServiceAuthError("OPENAI_API_KEY is not configured")
            from openai import OpenAI  # lazy import keeps import graph clean
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout_seconds, max_retries=0)
        return self._client

    def complete(self, prompt: str) -> str:
        import openai

        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.APIError as exc:
            raise _translate_sdk_error(openai, exc) from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicChatService:
    """
    Messages API via the Anthropic SDK.  The system prompt goes in the
    separate `system` parameter rather than the messages list.
    """

    def __init__(
        self,
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 800,
        temperature: float = 0.7,
        timeout_seconds: float = GENERATION_TIMEOUT,
        api_key: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise ServiceAuthError("ANTHROPIC_API_KEY is not configured")
            from anthropic import Anthropic  # lazy import
            self._client = Anthropic(api_key=self.api_key, timeout=self.timeout_seconds, max_retries=0)
        return self._client

    def complete(self, prompt: str) -> str:
        import anthropic

        client = self._get_client()
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            raise _translate_sdk_error(anthropic, exc) from exc

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )


# ---------------------------------------------------------------------------
# IBM watsonx.ai
# ---------------------------------------------------------------------------

WATSONX_URL = "https://us-south.ml.cloud.ibm.com/ml/v1/text/chat?version=2023-05-29"
IAM_URL = "https://iam.cloud.ibm.com/identity/token"
WATSONX_MODEL = "meta-llama/llama-3-2-11b-vision-instruct"
TOKEN_EXPIRY_MARGIN = 300  # seconds shaved off the IAM token lifetime


def extract_generated_text(data: dict[str, Any]) -> str:
    """Pull the generated text out of any of the watsonx response shapes."""
    choices = data.get("choices") or []
    if choices:
        choice = choices[0]
        message = choice.get("message") or {}
        return message.get("content") or choice.get("text") or ""
    results = data.get("results") or []
    if results:
        return results[0].get("generated_text") or ""
    return data.get("generated_text") or ""


def _status_error(response: httpx.Response, what: str) -> GenerationError:
    status = response.status_code
    detail = response.text[:200]
    if status in (401, 403):
        return ServiceAuthError(f"{what} rejected credentials ({status}): {detail}")
    if status == 429:
        return RateLimitError(f"{what} rate limited (429): {detail}")
    return ServiceResponseError(f"{what} error ({status}): {detail}", status_code=status)


class WatsonxChatService:
    """
    watsonx.ai chat endpoint over httpx.

    An IAM access token is exchanged for the API key (15 s timeout) and
    cached until five minutes before it expires.  A 401/403 from the
    chat endpoint drops the cached token so the next call re-authenticates.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        url: Optional[str] = None,
        iam_url: Optional[str] = None,
        model: str = WATSONX_MODEL,
        max_tokens: int = 800,
        temperature: float = 0.7,
        timeout_seconds: float = GENERATION_TIMEOUT,
        auth_timeout_seconds: float = AUTH_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.api_key = api_key or os.getenv("WATSONX_API_KEY")
        self.project_id = project_id or os.getenv("WATSONX_PROJECT_ID")
        self.url = url or os.getenv("WATSONX_URL", WATSONX_URL)
        self.iam_url = iam_url or os.getenv("WATSONX_IAM_URL", IAM_URL)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self.auth_timeout_seconds = auth_timeout_seconds
        self._http = http_client or httpx.Client()
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._token_lock = threading.Lock()

    # --- IAM ------------------------------------------------------------------

    def _access_token(self) -> str:
        with self._token_lock:
            if self._token and self._token_expiry > self._clock():
                logger.debug("[Watsonx] Using cached IAM token")
                return self._token

            logger.debug("[Watsonx] Requesting new IAM token")
            try:
                response = self._http.post(
                    self.iam_url,
                    data={
                        "grant_type": "urn:ibm:params:oauth:grant-type:apikey",
                        "apikey": self.api_key,
                    },
                    headers={"Accept": "application/json"},
                    timeout=self.auth_timeout_seconds,
                )
            except httpx.TimeoutException as exc:
                raise GenerationTimeoutError(f"IAM authentication timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"IAM request failed: {exc}") from exc

            if not response.is_success:
                raise _status_error(response, "IAM")

            data = response.json()
            token = data.get("access_token")
            if not token:
                raise ServiceAuthError("No access token received from IAM service")

            self._token = token
            self._token_expiry = self._clock() + float(data.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN
            return token

    def invalidate_token(self) -> None:
        with self._token_lock:
            self._token = None
            self._token_expiry = 0.0

    # --- Chat -----------------------------------------------------------------

    def complete(self, prompt: str) -> str:
        if not self.api_key or not self.project_id:
            raise ServiceAuthError("WATSONX_API_KEY / WATSONX_PROJECT_ID are not configured")

        token = self._access_token()
        body = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "project_id": self.project_id,
            "model_id": self.model,
            "frequency_penalty": 0,
            "max_tokens": self.max_tokens,
            "presence_penalty": 0,
            "temperature": self.temperature,
            "top_p": 1,
        }
        try:
            response = self._http.post(
                self.url,
                json=body,
                headers={"Accept": "application/json", "Authorization": f"Bearer {token}"},
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(f"watsonx request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"watsonx request failed: {exc}") from exc

        if response.status_code in (401, 403):
            self.invalidate_token()
        if not response.is_success:
            raise _status_error(response, "watsonx")

        return extract_generated_text(response.json())

    def close(self) -> None:
        self._http.close()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_service(settings) -> TextGenerationService:
    """Instantiate the backend named by a GenerationSettings object."""
    common = dict(
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        timeout_seconds=settings.timeout_seconds,
    )
    if settings.model:
        common["model"] = settings.model
    if settings.provider == "openai":
        return OpenAIChatService(**common)
    if settings.provider == "anthropic":
        return AnthropicChatService(**common)
    if settings.provider == "watsonx":
        return WatsonxChatService(auth_timeout_seconds=settings.auth_timeout_seconds, **common)
    raise ValueError(f"Unknown generation provider: {settings.provider!r}")
