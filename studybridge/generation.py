from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import openai
from openai import AsyncOpenAI

from studybridge.config import (
    DEEPSEEK_KEY_ENV,
    OPENAI_KEY_ENV,
    Settings,
    load_settings,
    timeout_for,
)
from studybridge.errors import (
    EmptyProviderResponse,
    ExhaustedFailover,
    ParseFailure,
    ProviderShapeFailure,
    ProviderTransportFailure,
    ProviderUnavailable,
    StudyBridgeError,
)
from studybridge.parsing import Structured, parse_response

logger = logging.getLogger(__name__)

Message = dict[str, str]

DEFAULT_SYSTEM_PROMPT = "You are a helpful study assistant."
FORMAT_DIRECTIVE = (
    "Respond with strictly valid JSON only. Do not wrap it in Markdown code fences "
    "and do not add any commentary before or after it."
)


@dataclass(frozen=True)
class GenerationRequest:
    messages: Sequence[Message]
    schema: object | None = None
    temperature: float = 0.3
    max_tokens: int = 2048


class AttemptState(str, Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ProviderAttempt:
    provider: str
    order: int
    text: str | None = None
    error: StudyBridgeError | None = None
    latency_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class GenerationResult:
    data: Structured
    attempt: ProviderAttempt
    attempts: tuple[ProviderAttempt, ...] = ()

    @property
    def provider(self) -> str:
        return self.attempt.provider


def augment_messages(request: GenerationRequest) -> list[Message]:
    """Fold the JSON formatting directive (and schema) into the system message."""
    system_prompt = DEFAULT_SYSTEM_PROMPT
    others: list[Message] = []
    found_system = False
    for message in request.messages:
        if message.get("role") == "system" and not found_system:
            system_prompt = message.get("content") or DEFAULT_SYSTEM_PROMPT
            found_system = True
        elif message.get("role") != "system":
            others.append({"role": message["role"], "content": message.get("content", "")})

    directive = f"{system_prompt}\n\n{FORMAT_DIRECTIVE}"
    if request.schema is not None:
        directive += f"\nTarget schema: {json.dumps(request.schema, ensure_ascii=False)}"
    return [{"role": "system", "content": directive}, *others]


class ChatProvider:
    """One OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        name: str,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int = 60,
        key_env: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.name = name
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.key_env = key_env
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            kwargs = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}
            self._client = AsyncOpenAI(base_url=self.base_url, **kwargs) if self.base_url else AsyncOpenAI(**kwargs)
        return self._client

    async def attempt(
        self,
        messages: list[Message],
        order: int,
        temperature: float,
        max_tokens: int,
    ) -> ProviderAttempt:
        if not self.configured:
            missing = f"{self.key_env} is not configured" if self.key_env else None
            return ProviderAttempt(self.name, order, error=ProviderUnavailable(self.name, missing))

        start = time.perf_counter()
        error: StudyBridgeError
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError:
            error = ProviderTransportFailure(self.name, "timeout", timed_out=True)
        except openai.APIStatusError as exc:
            error = ProviderTransportFailure(
                self.name, f"HTTP {exc.status_code}: {exc.message}", status_code=exc.status_code
            )
        except openai.APIError as exc:
            error = ProviderTransportFailure(self.name, f"{type(exc).__name__}: {exc}")
        except Exception as exc:
            # Anything else from the client still fails over to the next provider.
            error = ProviderTransportFailure(self.name, f"{type(exc).__name__}: {exc}")
        else:
            choices = getattr(response, "choices", None)
            message = getattr(choices[0], "message", None) if choices else None
            if message is not None:
                return ProviderAttempt(
                    self.name, order, text=message.content or "", latency_ms=_elapsed_ms(start)
                )
            error = ProviderShapeFailure(self.name, "completion has no message")
        return ProviderAttempt(self.name, order, error=error, latency_ms=_elapsed_ms(start))


class GenerationFailoverClient:
    """Ask the primary provider, fall back to the secondary once, parse the winner."""

    def __init__(
        self,
        providers: Sequence[ChatProvider] | None = None,
        settings: Settings | None = None,
    ) -> None:
        if providers is None:
            providers = default_chat_providers(settings or load_settings())
        self.providers = list(providers)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        messages = augment_messages(request)
        attempts: list[ProviderAttempt] = []
        winner: ProviderAttempt | None = None
        state = AttemptState.PENDING
        index = 0

        while state in (AttemptState.PENDING, AttemptState.ATTEMPTING):
            if index >= len(self.providers):
                state = AttemptState.EXHAUSTED
                continue
            state = AttemptState.ATTEMPTING
            provider = self.providers[index]
            logger.info("Calling generation provider %s (attempt %d)", provider.name, index)
            attempt = await provider.attempt(messages, index, request.temperature, request.max_tokens)
            attempts.append(attempt)
            if attempt.succeeded:
                winner = attempt
                state = AttemptState.SUCCEEDED
            else:
                _log_attempt_failure(attempt)
                index += 1

        if winner is None:
            last_error = attempts[-1].error if attempts else None
            raise ExhaustedFailover(attempts, last_error) from last_error

        try:
            data = parse_response(winner.text, provider=winner.provider)
        except (EmptyProviderResponse, ParseFailure) as exc:
            logger.error("Unusable reply from %s: %s %s", winner.provider, exc, exc.details or "")
            raise
        logger.info("Generation served by %s in %d ms", winner.provider, winner.latency_ms)
        return GenerationResult(data=data, attempt=winner, attempts=tuple(attempts))


def default_chat_providers(settings: Settings) -> list[ChatProvider]:
    credentials = settings.credentials
    generation = settings.generation
    return [
        ChatProvider(
            name="openai",
            model=generation.primary_model,
            api_key=credentials.openai_api_key,
            timeout=timeout_for("openai", settings),
            key_env=OPENAI_KEY_ENV,
        ),
        ChatProvider(
            name="deepseek",
            model=generation.secondary_model,
            api_key=credentials.deepseek_api_key,
            base_url=generation.secondary_base_url,
            timeout=timeout_for("deepseek", settings),
            key_env=DEEPSEEK_KEY_ENV,
        ),
    ]


def _log_attempt_failure(attempt: ProviderAttempt) -> None:
    error = attempt.error
    if isinstance(error, ProviderTransportFailure) and error.quota_exhausted:
        logger.warning("Generation provider %s is out of quota: %s", attempt.provider, error)
    else:
        logger.warning("Generation provider %s failed: %s", attempt.provider, error)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
