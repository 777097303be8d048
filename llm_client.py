"""Relay to the external generative-text service used by the chat endpoint."""
import logging
from typing import Iterable, Optional, Protocol

import httpx
from tenacity import (
    AsyncRetrying, stop_after_attempt, wait_exponential,
    retry_if_exception_type, before_sleep_log
)
from fastapi import HTTPException, status

from config import GEMINI_API_KEY, GEMINI_MODEL, LLM_TIMEOUT_SECONDS, LLM_MAX_ATTEMPTS, GRADE_LABELS

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
ASSISTANT_NAME = "LivSafe"

SYSTEM_PERSONA = f"""You are {ASSISTANT_NAME}, an AI assistant specializing in liver health and fibrosis assessment.

Your communication style is professional, evidence-based and accessible, and you always
emphasize the importance of consulting healthcare professionals.

Fibrosis stages:
""" + "\n".join(f"- {grade}: {label}" for grade, label in GRADE_LABELS.items()) + """

Imaging findings should be correlated with clinical history, physical examination and
laboratory results."""


class CompletionError(Exception):
    """The generative-text service could not produce a response."""


class RetryableCompletionError(CompletionError):
    """A failure worth retrying: rate limited or upstream 5xx."""


class CompletionClient(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


class GeminiClient:
    def __init__(self, api_key: str, model: str = GEMINI_MODEL,
                 timeout: float = LLM_TIMEOUT_SECONDS, max_attempts: int = LLM_MAX_ATTEMPTS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.transport = transport

    async def _post(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 1024},
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                GEMINI_URL.format(model=self.model),
                params={"key": self.api_key},
                json=payload,
            )
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableCompletionError(f"Upstream returned {response.status_code}")
        if response.status_code >= 400:
            raise CompletionError(f"Upstream rejected request: {response.status_code}")

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise CompletionError("Upstream response had no text")
        return text

    async def complete(self, prompt: str) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, max=8),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError, RetryableCompletionError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._post(prompt)
        except httpx.HTTPError as exc:
            raise CompletionError(f"Upstream unreachable: {exc.__class__.__name__}") from exc


def build_chat_prompt(message: str, history: Iterable = (), patient=None) -> str:
    """Persona, patient context, conversation so far, then the new question."""
    sections = [SYSTEM_PERSONA]

    if patient is not None:
        parts = [f"Current patient context: {patient.name}"]
        if patient.id:
            parts.append(f"(ID: {patient.id})")
        details = []
        if patient.grade:
            details.append(f"Grade: {patient.grade}")
        if patient.confidence is not None:
            details.append(f"Confidence: {patient.confidence:g}%")
        if patient.date:
            details.append(f"Date: {patient.date}")
        line = " ".join(parts)
        if details:
            line += ", " + ", ".join(details)
        sections.append(line)

    turns = [
        f"{'User' if turn.role == 'user' else ASSISTANT_NAME}: {turn.content}"
        for turn in history
    ]
    if turns:
        sections.append("Previous conversation:\n" + "\n\n".join(turns))

    sections.append(f"Current question: {message}")
    sections.append(f"Please respond as {ASSISTANT_NAME} with helpful information:")
    return "\n\n".join(sections)


def get_completion_client() -> CompletionClient:
    """FastAPI dependency; the chat relay is unavailable without an API key."""
    if not GEMINI_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service is not configured",
        )
    return GeminiClient(api_key=GEMINI_API_KEY)
