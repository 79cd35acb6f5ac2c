"""AI provider adapter for Gemini and OpenRouter chat completions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from grcnexus.config import Settings

logger = logging.getLogger("grcnexus.ai")

BASE_PROMPT = (
    "You are an expert AI assistant for Governance, Risk, and Compliance (GRC). "
    "You help users manage regulations, risks, privacy, and audits."
)

FEATURE_PROMPTS = {
    "websearch": (
        "You have access to web search. When answering:\n"
        "1. Search for the latest regulatory updates and compliance news\n"
        "2. Cite your sources with URLs\n"
        "3. Focus on GRC-related topics"
    ),
    "autofill": (
        "You are helping fill out a GRC form automatically. Based on the context provided, "
        "generate appropriate values for the form fields.\n"
        'Return ONLY a valid JSON object like: {"field_name": "value", ...}'
    ),
    "analyze": (
        "You are analyzing GRC data. Identify key risks and compliance gaps, "
        "prioritize findings by severity and give actionable recommendations as bullet points."
    ),
}

DEFAULT_PROMPT = (
    "Help users with regulatory compliance questions, risk assessment guidance, "
    "privacy and data protection advice and audit preparation. Be concise and professional."
)

AVAILABLE_MODELS = {
    "gemini": [
        {"id": "gemini-2.0-flash", "name": "Gemini 2.0 Flash", "description": "Fast and efficient"},
        {"id": "gemini-2.5-flash", "name": "Gemini 2.5 Flash", "description": "Latest flash model"},
        {"id": "gemini-2.5-flash-lite", "name": "Gemini 2.5 Flash Lite", "description": "Lightweight version"},
        {"id": "gemini-1.5-pro", "name": "Gemini 1.5 Pro", "description": "Most capable model"},
    ],
    "openrouter": [
        {"id": "anthropic/claude-3-opus", "name": "Claude 3 Opus", "description": "Most capable Claude"},
        {"id": "anthropic/claude-3-sonnet", "name": "Claude 3 Sonnet", "description": "Balanced performance"},
        {"id": "openai/gpt-4-turbo", "name": "GPT-4 Turbo", "description": "OpenAI's best"},
        {"id": "meta-llama/llama-3-70b", "name": "Llama 3 70B", "description": "Open source large model"},
        {"id": "custom", "name": "Custom Model", "description": "Enter model ID manually"},
    ],
}


class AIProviderError(Exception):
    """Provider call failed; the message is the provider's own explanation."""


@dataclass
class ChatResult:
    message: str
    prompt_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    form_data: Optional[dict] = field(default=None)


def build_system_prompt(feature: str) -> str:
    return f"{BASE_PROMPT}\n{FEATURE_PROMPTS.get(feature, DEFAULT_PROMPT)}"


def extract_form_data(message: str) -> Optional[dict]:
    """Pull the first balanced JSON object out of a model reply."""
    start = message.find("{")
    if start == -1:
        return None
    depth = 0
    for index in range(start, len(message)):
        char = message[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(message[start:index + 1])
                except json.JSONDecodeError:
                    return None
                return parsed if isinstance(parsed, dict) else None
    return None


class AIProvider:
    def __init__(
        self,
        *,
        gemini_base_url: str,
        openrouter_base_url: str,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.gemini_base_url = gemini_base_url.rstrip("/")
        self.openrouter_base_url = openrouter_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> AIProvider:
        return cls(
            gemini_base_url=settings.gemini_base_url,
            openrouter_base_url=settings.openrouter_base_url,
            timeout_seconds=settings.ai_timeout_seconds,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)

    async def chat(
        self,
        *,
        provider: str,
        model: str,
        api_key: str,
        message: str,
        feature: str = "chat",
        context: Any = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> ChatResult:
        prompt = build_system_prompt(feature)
        if context is not None:
            prompt = f"{prompt}\n\nContext:\n{json.dumps(context, default=str)}"

        if provider == "gemini":
            result = await self._chat_gemini(model, api_key, prompt, message, feature, max_tokens, temperature)
        elif provider == "openrouter":
            result = await self._chat_openrouter(model, api_key, prompt, message, max_tokens, temperature)
        else:
            raise AIProviderError(f"unsupported provider: {provider}")

        if feature == "autofill":
            result.form_data = extract_form_data(result.message)
        return result

    async def test_connection(self, *, provider: str, model: str, api_key: str) -> None:
        await self.chat(
            provider=provider,
            model=model,
            api_key=api_key,
            message="Hello, respond with 'OK' only.",
            max_tokens=10,
            temperature=0.0,
        )

    async def _post(self, name: str, url: str, payload: dict, headers: Optional[dict] = None, params: Optional[dict] = None) -> dict:
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.HTTPError as exc:
            logger.warning("%s request failed: %s", name, exc)
            raise AIProviderError(f"{name} API error: {exc}") from exc

        if response.status_code != 200:
            raise AIProviderError(f"{name} API returned {response.status_code}: {response.text}")
        try:
            return response.json()
        except ValueError as exc:
            raise AIProviderError(f"failed to parse {name} response: {exc}") from exc

    async def _chat_gemini(
        self,
        model: str,
        api_key: str,
        prompt: str,
        message: str,
        feature: str,
        max_tokens: int,
        temperature: float,
    ) -> ChatResult:
        payload: dict[str, Any] = {
            "contents": [{"parts": [{"text": f"{prompt}\n\nUser: {message}"}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        if feature == "websearch":
            payload["tools"] = [{"googleSearch": {}}]

        data = await self._post(
            "gemini",
            f"{self.gemini_base_url}/models/{model}:generateContent",
            payload,
            params={"key": api_key},
        )
        candidates = data.get("candidates") or []
        parts = (candidates[0].get("content") or {}).get("parts") or [] if candidates else []
        if not parts:
            raise AIProviderError("no response from gemini")
        usage = data.get("usageMetadata") or {}
        return ChatResult(
            message="".join(part.get("text", "") for part in parts),
            prompt_tokens=int(usage.get("promptTokenCount", 0)),
            output_tokens=int(usage.get("candidatesTokenCount", 0)),
            total_tokens=int(usage.get("totalTokenCount", 0)),
        )

    async def _chat_openrouter(
        self,
        model: str,
        api_key: str,
        prompt: str,
        message: str,
        max_tokens: int,
        temperature: float,
    ) -> ChatResult:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": prompt},
                {"role": "user", "content": message},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await self._post(
            "openrouter",
            f"{self.openrouter_base_url}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        choices = data.get("choices") or []
        if not choices:
            raise AIProviderError("no response from openrouter")
        usage = data.get("usage") or {}
        return ChatResult(
            message=(choices[0].get("message") or {}).get("content", ""),
            prompt_tokens=int(usage.get("prompt_tokens", 0)),
            output_tokens=int(usage.get("completion_tokens", 0)),
            total_tokens=int(usage.get("total_tokens", 0)),
        )
