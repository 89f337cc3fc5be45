from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, List

import httpx
from pydantic import ValidationError

from agents.heuristic_responder import HeuristicResponder
from models.schemas import GenerationRequest, GenerationResult
from pipeline.base import GenerationError
from settings import SETTINGS

SYSTEM_PROMPT = (
    "You answer customer messages and reviews for a local business. "
    "Return strict JSON with keys: sentiment (Positive|Neutral|Negative), intent (short snake_case label), "
    "reply_text (string), language (ISO 639-1 code). "
    "reply_text must be under 500 characters and written in the customer's language with correct diacritics. "
    "In Turkish always address the customer with the polite Siz form."
)
REVIEW_RULES = "This is a public Google review reply: keep it professional and never use emoji or decorative symbols."
TEMPLATE_RULES = "The messaging window is closed; reply_text will only be used as an internal draft for staff."


class LLMRuntime:
    """Client for the response-generation service.

    ``heuristic`` runs local deterministic rules. Remote providers are called
    over HTTP; any timeout, transport error or malformed answer raises
    :class:`GenerationError` so the pipeline can route it to the error sink.
    """

    def __init__(self, provider: str | None = None, model: str | None = None, timeout_seconds: float | None = None) -> None:
        self.provider = (provider or SETTINGS.default_llm_provider or "heuristic").lower()
        self.model = model or SETTINGS.default_model
        self.timeout_seconds = timeout_seconds or SETTINGS.llm_timeout_seconds
        self.heuristic = HeuristicResponder()

    def available(self) -> bool:
        if self.provider == "heuristic":
            return True
        if self.provider == "openai":
            return bool(SETTINGS.openai_api_key)
        if self.provider == "anthropic":
            return bool(SETTINGS.anthropic_api_key)
        return False

    async def generate_reply(self, request: GenerationRequest) -> GenerationResult:
        if self.provider == "heuristic":
            return self.heuristic.respond(request.text, request.locale, request.context)
        if not self.available():
            raise GenerationError(f"generation provider '{self.provider}' is not configured", {"provider": self.provider})
        try:
            text = await asyncio.wait_for(self._call_provider(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise GenerationError(
                f"generation provider timed out after {self.timeout_seconds}s", {"provider": self.provider}
            ) from None
        except httpx.HTTPError as exc:
            raise GenerationError(f"generation provider unreachable: {exc!r}", {"provider": self.provider}) from exc
        except ValueError as exc:
            raise GenerationError(f"generation provider sent an unreadable body: {exc}", {"provider": self.provider}) from exc
        return self._parse_result(text)

    async def _call_provider(self, request: GenerationRequest) -> str:
        system_prompt = self._system_prompt(request)
        user_prompt = self._compose_user_content(request)
        if self.provider == "openai":
            return await self._generate_openai(system_prompt, user_prompt)
        if self.provider == "anthropic":
            return await self._generate_anthropic(system_prompt, user_prompt)
        raise GenerationError(f"unsupported generation provider '{self.provider}'", {"provider": self.provider})

    def _system_prompt(self, request: GenerationRequest) -> str:
        parts = [SYSTEM_PROMPT]
        if request.context.get("rating") is not None:
            parts.append(REVIEW_RULES)
        if request.context.get("session_mode") == "template":
            parts.append(TEMPLATE_RULES)
        return " ".join(parts)

    def _compose_user_content(self, request: GenerationRequest) -> str:
        ctx = json.dumps(request.context, ensure_ascii=False, default=str)
        return f"Locale: {request.locale}\nContext: {ctx}\nCustomer text:\n{request.text}"

    def _parse_result(self, text: str) -> GenerationResult:
        raw = (text or "").strip()
        fenced = re.search(r"\{.*\}", raw, flags=re.DOTALL)
        if fenced:
            raw = fenced.group(0)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GenerationError("generation result is not JSON", {"provider": self.provider, "raw": text[:500]}) from exc
        if not isinstance(data, dict):
            raise GenerationError("generation result is not an object", {"provider": self.provider, "raw": text[:500]})
        sentiment = str(data.get("sentiment") or "").strip().capitalize()
        data["sentiment"] = sentiment
        try:
            result = GenerationResult.model_validate(data)
        except ValidationError as exc:
            raise GenerationError(
                "generation result failed validation",
                {"provider": self.provider, "errors": str(exc), "raw": text[:500]},
            ) from exc
        return result

    async def _generate_openai(self, system_prompt: str, user_prompt: str) -> str:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
        }
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            resp = await client.post(
                f"{SETTINGS.openai_base_url.rstrip('/')}/chat/completions",
                headers={"Authorization": f"Bearer {SETTINGS.openai_api_key}"},
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            raise GenerationError("openai response has no choices", {"provider": "openai"})
        return str((choices[0].get("message") or {}).get("content") or "")

    async def _generate_anthropic(self, system_prompt: str, user_prompt: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            resp = await client.post(
                f"{SETTINGS.anthropic_base_url.rstrip('/')}/messages",
                headers={
                    "x-api-key": SETTINGS.anthropic_api_key,
                    "anthropic-version": "2023-06-01",
                    "content-type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": 600,
                    "temperature": 0.2,
                    "system": system_prompt,
                    "messages": [{"role": "user", "content": user_prompt}],
                },
            )
            resp.raise_for_status()
            data = resp.json()
        text_parts: List[str] = []
        for block in data.get("content", []):
            if isinstance(block, dict) and block.get("type") == "text":
                text_parts.append(str(block.get("text", "")))
        return "\n".join(t for t in text_parts if t).strip()
