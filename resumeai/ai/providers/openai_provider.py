from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from resumeai.ai.types import CompletionRequest, CompletionResult


class OpenAIProvider:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 30.0,
    ):
        self.model = model
        key = (api_key or "").strip()
        if not key:
            raise RuntimeError("OPENAI_API_KEY is missing")

        self._client = AsyncOpenAI(
            api_key=key,
            base_url=base_url or None,
            timeout=timeout_s,
            # reasoner calls are single-shot; failures surface as ReasonerUnavailable
            max_retries=0,
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        payload = [{"role": m.role, "content": m.content} for m in request.messages]

        create_kwargs = {
            "model": self.model,
            "messages": payload,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**create_kwargs)
        content = response.choices[0].message.content if response.choices else ""
        usage = {}
        if getattr(response, "usage", None) is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
            }
        return CompletionResult(text=content or "", model=self.model, usage=usage)
