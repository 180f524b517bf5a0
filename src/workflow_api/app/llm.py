from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib import error, request

from .errors import GenerationError

logger = logging.getLogger(__name__)

_COMPLETIONS_MODEL_PREFIXES = ("davinci", "babbage")


class GenerationBackend(Protocol):
    """One text-generation backend variant bound to a model."""

    model: str

    def invoke(self, prompt: str, *, timeout_s: float) -> str: ...


class _OpenAIBackend:
    """Shared REST plumbing for the OpenAI backend variants."""

    endpoint = ""

    def __init__(self, *, api_key: str, model: str, base_url: str) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")

    def invoke(self, prompt: str, *, timeout_s: float) -> str:
        response_json = self._request(self._payload(prompt), timeout_s=timeout_s)
        return self._extract_text(response_json)

    def _payload(self, prompt: str) -> dict[str, Any]:
        raise NotImplementedError

    def _extract_text(self, response_json: dict[str, Any]) -> str:
        raise NotImplementedError

    def _request(self, payload: dict[str, Any], timeout_s: float) -> dict[str, Any]:
        url = f"{self.base_url}{self.endpoint}"
        raw_payload = json.dumps(payload).encode("utf-8")
        req = request.Request(
            url=url,
            data=raw_payload,
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=timeout_s) as response:
                raw_body = response.read()
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            raise GenerationError(
                f"OpenAI API request failed with status {exc.code}: {raw_error[:300]}"
            ) from exc
        except error.URLError as exc:
            raise GenerationError(f"OpenAI API request failed: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise GenerationError(f"OpenAI API request failed: {exc}") from exc
        try:
            parsed = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GenerationError("OpenAI response was not valid JSON") from exc
        if not isinstance(parsed, dict):
            raise GenerationError(f"OpenAI response had unsupported shape: {type(parsed)!r}")
        return parsed

    @staticmethod
    def _first_choice(response_json: dict[str, Any]) -> dict[str, Any]:
        choices = response_json.get("choices")
        if not isinstance(choices, list) or not choices:
            raise GenerationError("OpenAI response did not contain choices")
        choice = choices[0]
        if not isinstance(choice, dict):
            raise GenerationError("OpenAI response choice had unsupported shape")
        return choice


class OpenAIChatBackend(_OpenAIBackend):
    """Chat completions API; the prompt is sent as a single user message."""

    endpoint = "/chat/completions"

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }

    def _extract_text(self, response_json: dict[str, Any]) -> str:
        message = self._first_choice(response_json).get("message")
        if not isinstance(message, dict):
            raise GenerationError("OpenAI response did not contain a message")
        content = message.get("content", "")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            text_segments: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text = item.get("text")
                    if isinstance(text, str):
                        text_segments.append(text)
            if text_segments:
                return "".join(text_segments)
        raise GenerationError("OpenAI response content could not be parsed as text")


class OpenAICompletionsBackend(_OpenAIBackend):
    """Legacy completions API used by instruct-style models."""

    endpoint = "/completions"

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {"model": self.model, "prompt": prompt}

    def _extract_text(self, response_json: dict[str, Any]) -> str:
        text = self._first_choice(response_json).get("text")
        if isinstance(text, str):
            return text
        raise GenerationError("OpenAI response content could not be parsed as text")


def uses_completions_api(model_name: str) -> bool:
    lowered = model_name.lower()
    return "instruct" in lowered or lowered.startswith(_COMPLETIONS_MODEL_PREFIXES)


class GenerationClient:
    """Route a prompt to the backend variant that serves ``model_name``.

    Model names are not checked against an allow-list; unknown models are
    rejected by the backend and reported as GenerationError like any other
    failure.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_s = timeout_s

    def backend_for(self, model_name: str) -> GenerationBackend:
        backend_cls = (
            OpenAICompletionsBackend if uses_completions_api(model_name) else OpenAIChatBackend
        )
        return backend_cls(api_key=self.api_key, model=model_name, base_url=self.base_url)

    def invoke(self, model_name: str, prompt: str) -> str:
        backend = self.backend_for(model_name)
        try:
            return backend.invoke(prompt, timeout_s=self.timeout_s)
        except GenerationError as exc:
            logger.error(
                "generation event=failed backend=%s model=%s reason=%s",
                type(backend).__name__,
                model_name,
                exc,
            )
            # Callers see one failure kind with the generic client-facing message.
            raise GenerationError() from exc
