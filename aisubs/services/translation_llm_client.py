import json
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from aisubs import config
from aisubs.services.errors import ProviderError
from aisubs.services.models import SubtitlePayload, TranslationResponse


TRANSLATION_RESPONSE_SCHEMA: Dict[str, Any] = TranslationResponse.model_json_schema()


def build_response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "subtitles",
            "description": "Translated subtitles",
            "schema": TRANSLATION_RESPONSE_SCHEMA,
            "strict": True,
        },
    }


class TranslationClient:
    """Chat-completions client that translates one batch of subtitles per call.

    The batch goes out as JSON and the reply is constrained by a strict JSON
    schema to the same shape, so entries come back keyed by their index.
    """

    def __init__(
        self,
        base_url: str = config.TRANSLATION_LLM_BASE_URL,
        api_key: str = config.TRANSLATION_LLM_API_KEY,
        timeout: float = config.TRANSLATION_LLM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def translate_batch(
        self,
        subtitles: List[SubtitlePayload],
        target_language: str,
        model: str,
    ) -> List[SubtitlePayload]:
        if not subtitles:
            return []

        payload = json.dumps([subtitle.model_dump() for subtitle in subtitles], ensure_ascii=False)
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    "/chat/completions",
                    json={
                        "model": model,
                        "messages": [
                            {
                                "role": "system",
                                "content": f"Translate subtitles to {target_language}",
                            },
                            {
                                "role": "user",
                                "content": payload,
                            },
                        ],
                        "response_format": build_response_format(),
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as error:
            raise ProviderError(f"failed to call translation API: {error}") from error
        except ValueError as error:
            raise ProviderError(f"translation API returned invalid JSON: {error}") from error

        content = _extract_content(data)
        try:
            parsed = TranslationResponse.model_validate_json(content)
        except ValidationError as error:
            raise ProviderError(f"failed to unmarshal translation response: {error}") from error

        return parsed.subtitles


def _extract_content(data: Any) -> str:
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if isinstance(message, dict):
                refusal = message.get("refusal")
                if isinstance(refusal, str) and refusal:
                    raise ProviderError(f"translation refused by the model: {refusal}")
                content = message.get("content")
                if isinstance(content, str):
                    return content

    raise ProviderError("translation API response did not contain a message")
