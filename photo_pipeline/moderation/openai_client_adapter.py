import httpx
import openai

from photo_pipeline.moderation.client_base import BaseModerationClient
from photo_pipeline.moderation.exceptions import ModerationError, ModerationNetworkError


class OpenAIVisionClientAdapter(BaseModerationClient):
    """Image classification adapter built on the OpenAI-compatible vision chat API."""

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            max_retries=0,
        )

    async def classify_image(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        image_data_url: str,
        json_schema: dict[str, object],
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                temperature=0.0,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "moderation_verdict",
                        "strict": True,
                        "schema": json_schema,
                    },
                },
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": user_prompt},
                            {
                                "type": "image_url",
                                "image_url": {"url": image_data_url, "detail": "low"},
                            },
                        ],
                    },
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ModerationNetworkError(
                f"Classifier network error: {exc}"
            ) from exc
        except openai.APIError as exc:
            raise ModerationNetworkError(
                f"Classifier API error: {exc}"
            ) from exc

        if not response.choices:
            raise ModerationError("Classifier returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise ModerationError("Classifier returned empty response")
        return content
