"""AI-powered image content moderator."""

import asyncio
import base64
import json
from pathlib import Path

from photo_pipeline.logging.logger import Log
from photo_pipeline.moderation.base import BaseModerator
from photo_pipeline.moderation.client_base import BaseModerationClient
from photo_pipeline.moderation.exceptions import ModerationError, ModerationNetworkError
from photo_pipeline.moderation.models import ModerationVerdict
from photo_pipeline.moderation.prompt_loader import load_json_schema, load_prompt_template
from photo_pipeline.moderation.validator import validate_and_build


class Moderator(BaseModerator):
    """Classifies images through a vision-capable AI provider."""

    def __init__(
        self,
        *,
        client: BaseModerationClient,
        model: str,
        timeout_seconds: float,
        prompt_template_path: Path | None = None,
        json_schema_path: Path | None = None,
        system_prompt: str = "You are a content safety classifier. Answer only with JSON.",
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._system_prompt = system_prompt
        self._prompt_template = load_prompt_template(prompt_template_path)
        schema_str = load_json_schema(json_schema_path)
        self._json_schema = schema_str
        self._json_schema_dict = json.loads(schema_str)

    async def classify(self, image: bytes, mime_type: str, photo_type: str) -> ModerationVerdict:
        prompt = self._prompt_template.format(
            photo_type=photo_type,
            json_schema=self._json_schema,
        )
        data_url = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"

        try:
            async with asyncio.timeout(self._timeout_seconds):
                raw_response = await self._client.classify_image(
                    model=self._model,
                    system_prompt=self._system_prompt,
                    user_prompt=prompt,
                    image_data_url=data_url,
                    json_schema=self._json_schema_dict,
                )
        except TimeoutError as exc:
            raise ModerationNetworkError(
                f"Classifier timed out after {self._timeout_seconds}s"
            ) from exc
        Log.debug(f"Classifier raw response:\n{raw_response}")

        verdict = validate_and_build(self._parse_json(raw_response))
        Log.info(f"Moderation verdict for {photo_type}: scores={verdict.scores}")
        return verdict

    @staticmethod
    def _parse_json(raw: str) -> dict[str, object]:
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            lines = cleaned.splitlines()
            if lines and lines[0].startswith("```"):
                lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            cleaned = "\n".join(lines)

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ModerationError(f"Invalid JSON response: {exc}") from exc

        if not isinstance(parsed, dict):
            raise ModerationError("JSON response must be an object")
        return parsed
