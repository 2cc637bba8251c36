"""Example moderation client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseModerationClient and register the provider in ModeratorFactory.
"""

import json
from typing import ClassVar

from photo_pipeline.moderation.client_base import BaseModerationClient


class ExampleClientAdapter(BaseModerationClient):
    """Example adapter that returns a fixed clean verdict.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "explicit": False,
        "graphic_violence": False,
        "racy": False,
        "violence": False,
        "self_harm": False,
        "hate_symbols": False,
        "newsworthy": False,
        "medical": False,
        "political": False,
        "scores": {
            "explicit": 0.0,
            "graphic_violence": 0.0,
            "racy": 0.0,
            "violence": 0.0,
            "self_harm": 0.0,
            "hate_symbols": 0.0,
        },
    }

    def __init__(self, response: dict[str, object] | None = None) -> None:
        self._response = response if response is not None else self.DEFAULT_RESPONSE

    async def classify_image(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        image_data_url: str,
        json_schema: dict[str, object],
    ) -> str:
        _ = model, system_prompt, user_prompt, image_data_url, json_schema
        return json.dumps(self._response)
