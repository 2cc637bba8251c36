import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from photo_pipeline.moderation.client_base import BaseModerationClient
from photo_pipeline.moderation.example_client_adapter import ExampleClientAdapter
from photo_pipeline.moderation.exceptions import (
    ModerationError,
    ModerationNetworkError,
    ModerationValidationError,
)
from photo_pipeline.moderation.moderator import Moderator


def _flagged_response() -> dict[str, object]:
    response = dict(ExampleClientAdapter.DEFAULT_RESPONSE)
    response["violence"] = True
    response["scores"] = {"violence": 0.7}
    return response


def _make_moderator(client: BaseModerationClient, timeout_seconds: float = 5) -> Moderator:
    return Moderator(client=client, model="test-model", timeout_seconds=timeout_seconds)


class TestClassify:
    @pytest.mark.asyncio
    async def test_returns_verdict_from_client(self) -> None:
        moderator = _make_moderator(ExampleClientAdapter(_flagged_response()))

        verdict = await moderator.classify(b"img", "image/webp", "AVATAR")

        assert verdict.violence is True
        assert verdict.score("violence") == 0.7

    @pytest.mark.asyncio
    async def test_sends_data_url_and_photo_type(self) -> None:
        client = MagicMock(spec=BaseModerationClient)
        client.classify_image = AsyncMock(
            return_value=json.dumps(ExampleClientAdapter.DEFAULT_RESPONSE)
        )
        moderator = _make_moderator(client)

        await moderator.classify(b"\x01\x02", "image/webp", "CAMPAIGN")

        kwargs = client.classify_image.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["image_data_url"] == "data:image/webp;base64,AQI="
        assert "CAMPAIGN" in kwargs["user_prompt"]
        assert kwargs["json_schema"]["type"] == "object"

    @pytest.mark.asyncio
    async def test_strips_code_fences(self) -> None:
        client = MagicMock(spec=BaseModerationClient)
        client.classify_image = AsyncMock(
            return_value="```json\n" + json.dumps(_flagged_response()) + "\n```"
        )

        verdict = await _make_moderator(client).classify(b"img", "image/webp", "AVATAR")

        assert verdict.violence is True

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        client = MagicMock(spec=BaseModerationClient)
        client.classify_image = AsyncMock(return_value="not json")

        with pytest.raises(ModerationError, match="Invalid JSON"):
            await _make_moderator(client).classify(b"img", "image/webp", "AVATAR")

    @pytest.mark.asyncio
    async def test_non_object_json_raises(self) -> None:
        client = MagicMock(spec=BaseModerationClient)
        client.classify_image = AsyncMock(return_value="[1, 2]")

        with pytest.raises(ModerationError, match="must be an object"):
            await _make_moderator(client).classify(b"img", "image/webp", "AVATAR")

    @pytest.mark.asyncio
    async def test_invalid_verdict_raises_validation_error(self) -> None:
        moderator = _make_moderator(ExampleClientAdapter({"explicit": False}))

        with pytest.raises(ModerationValidationError):
            await moderator.classify(b"img", "image/webp", "AVATAR")

    @pytest.mark.asyncio
    async def test_timeout_raises_network_error(self) -> None:
        async def slow_classify(**_: object) -> str:
            await asyncio.sleep(1)
            return "{}"

        client = MagicMock(spec=BaseModerationClient)
        client.classify_image = AsyncMock(side_effect=slow_classify)

        with pytest.raises(ModerationNetworkError, match="timed out"):
            await _make_moderator(client, timeout_seconds=0.01).classify(
                b"img", "image/webp", "AVATAR"
            )


class TestExampleClientAdapter:
    @pytest.mark.asyncio
    async def test_default_response_is_clean(self) -> None:
        raw = await ExampleClientAdapter().classify_image(
            model="m",
            system_prompt="s",
            user_prompt="u",
            image_data_url="data:,",
            json_schema={},
        )

        data = json.loads(raw)
        assert data["explicit"] is False
        assert data["scores"]["explicit"] == 0.0
