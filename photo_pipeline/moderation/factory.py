from typing import ClassVar

from photo_pipeline.config.settings import Settings
from photo_pipeline.moderation.base import BaseModerator
from photo_pipeline.moderation.example_client_adapter import ExampleClientAdapter
from photo_pipeline.moderation.moderator import Moderator
from photo_pipeline.moderation.openai_client_adapter import OpenAIVisionClientAdapter


class ModeratorFactory:
    """Creates the configured moderator adapter."""

    SUPPORTED_PROVIDERS: ClassVar[tuple[str, ...]] = ("example", "openai", "openai_compatible")

    @classmethod
    def create(cls, settings: Settings) -> BaseModerator:
        """Create a configured moderator from application settings."""
        provider = settings.moderation_provider.lower()
        if provider == "example":
            return Moderator(
                client=ExampleClientAdapter(),
                model="example",
                timeout_seconds=settings.moderation_timeout_seconds,
            )
        client = OpenAIVisionClientAdapter(
            api_key=settings.moderation_openai_api_key,
            timeout_seconds=settings.moderation_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
        )
        return Moderator(
            client=client,
            model=settings.moderation_openai_model_name,
            timeout_seconds=settings.moderation_timeout_seconds,
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "openai_compatible":
            url = settings.moderation_openai_compatible_base_url.strip()
            if not url:
                raise ValueError(
                    "moderation_openai_compatible_base_url is required for "
                    "moderation_provider=openai_compatible"
                )
            return url
        raise ValueError(
            f"Unknown moderation provider '{provider}'. Choose from: "
            f"{list(cls.SUPPORTED_PROVIDERS)}"
        )
