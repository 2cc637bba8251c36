from abc import ABC, abstractmethod


class BaseModerationClient(ABC):
    """Contract for provider-specific image classification clients."""

    @abstractmethod
    async def classify_image(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        image_data_url: str,
        json_schema: dict[str, object],
    ) -> str:
        """Return provider response as plain text."""
