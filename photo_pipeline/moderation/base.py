from abc import ABC, abstractmethod

from photo_pipeline.moderation.models import ModerationVerdict


class BaseModerator(ABC):
    """Contract for all moderation adapters."""

    @abstractmethod
    async def classify(self, image: bytes, mime_type: str, photo_type: str) -> ModerationVerdict:
        """Classify an already-transformed image.

        Args:
            image: Encoded image bytes as they would be stored.
            mime_type: MIME type of ``image``.
            photo_type: Photo category, passed to the prompt as context.

        Returns:
            ModerationVerdict with category flags, allowances and scores.

        Raises:
            ModerationNetworkError: service unreachable or timed out.
            ModerationError: any other failure.
        """
