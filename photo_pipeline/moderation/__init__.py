from photo_pipeline.moderation.base import BaseModerator
from photo_pipeline.moderation.factory import ModeratorFactory
from photo_pipeline.moderation.moderator import Moderator
from photo_pipeline.moderation.policy import ModerationPolicy

__all__ = ["BaseModerator", "ModerationPolicy", "Moderator", "ModeratorFactory"]
