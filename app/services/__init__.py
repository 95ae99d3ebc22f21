from .friends_service import RelationshipEngine
from .moderation_service import ModerationPipeline
from .content_service import ContentService
from .story_service import StoryService
from .upload_service import UploadService
from .user_service import UserService
from .classifier_service import CredibilityClassifier

__all__ = ["RelationshipEngine", "ModerationPipeline", "ContentService", "StoryService", "UploadService", "UserService", "CredibilityClassifier"]
