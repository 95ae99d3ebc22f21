import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import settings
from app.core.scheduler import CeleryModerationScheduler, DeferredTaskRunner, InlineModerationScheduler
from app.services.classifier_service import CredibilityClassifier
from app.services.content_service import ContentService
from app.services.friends_service import RelationshipEngine
from app.services.moderation_service import ModerationPipeline
from app.services.story_service import StoryService
from app.services.upload_service import UploadService
from app.services.user_service import UserService
from app.stores.blob import S3BlobStore
from app.stores.contracts import BlobStore, Classifier
from app.stores.sql import SqlContentStore, SqlIdentityStore, SqlRelationshipStore, SqlStoryStore

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Stores and services for one database. The API uses a single process-wide instance."""

    def __init__(self, session_factory: async_sessionmaker, classifier: Optional[Classifier] = None,
                 blobs: Optional[BlobStore] = None, scheduler=None, runner: Optional[DeferredTaskRunner] = None,
                 **pipeline_options):
        self.session_factory = session_factory
        self.runner = runner or DeferredTaskRunner()

        self.identity_store = SqlIdentityStore(session_factory)
        self.relationship_store = SqlRelationshipStore(session_factory)
        self.content_store = SqlContentStore(session_factory)
        self.story_store = SqlStoryStore(session_factory)

        if scheduler is None:
            if settings.moderation_backend == "celery":
                scheduler = CeleryModerationScheduler()
            else:
                scheduler = InlineModerationScheduler(self.runner)

        self.relationships = RelationshipEngine(self.identity_store, self.relationship_store)
        self.moderation = ModerationPipeline(
            self.content_store,
            classifier or CredibilityClassifier(),
            scheduler,
            **pipeline_options,
        )
        self.content = ContentService(self.content_store)
        self.stories = StoryService(self.story_store, self.identity_store)
        self.uploads = UploadService(blobs or S3BlobStore())
        self.users = UserService(self.identity_store, self.relationships)


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        from app.database import AsyncSessionLocal

        _container = ServiceContainer(AsyncSessionLocal)
        logger.info(f"Service container ready (moderation backend: {settings.moderation_backend})")
    return _container


def get_relationship_engine(container: ServiceContainer = Depends(get_container)) -> RelationshipEngine:
    return container.relationships


def get_moderation_pipeline(container: ServiceContainer = Depends(get_container)) -> ModerationPipeline:
    return container.moderation


def get_content_service(container: ServiceContainer = Depends(get_container)) -> ContentService:
    return container.content


def get_story_service(container: ServiceContainer = Depends(get_container)) -> StoryService:
    return container.stories


def get_upload_service(container: ServiceContainer = Depends(get_container)) -> UploadService:
    return container.uploads


def get_user_service(container: ServiceContainer = Depends(get_container)) -> UserService:
    return container.users


def get_classifier(container: ServiceContainer = Depends(get_container)) -> Classifier:
    return container.moderation.classifier
