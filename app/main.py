import logging

from .common import app
from .config import settings
from .routers.auth.endpoints import router as AuthEndpoints
from .routers.users.endpoints import router as UsersEndpoints
from .routers.users.friends.endpoints import router as FriendsEndpoints
from .routers.posts.endpoints import router as PostsEndpoints
from .routers.stories.endpoints import router as StoriesEndpoints

logger = logging.getLogger(__name__)

# Include routers
app.include_router(AuthEndpoints)
app.include_router(UsersEndpoints)
app.include_router(FriendsEndpoints)
app.include_router(PostsEndpoints)
app.include_router(StoriesEndpoints)


@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.environment}
