import logging
from typing import Optional, Union

from app.schemas.common import ActionResult
from app.schemas.users import MeUserResponse, ProfileUpdate, PublicUser, TokenResponse, UserWithRelation
from app.services.friends_service import RelationshipEngine, is_valid_id
from app.stores.contracts import IdentityStore
from app.utils.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, identity: IdentityStore, relationships: RelationshipEngine):
        self.identity = identity
        self.relationships = relationships

    async def register(self, name: str, email: str, password: str) -> ActionResult:
        """
        Create a new account.

        Args:
            name: Display name
            email: Login email, stored lower-cased
            password: Plain-text password, hashed before storage

        Returns:
            ActionResult: ok with the new user id, or email_taken
        """
        if await self.identity.find_by_email(email) is not None:
            return ActionResult.failure("email_taken")
        user = await self.identity.create(name=name.strip(), email=email, password_hash=hash_password(password))
        if user is None:
            return ActionResult.failure("email_taken")
        logger.info(f"Registered user {user.id}")
        return ActionResult.success(id=user.id)

    async def login(self, email: str, password: str) -> Optional[TokenResponse]:
        """Returns a bearer token, or None when the credentials do not match."""
        user = await self.identity.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            return None
        token = create_access_token(user.id, {"email": user.email, "role": user.role.value})
        return TokenResponse(access_token=token, user_id=user.id, role=user.role)

    async def get_me(self, user_id: str) -> Optional[MeUserResponse]:
        user = await self.identity.find_by_id(user_id)
        if user is None:
            return None
        return MeUserResponse.model_validate(user)

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> ActionResult:
        updates = update.model_dump(exclude_unset=True, exclude_none=True)
        if "picture" in updates:
            updates["picture_url"] = updates.pop("picture")
        if not await self.identity.update_profile(user_id, updates):
            return ActionResult.failure("not_found")
        return ActionResult.success(id=user_id)

    async def get_user_with_relation(self, viewer_id: str, user_id: str) -> Union[ActionResult, UserWithRelation]:
        if not is_valid_id(user_id):
            return ActionResult.failure("invalid_id")
        user = await self.identity.find_by_id(user_id)
        if user is None:
            return ActionResult.failure("not_found")
        relation = await self.relationships.relation_between(viewer_id, user_id)
        return UserWithRelation(user=PublicUser.model_validate(user), relation=relation)
