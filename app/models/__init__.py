from .user import User
from .friends.friends import Friend
from .friends.friend_requests import FriendRequest
from .friends.request_marks import FriendRequestMark
from .posts import Post, PostLike, PostComment
from .stories import Story, StoryView

__all__ = ["User", "Friend", "FriendRequest", "FriendRequestMark", "Post", "PostLike", "PostComment", "Story", "StoryView"]
