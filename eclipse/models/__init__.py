"""Convenience exports for ORM models."""
from .account import Account
from .community_post import CommunityPost
from .profile import Profile
from .video import Video, VideoComment

__all__ = [
    "Account",
    "CommunityPost",
    "Profile",
    "Video",
    "VideoComment",
]
