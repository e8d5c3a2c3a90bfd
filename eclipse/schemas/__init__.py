"""Convenience exports for schema layer."""
from .auth import AuthResponse, AuthResult, LoginRequest, RegisterRequest
from .channels import ChannelView, SubscriptionResponse
from .posts import ActingUser, ContentPart, Post, PostComment, PostDraft, PostFeedResponse
from .profiles import Playlist, PlaylistCreate, Profile, ProfileDetailsUpdate, ProfilePatch
from .videos import Comment, CommentCreate, Video, VideoDraft, VideoListResponse

__all__ = [
    "AuthResponse",
    "AuthResult",
    "LoginRequest",
    "RegisterRequest",
    "ChannelView",
    "SubscriptionResponse",
    "ActingUser",
    "ContentPart",
    "Post",
    "PostComment",
    "PostDraft",
    "PostFeedResponse",
    "Playlist",
    "PlaylistCreate",
    "Profile",
    "ProfileDetailsUpdate",
    "ProfilePatch",
    "Comment",
    "CommentCreate",
    "Video",
    "VideoDraft",
    "VideoListResponse",
]
