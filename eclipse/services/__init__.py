"""Convenience exports for service layer."""
from .auth_service import AuthClient, AuthError, AuthEvent, AuthSession, AuthUser
from .blob_store import BlobStoreError, LocalBlobStore
from .catalog_store import CatalogError, CatalogStore
from .change_feed import ChangeEvent, ChangeFeed, DebouncedRefetch, Subscription
from .channel_service import ChannelError, ChannelProjection, toggle_channel_subscription
from .comment_tree import CommentThread, FlatCommentThread, NestedCommentThread
from .container import ServiceContainer
from .feed_store import FeedStore
from .profile_store import ProfileStore
from .record_store import RecordStore, RecordStoreError
from .spaces_service import (
    MediaFile,
    ObjectStorage,
    StorageConfigurationError,
    StorageDeletionError,
    StorageUploadError,
)
from .subscriber_counts import SubscriberCountCache
from .upload_service import UploadError, publish_video

__all__ = [
    "AuthClient",
    "AuthError",
    "AuthEvent",
    "AuthSession",
    "AuthUser",
    "BlobStoreError",
    "LocalBlobStore",
    "CatalogError",
    "CatalogStore",
    "ChangeEvent",
    "ChangeFeed",
    "DebouncedRefetch",
    "Subscription",
    "ChannelError",
    "ChannelProjection",
    "toggle_channel_subscription",
    "CommentThread",
    "FlatCommentThread",
    "NestedCommentThread",
    "ServiceContainer",
    "FeedStore",
    "ProfileStore",
    "RecordStore",
    "RecordStoreError",
    "MediaFile",
    "ObjectStorage",
    "StorageConfigurationError",
    "StorageDeletionError",
    "StorageUploadError",
    "SubscriberCountCache",
    "UploadError",
    "publish_video",
]
