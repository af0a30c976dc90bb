from .image_cache_repository import SqlImageCacheRepository

__all__ = ["SqlImageCacheRepository"]
