from .cache_manager import ImageCacheManager

__all__ = ["ImageCacheManager"]
