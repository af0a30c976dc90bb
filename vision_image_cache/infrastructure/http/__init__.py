from .image_fetcher import FetchedImage, ImageFetcher

__all__ = ["FetchedImage", "ImageFetcher"]
