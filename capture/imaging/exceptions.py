class ImageNormalizationError(Exception):
    """Raised when an image or page cannot be decoded or rasterized."""
