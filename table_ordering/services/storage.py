from typing import Optional

from ..settings import Settings


def public_image_url(image: Optional[str], settings: Settings) -> str:
    """
    Menu images are stored by filename in the public inventory bucket.
    Absolute URLs are passed through untouched.
    """
    if image and image.startswith(("http://", "https://")):
        return image
    return f"{settings.storage_base_url.rstrip('/')}/{image or settings.default_image}"
