import logging
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

import config
from errors import MediaError

logger = logging.getLogger(__name__)

AVATAR_FOLDER = "blog-avatars"
POST_FOLDER = "blog-posts"
DEFAULT_AVATAR = {
    "public_id": "sample avatar",
    "url": "https://res.cloudinary.com/dukdn1bpp/image/upload/v1670577687/avatars/ytffuvbukg5j3nrp5uhc.png",
}


class MediaGateway:
    """Thin wrapper over the Cloudinary uploader returning ``{public_id, url}`` pairs."""

    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str]):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    def upload(self, payload: str, folder: str, **options) -> dict:
        try:
            result = cloudinary.uploader.upload(payload, folder=folder, **options)
        except (CloudinaryError, OSError, ValueError) as e:
            logger.warning("Upload to %s failed: %s", folder, e)
            raise MediaError("Image could not be uploaded") from e
        return {"public_id": result.get("public_id"), "url": result.get("secure_url")}

    def destroy(self, public_id: Optional[str]) -> None:
        if not public_id:
            return
        try:
            cloudinary.uploader.destroy(public_id)
        except (CloudinaryError, OSError) as e:
            logger.warning("Destroy of %s failed: %s", public_id, e)
            raise MediaError("Image could not be removed") from e

    def upload_avatar(self, payload: str) -> dict:
        return self.upload(payload, AVATAR_FOLDER, width=300, crop="scale")

    def upload_post_image(self, payload: str) -> dict:
        return self.upload(payload, POST_FOLDER, resource_type="image")


_gateway: Optional[MediaGateway] = None


def get_media() -> MediaGateway:
    global _gateway
    if _gateway is None:
        _gateway = MediaGateway(config.CLOUDINARY_CLOUD_NAME, config.CLOUDINARY_API_KEY,
                                config.CLOUDINARY_API_SECRET)
    return _gateway
