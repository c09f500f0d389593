"""
Media storage helpers backed by Cloudinary.
"""
import logging

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from django.conf import settings

logger = logging.getLogger(__name__)


def configure_cloudinary():
    """Apply CLOUDINARY_STORAGE credentials to the SDK. Returns False when unset."""
    credentials = getattr(settings, 'CLOUDINARY_STORAGE', {})
    if not all(credentials.get(key) for key in ('CLOUD_NAME', 'API_KEY', 'API_SECRET')):
        logger.warning('[Media] Cloudinary credentials are not configured; media uploads are disabled')
        return False

    cloudinary.config(
        cloud_name=credentials['CLOUD_NAME'],
        api_key=credentials['API_KEY'],
        api_secret=credentials['API_SECRET'],
        secure=True,
    )
    return True


def delete_media(public_id):
    """
    Best-effort removal of a media asset.

    Returns True when the provider confirmed the deletion. Failures are logged
    and never raised, so a storage outage cannot block catalog edits.
    """
    if not public_id:
        return False
    try:
        result = cloudinary.uploader.destroy(str(public_id), invalidate=True)
    except CloudinaryError as e:
        logger.warning(f'[Media] Failed to delete {public_id}: {e}')
        return False
    except Exception as e:
        logger.warning(f'[Media] Unexpected error deleting {public_id}: {e}')
        return False

    deleted = result.get('result') == 'ok'
    if not deleted:
        logger.info(f'[Media] Provider did not delete {public_id}: {result}')
    return deleted
