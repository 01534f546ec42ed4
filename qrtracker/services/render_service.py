import logging
from pathlib import Path

import segno

from qrtracker.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def image_dir() -> Path:
    return Path(settings.QR_IMAGE_DIR)


def image_path(code: str) -> Path:
    return image_dir() / f"{code}.png"


def image_url(code: str) -> str:
    return f"{settings.QR_IMAGE_URL_PATH.rstrip('/')}/{code}.png"


def redirect_url(code: str) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/r/{code}"


def render_qr_image(code: str, size: int, foreground_color: str, background_color: str) -> Path:
    """Render the redirect URL for ``code`` to a PNG roughly ``size`` pixels wide."""
    qr = segno.make(redirect_url(code), error="m")
    width, _ = qr.symbol_size(border=4)
    scale = max(1, size // width)

    path = image_path(code)
    path.parent.mkdir(parents=True, exist_ok=True)
    qr.save(str(path), kind="png", scale=scale, dark=foreground_color, light=background_color)
    return path


def remove_qr_image(code: str) -> bool:
    path = image_path(code)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Could not remove QR image %s: %s", path, exc)
        return False
    return True
