"""Brand palettes and logo handling for rendered documents"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple, Union
import base64
import binascii
import logging

from PIL import Image
from reportlab.lib.utils import ImageReader

from invoicehub.config import settings
from invoicehub.models.document import CompanyTag

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

WHITE: RGB = (255, 255, 255)
PAID_GREEN: RGB = (34, 197, 94)
UNPAID_ORANGE: RGB = (249, 115, 22)


@dataclass(frozen=True)
class BrandPalette:
    company: CompanyTag
    primary: RGB
    logo_file: str
    logo_max_width_mm: float
    logo_max_height_mm: float = 22


PALETTES = {
    CompanyTag.CLONMEL: BrandPalette(CompanyTag.CLONMEL, (220, 38, 38), "clonmel-logo.png", 50),
    CompanyTag.MIRRORZONE: BrandPalette(CompanyTag.MIRRORZONE, (15, 23, 42), "mirrorzone-logo.png", 70),
}


def palette_for(company: Optional[CompanyTag]) -> BrandPalette:
    return PALETTES.get(company, PALETTES[CompanyTag.CLONMEL])


def ribbon_color(paid: bool) -> RGB:
    return PAID_GREEN if paid else UNPAID_ORANGE


def decode_logo(data: Union[bytes, str]) -> bytes:
    """Raw image bytes from bytes, a base64 string or a ``data:`` URL"""
    if isinstance(data, bytes):
        return data
    if data.startswith("data:"):
        data = data.split(",", 1)[1]
    return base64.b64decode(data, validate=True)


def flatten_logo(data: bytes) -> Image.Image:
    """
    Composite the image onto an opaque white background.

    Transparent PNGs otherwise show as black boxes in some viewers.
    """
    with Image.open(BytesIO(data)) as img:
        img.load()
        rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, WHITE)
    background.paste(rgba, mask=rgba.split()[3])
    return background


def fit_logo(width_px: int, height_px: int, max_w: float, max_h: float) -> Tuple[float, float]:
    """Largest (w, h) with the image's aspect ratio inside ``max_w`` x ``max_h``"""
    ratio = width_px / height_px
    w, h = max_w, max_w / ratio
    if h > max_h:
        h = max_h
        w = max_h * ratio
    return w, h


def load_logo(
    company: CompanyTag,
    override: Optional[Union[bytes, str]] = None,
    logo_dir: Optional[Union[str, Path]] = None,
) -> Optional[Tuple[ImageReader, int, int]]:
    """
    Flattened logo for ``company`` ready for embedding, with its pixel size.

    ``override`` wins over the brand file in ``logo_dir``. Returns None when
    there is no logo or it cannot be read; the failure is logged only.
    """
    try:
        if override:
            data = decode_logo(override)
        else:
            path = Path(logo_dir or settings.LOGO_DIR) / palette_for(company).logo_file
            if not path.exists():
                logger.info(f"No logo at {path}; rendering without one")
                return None
            data = path.read_bytes()
        image = flatten_logo(data)
        return ImageReader(image), image.width, image.height
    except (OSError, ValueError, binascii.Error) as e:
        logger.warning(f"Logo for {company.value} could not be loaded: {e}")
        return None
