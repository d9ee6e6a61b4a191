"""
Composites the framed image into label-sized rasters
"""
import logging
from io import BytesIO
from typing import Awaitable, Callable, Optional

from PIL import Image, ImageDraw

from .config import CardSheetConfig
from .exceptions import DecodeFailure
from .models import ImageTransformState, LabelGeometry, RasterFormat
from .services.image_loader import DecodedImage, decode_image, to_data_url
from .slot_store import CardSlotStore
from .transform import refit_state, reset_view

logger = logging.getLogger(__name__)

TRIM_GUIDE_COLOR = (42, 106, 115, 153)
TRIM_GUIDE_WIDTH_MM = 0.4
PLACEHOLDER_STRIPE_COLOR = (31, 43, 42, 20)
PLACEHOLDER_TEXT_COLOR = (81, 98, 97, 255)
MASK_SUPERSAMPLE = 4

Decoder = Callable[[str], Awaitable[DecodedImage]]


def label_mask(geometry: LabelGeometry) -> Image.Image:
    """Clip mask of the label boundary: rounded without bleed, plain with it."""
    width, height = geometry.canvas_size
    radius = geometry.clip_radius_px
    if radius <= 0:
        return Image.new('L', (width, height), 255)

    big = Image.new('L', (width * MASK_SUPERSAMPLE, height * MASK_SUPERSAMPLE), 0)
    ImageDraw.Draw(big).rounded_rectangle(
        (0, 0, big.width - 1, big.height - 1),
        radius=radius * MASK_SUPERSAMPLE,
        fill=255,
    )
    return big.resize((width, height), Image.Resampling.LANCZOS)


def _place_image(image: Image.Image, state: ImageTransformState, width: int, height: int) -> Image.Image:
    scale = state.scale
    left = width / 2 - image.width * scale / 2 + state.offset_x
    top = height / 2 - image.height * scale / 2 + state.offset_y

    source = image if image.mode == 'RGBA' else image.convert('RGBA')
    # Source-space rectangle visible through the canvas
    box = [-left / scale, -top / scale, (width - left) / scale, (height - top) / scale]

    factor = int(1 / scale) if scale < 1 else 1
    if factor >= 2:
        source = source.reduce(factor)
        box = [v / factor for v in box]

    return source.transform(
        (width, height), Image.Transform.EXTENT, tuple(box),
        resample=Image.Resampling.BICUBIC,
    )


def draw_trim_guide(surface: Image.Image, geometry: LabelGeometry):
    x, y, w, h = geometry.trim_rect
    line_width = max(1, round(TRIM_GUIDE_WIDTH_MM * geometry.px_per_mm))
    overlay = Image.new('RGBA', surface.size, (0, 0, 0, 0))
    ImageDraw.Draw(overlay).rounded_rectangle(
        (round(x), round(y), round(x + w) - 1, round(y + h) - 1),
        radius=geometry.radius_px,
        outline=TRIM_GUIDE_COLOR,
        width=line_width,
    )
    surface.alpha_composite(overlay)


def compose(image: Optional[Image.Image], state: ImageTransformState, geometry: LabelGeometry,
            include_trim_guide: bool = False, fill: str = '#f7f1e6') -> Image.Image:
    width, height = geometry.canvas_size
    content = Image.new('RGBA', (width, height), fill)
    if image is not None:
        content.alpha_composite(_place_image(image, state, width, height))

    surface = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    surface.paste(content, (0, 0), label_mask(geometry))

    if include_trim_guide:
        draw_trim_guide(surface, geometry)
    return surface


def compose_placeholder(geometry: LabelGeometry, fill: str = '#f1e7d8') -> Image.Image:
    """Empty striped card shown before an image is loaded"""
    width, height = geometry.canvas_size
    content = Image.new('RGBA', (width, height), fill)
    stripes = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(stripes)
    step = max(8, round(4 * geometry.px_per_mm))
    for i in range(-height, width, step):
        draw.line((i, 0, i + height, height), fill=PLACEHOLDER_STRIPE_COLOR, width=2)
    content.alpha_composite(stripes)

    text = "Upload, paste, or load an image URL to start"
    draw = ImageDraw.Draw(content)
    left, top, right, bottom = draw.textbbox((0, 0), text)
    draw.text(((width - (right - left)) / 2, (height - (bottom - top)) / 2), text, fill=PLACEHOLDER_TEXT_COLOR)

    surface = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    surface.paste(content, (0, 0), label_mask(geometry))
    draw_trim_guide(surface, geometry)
    return surface


def encode_raster(surface: Image.Image, raster_format: RasterFormat = RasterFormat.JPEG,
                  quality: int = 92, background: str = '#ffffff') -> str:
    """Encode to a data URL; formats without alpha get an opaque background behind the content."""
    image = surface
    if not raster_format.has_alpha:
        flattened = Image.new('RGBA', surface.size, background)
        flattened.alpha_composite(surface.convert('RGBA'))
        image = flattened.convert('RGB')

    buffer = BytesIO()
    if raster_format is RasterFormat.PNG:
        image.save(buffer, format='PNG', optimize=True)
    else:
        image.save(buffer, format=raster_format.name, quality=quality)
    return to_data_url(buffer.getvalue(), raster_format.mime)


class CardBaker:
    def __init__(self, config: Optional[CardSheetConfig] = None):
        self.config = config or CardSheetConfig()

    def bake(self, image: Image.Image, state: ImageTransformState, geometry: LabelGeometry,
             include_trim_guide: bool = False) -> str:
        surface = compose(image, state, geometry, include_trim_guide, fill=self.config.card_fill_color)
        return encode_raster(surface, self.config.raster_format,
                             self.config.raster_quality, self.config.background_color)


class GenerationCounter:
    def __init__(self):
        self._value = 0

    @property
    def current(self) -> int:
        return self._value

    def advance(self) -> 'CancellationToken':
        """Supersede every outstanding token and hand out a new one"""
        self._value += 1
        return CancellationToken(self, self._value)


class CancellationToken:
    def __init__(self, counter: GenerationCounter, generation: int):
        self._counter = counter
        self.generation = generation

    @property
    def cancelled(self) -> bool:
        return self._counter.current != self.generation


async def rebake_all(store: CardSlotStore, geometry: LabelGeometry, include_trim_guide: bool,
                     token: CancellationToken, baker: CardBaker,
                     decode: Decoder = decode_image) -> int:
    """Re-bake every occupied slot against the current geometry. Returns the number rebaked."""
    rebaked = 0
    for index, card in store.occupied():
        if token.cancelled:
            logger.debug(f"Rebake generation {token.generation} superseded before slot {index}")
            return rebaked
        if card.source_raster is None:
            logger.debug(f"Card {card.id} has no source raster, left stale")
            continue

        try:
            decoded = await decode(card.source_raster)
        except DecodeFailure as e:
            logger.warning(f"Could not re-decode card {card.id}: {e}")
            continue

        if token.cancelled:
            logger.debug(f"Rebake generation {token.generation} superseded at slot {index}")
            return rebaked

        image_size = decoded.image.size
        state = card.transform or reset_view(*image_size, *geometry.canvas_size)
        state = refit_state(state, image_size, geometry.canvas_size)
        raster = baker.bake(decoded.image, state, geometry, include_trim_guide)

        if store.replace(card.id, raster=raster, transform=state):
            rebaked += 1
        else:
            logger.debug(f"Card {card.id} removed during rebake")

    logger.info(f"Rebaked {rebaked} card(s) at oversize {geometry.oversize_mm} mm")
    return rebaked
