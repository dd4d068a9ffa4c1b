"""
Image Compressor
Shrinks a picture-of-the-day image until it fits under an upload size limit.
"""

import io
import logging
import math
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

MAX_IMAGE_DIMENSION = 4096  # Uploaded images must be at most 4096x4096
SEARCH_TOLERANCE_PX = 10  # Stop searching once the width range is narrower than this
DEFAULT_JPEG_QUALITY = 90
DEFAULT_MAX_SIZE_BYTES = 5000000  # 5 MB upload limit for tweet images

# Featured Commons originals can be far larger than Pillow's decompression bomb limit
Image.MAX_IMAGE_PIXELS = None


class ImageCompressionError(Exception):
    """Raised when an image cannot be decoded or re-encoded."""


def _open_image(image_data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(image_data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageCompressionError(f"Could not decode image: {str(e)}") from e

    # Respect camera orientation before measuring width and height
    image = ImageOps.exif_transpose(image)

    if image.mode in ('RGBA', 'LA', 'P'):
        # JPEG has no transparency, flatten onto a white background
        if image.mode == 'P':
            image = image.convert('RGBA')
        rgb_image = Image.new('RGB', image.size, (255, 255, 255))
        rgb_image.paste(image, mask=image.split()[-1])
        image = rgb_image
    elif image.mode != 'RGB':
        image = image.convert('RGB')

    return image


def _encode_at_width(image: Image.Image, width: int, quality: int) -> bytes:
    """Resize image to the given width, keeping its aspect ratio, and encode it as JPEG."""
    source_width, source_height = image.size
    height = max(1, round(source_height * width / source_width))

    try:
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        output = io.BytesIO()
        resized.save(output, format='JPEG', quality=quality, optimize=True)
    except (OSError, ValueError) as e:
        raise ImageCompressionError(f"Failed to re-encode image at width {width}: {str(e)}") from e

    return output.getvalue()


def get_image_dimensions(image_data: bytes) -> Tuple[int, int]:
    """
    Get the (width, height) of an encoded image.

    Raises:
        ImageCompressionError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(image_data)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as e:
        raise ImageCompressionError(f"Could not read image dimensions: {str(e)}") from e


def max_search_width(width: int, height: int, max_dimension: int = MAX_IMAGE_DIMENSION) -> int:
    """
    Get the widest width that keeps both edges of the image within max_dimension.

    For portrait images the height is the long edge, so the width is narrowed
    in proportion.
    """
    max_width = min(max_dimension, width)
    if height > width:
        max_width = min(max_width, math.floor(max_dimension / height * width))
    return max(1, max_width)


def compress_image(image_data: bytes,
                   quality: int = DEFAULT_JPEG_QUALITY,
                   max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
                   output_path: Optional[str] = None,
                   logger: Optional[logging.Logger] = None) -> bytes:
    """
    Re-encode an image as a JPEG at the largest width that fits under a size limit.

    Images already under the limit are returned untouched. Otherwise the width is
    found by binary search, relying on JPEG size shrinking as the width shrinks.

    Args:
        image_data: Encoded source image bytes
        quality: JPEG quality used for every re-encode attempt
        max_size_bytes: Size the result must stay under
        output_path: If given, the re-encoded image is also written to this path
        logger: Logger to report progress to (defaults to this module's logger)

    Returns:
        Image bytes under max_size_bytes (the original bytes if no work was needed)

    Raises:
        ImageCompressionError: If the image cannot be decoded, encoded or written
    """
    log = logger or logging.getLogger(__name__)
    log.info(f"Starting image compression (size limit: {max_size_bytes} bytes, JPEG quality: {quality})")

    size = len(image_data)
    log.info(f"Original image is {size / 1024 / 1024:.2f} MB")

    if size < max_size_bytes:
        log.info("No image processing needed, file size is already below limit")
        return image_data

    image = _open_image(image_data)
    width, height = image.size

    max_width = max_search_width(width, height)
    min_width = 1
    best: Optional[bytes] = None
    body: Optional[bytes] = None

    # Binary search for the highest resolution giving an acceptable file size
    log.info(f"Starting binary search for {width}x{height} image (max width: {max_width})")
    while max_width - min_width >= SEARCH_TOLERANCE_PX:
        test_width = (max_width + min_width) // 2
        body = _encode_at_width(image, test_width, quality)
        log.info(f"Width range {min_width}-{max_width}: width {test_width} encodes to {len(body)} bytes")

        if len(body) >= max_size_bytes:
            max_width = test_width
        else:
            min_width = test_width
            best = body

    if best is None:
        if body is None:
            # Range was already narrower than the tolerance, nothing was tried
            body = _encode_at_width(image, max_width, quality)
        log.warning(f"No width produced an image under {max_size_bytes} bytes, using the smallest attempt")
        best = body

    final_width, final_height = get_image_dimensions(best)
    log.info(f"Compressed image to {final_width}x{final_height} ({len(best) / 1024 / 1024:.2f} MB)")

    if output_path:
        try:
            with open(output_path, 'wb') as f:
                f.write(best)
        except OSError as e:
            raise ImageCompressionError(f"Could not write compressed image to {output_path}: {str(e)}") from e
        log.info(f"Wrote compressed image to {output_path}")

    return best
