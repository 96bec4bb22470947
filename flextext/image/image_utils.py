import os
from pathlib import Path

from PIL import Image

from flextext.models import Color, OutputImage
from utils.exceptions import ImageProcessingError
from utils.logging import log_message


def create_output_image(width, height, background=(255, 255, 255, 255)):
    """Creates the fixed-size RGBA buffer filled with the background color."""
    return OutputImage(width, height, background)


def draw_hollow_rect(image: OutputImage, x: float, y: float, width: float, height: float, color: Color) -> None:
    """
    Draws a one pixel rectangle outline, clipped to the image.

    Sizes below one pixel are drawn as one pixel so empty boxes stay visible.
    """
    left, top = int(x), int(y)
    right = left + max(int(width), 1) - 1
    bottom = top + max(int(height), 1) - 1
    rgba = list(color)

    x1, x2 = max(left, 0), min(right, image.width - 1)
    y1, y2 = max(top, 0), min(bottom, image.height - 1)
    if x1 > x2 or y1 > y2:
        return

    if 0 <= top < image.height:
        image.pixels[top, x1 : x2 + 1] = rgba
    if 0 <= bottom < image.height:
        image.pixels[bottom, x1 : x2 + 1] = rgba
    if 0 <= left < image.width:
        image.pixels[y1 : y2 + 1, left] = rgba
    if 0 <= right < image.width:
        image.pixels[y1 : y2 + 1, right] = rgba


OUTPUT_FORMATS = {
    ".png": "PNG",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".webp": "WEBP",
}


def _flatten_for_jpeg(image: Image.Image, verbose: bool = False) -> Image.Image:
    """JPEG has no alpha: composite onto white."""
    if image.mode in ("RGBA", "LA"):
        log_message(f"Flattening {image.mode} onto white for JPEG output", verbose=verbose)
        flattened = Image.new("RGB", image.size, (255, 255, 255))
        flattened.paste(image, mask=image.split()[-1])
        return flattened
    return image if image.mode == "RGB" else image.convert("RGB")


def save_image_with_compression(
    image, output_path, jpeg_quality=95, png_compression=6, verbose=False
):
    """
    Writes the rendered image, choosing the encoder from the file extension.

    Args:
        image (OutputImage or PIL.Image): Image to save
        output_path (str or Path): Destination; unknown extensions are replaced by .png
        jpeg_quality (int): JPEG quality (1-100)
        png_compression (int): PNG compression level (0-9)
        verbose (bool): Whether to print verbose logging

    Returns:
        Path: The path actually written

    Raises:
        ImageProcessingError: If image saving fails
    """
    pil_image = image.to_pil() if isinstance(image, OutputImage) else image
    output_path = Path(output_path)

    output_format = OUTPUT_FORMATS.get(output_path.suffix.lower())
    if output_format is None:
        log_message(
            f"Warning: Unknown output extension '{output_path.suffix}'. Saving as PNG.",
            always_print=True,
        )
        output_format = "PNG"
        output_path = output_path.with_suffix(".png")

    if output_format == "JPEG":
        pil_image = _flatten_for_jpeg(pil_image, verbose=verbose)
        save_options = {"quality": max(1, min(jpeg_quality, 100))}
    elif output_format == "WEBP":
        save_options = {"lossless": True}
    else:
        save_options = {"compress_level": max(0, min(png_compression, 9))}

    log_message(f"Saving {output_format} {save_options} to {output_path}", verbose=verbose)
    try:
        os.makedirs(output_path.parent, exist_ok=True)
        pil_image.save(str(output_path), format=output_format, **save_options)
    except (OSError, ValueError) as e:
        log_message(f"Error saving image to {output_path}: {e}", always_print=True)
        raise ImageProcessingError(f"Failed to save image to {output_path}") from e
    return output_path
