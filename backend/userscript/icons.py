from __future__ import annotations

import io

from PIL import Image, ImageDraw, ImageFont

ICON_SIZES: tuple[int, ...] = (16, 48, 128)

_GRADIENT_START = (99, 102, 241, 255)  # indigo-500
_GRADIENT_END = (139, 92, 246, 255)  # violet-500


def icon_letter(name: str) -> str:
    stripped = name.strip()
    return (stripped[0] if stripped else "S").upper()


def generate_icon(name: str, size: int) -> bytes:
    """Render a rounded gradient square with the first letter of ``name``."""
    start = Image.new("RGBA", (size, size), _GRADIENT_START)
    end = Image.new("RGBA", (size, size), _GRADIENT_END)
    gradient_mask = Image.linear_gradient("L").resize((size, size))
    image = Image.composite(end, start, gradient_mask)

    shape = Image.new("L", (size, size), 0)
    ImageDraw.Draw(shape).rounded_rectangle(
        (0, 0, size - 1, size - 1), radius=max(1, int(size * 0.2)), fill=255
    )
    image.putalpha(shape)

    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default(size=max(8, int(size * 0.55)))
    draw.text(
        (size / 2, size / 2),
        icon_letter(name),
        fill=(255, 255, 255, 255),
        font=font,
        anchor="mm",
    )

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_icons(name: str) -> dict[str, bytes]:
    return {str(size): generate_icon(name, size) for size in ICON_SIZES}
