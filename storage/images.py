# storage/images.py
from __future__ import annotations

import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from PIL import Image

from core.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ImageFile:
    ref: str
    data: bytes
    mimetype: str
    width: int = 0
    height: int = 0
    alt_text: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        return Path(self.ref).name


class ImageStore(Protocol):
    def read_image(self, ref: str) -> ImageFile: ...


class LocalImageStore:
    """
    Reads uploaded images from a directory.

    `ref` is a file name relative to `root`. Alt text, if any, lives next to the
    image in `<name>.alt.txt`. Dimensions come from Pillow (0x0 when unreadable).
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path_for(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if self.root.resolve() not in path.parents:
            raise ValidationError(f"Invalid image reference: {ref}", status=400)
        return path

    def read_image(self, ref: str) -> ImageFile:
        path = self._path_for(ref)
        if not path.is_file():
            raise ValidationError(f"Failed to read image file: {ref}", status=404)

        data = path.read_bytes()
        mimetype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        width = height = 0
        try:
            with Image.open(io.BytesIO(data)) as im:
                width, height = im.size
                if im.format:
                    mimetype = Image.MIME.get(im.format, mimetype)
        except Exception as e:
            logger.warning("Could not read image dimensions for %s: %s", path, e)

        alt_path = path.with_name(path.name + ".alt.txt")
        alt_text = alt_path.read_text(encoding="utf-8").strip() if alt_path.is_file() else None

        return ImageFile(
            ref=ref,
            data=data,
            mimetype=mimetype,
            width=width,
            height=height,
            alt_text=alt_text or None,
        )
