from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterator

from PIL import Image

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff"}


@dataclass(frozen=True)
class PageProvider:
    """Yields (source_ref, encoded page bytes) in upload order."""

    input_path: str
    input_type: str  # pdf|images
    dpi: int = 200

    def iter_pages(self) -> Iterator[tuple[str, bytes]]:
        if self.input_type == "pdf":
            yield from self._iter_pdf_pages()
        elif self.input_type == "images":
            yield from self._iter_image_folder()
        else:
            raise ValueError(f"Unknown input_type: {self.input_type}")

    def _iter_pdf_pages(self) -> Iterator[tuple[str, bytes]]:
        try:
            import fitz  # PyMuPDF
        except Exception as e:  # pragma: no cover
            raise RuntimeError("PyMuPDF is required for --type pdf. Install pymupdf.") from e

        pdf_path = Path(self.input_path)
        zoom = self.dpi / 72.0
        matrix = fitz.Matrix(zoom, zoom)

        with fitz.open(pdf_path) as doc:
            for i in range(doc.page_count):
                pix = doc.load_page(i).get_pixmap(matrix=matrix, alpha=False)
                yield f"{pdf_path.name}#page={i + 1}", pix.tobytes("png")

    def _iter_image_folder(self) -> Iterator[tuple[str, bytes]]:
        folder = Path(self.input_path)
        if not folder.exists() or not folder.is_dir():
            raise ValueError(f"--type images expects a folder: {folder}")

        files = sorted([p for p in folder.iterdir() if p.suffix.lower() in IMAGE_EXTS])
        for img_path in files:
            data = img_path.read_bytes()
            if img_path.suffix.lower() in {".tif", ".tiff", ".webp"}:
                # re-encode formats the crop stage may not round-trip cleanly
                with Image.open(BytesIO(data)) as img:
                    buf = BytesIO()
                    img.convert("RGB").save(buf, format="PNG")
                    data = buf.getvalue()
            yield f"{folder.name}/{img_path.name}", data
