"""
Responsible for the "catalog": the listing behind GET /api/pdfs.

Rebuilt on every request from a fresh scan. Only cover images are cached
(on disk, by the cover builder); the listing itself never is.
"""

import os
from typing import List

from .models import CatalogItem, PdfEntry
from .scanner import iter_pdfs

COVERS_URL_PREFIX = "/covers/"
PDFS_URL_PREFIX = "/pdfs/"


def catalog_item(entry: PdfEntry) -> CatalogItem:
    """
    Combine one scanned entry with its size on disk and its public URLs.
    The cover URL is returned even if no cover file exists (it will 404).
    """
    return CatalogItem(
        name=entry.name,
        category=entry.category,
        size=os.stat(entry.full_path).st_size,
        cover=COVERS_URL_PREFIX + entry.cover_relative,
        pdf=PDFS_URL_PREFIX + entry.relative_pdf_path,
    )


def build_catalog(pdf_root: str) -> List[CatalogItem]:
    """
    Scan 'pdf_root' and return one CatalogItem per PDF, in scan order.
    OSError from the walk or from a stat propagates to the caller.
    """
    return [catalog_item(entry) for entry in iter_pdfs(pdf_root)]
