# Data models for the shelf service.
#   - PdfEntry / CoverResult / BatchSummary: internal records (dataclasses)
#   - CatalogItem / HealthResponse: REST response shapes (Pydantic)

import posixpath
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel

# Category used for PDFs that sit directly in the PDF root
GENERAL_CATEGORY = "general"

# -----------------------------------------------------------------------------
# Internal records
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class PdfEntry:
    """
    One PDF found by the scanner. Built fresh on every scan, never mutated.
    """
    name: str               # base name including extension, e.g. "b.pdf"
    category: str           # "physics/waves" or GENERAL_CATEGORY at the root
    full_path: str          # absolute path on disk (internal only)
    relative_pdf_path: str  # "/"-separated path under the PDF root

    @property
    def stem(self) -> str:
        if self.name.lower().endswith(".pdf"):
            return self.name[:-4]
        return self.name

    @property
    def cover_relative(self) -> str:
        """
        Cover location under the covers root: category folder + stem + ".jpg".
        PDFs sitting directly in the root map straight into the covers root;
        a real subfolder named "general" keeps its folder.
        """
        folder = "" if "/" not in self.relative_pdf_path else self.category
        return posixpath.join(folder, self.stem + ".jpg")


@dataclass
class CoverResult:
    relative_pdf_path: str
    cover_path: str
    status: str  # "cached" | "built" | "failed"
    error: Optional[str] = None


@dataclass
class BatchSummary:
    results: List[CoverResult] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def cached(self) -> int:
        return self._count("cached")

    @property
    def built(self) -> int:
        return self._count("built")

    @property
    def failed(self) -> int:
        return self._count("failed")

# -----------------------------------------------------------------------------
# REST response models
# -----------------------------------------------------------------------------

class CatalogItem(BaseModel):
    """
    One element of the GET /api/pdfs array.
    """
    name: str      # file name including extension
    category: str  # relative folder path, "general" at the root
    size: int      # bytes
    cover: str     # public URL of the cover image (may 404 if generation failed)
    pdf: str       # public URL of the PDF itself

class HealthResponse(BaseModel):
    """
    Response shape for GET /health.
    """
    status: str = "ok"
    service: str
    viewers: int
