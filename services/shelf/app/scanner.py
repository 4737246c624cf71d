"""
Responsible for "scanning":
- Walk the PDF root recursively (no depth limit)
- Yield one PdfEntry per regular file with a ".pdf" extension (any case)
- Tag each entry with its category: the folder path relative to the root,
  or "general" for files sitting directly in the root

The walk is a generator: nothing is cached, every call re-reads the disk.
Symlinks are followed and there is no cycle detection, so a looping symlink
never terminates.
"""

import os
import posixpath
import stat
from typing import Iterator, List

from .models import GENERAL_CATEGORY, PdfEntry


def _is_pdf(name: str) -> bool:
    return os.path.splitext(name)[1].lower() == ".pdf"


def iter_pdfs(root: str, relative: str = "") -> Iterator[PdfEntry]:
    """
    Lazily yield PdfEntry records under 'root' in directory-listing order.

    'relative' is the "/"-separated folder currently being walked; callers
    leave it empty. OSError (missing root, permission denied) propagates.
    """
    current = os.path.join(root, *relative.split("/")) if relative else root

    with os.scandir(current) as it:
        items = list(it)

    for item in items:
        # One stat per entry; follows symlinks like a plain stat() would
        st_mode = os.stat(item.path).st_mode
        if stat.S_ISDIR(st_mode):
            yield from iter_pdfs(root, posixpath.join(relative, item.name))
        elif stat.S_ISREG(st_mode) and _is_pdf(item.name):
            yield PdfEntry(
                name=item.name,
                category=relative or GENERAL_CATEGORY,
                full_path=os.path.abspath(item.path),
                relative_pdf_path=posixpath.join(relative, item.name),
            )


def scan_pdfs(root: str) -> List[PdfEntry]:
    """
    Materialise one full walk of 'root'.
    """
    return list(iter_pdfs(root))
