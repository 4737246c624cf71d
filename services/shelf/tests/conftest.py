import dataclasses
import os
from typing import List, Sequence

import pytest

from common.config import settings
from app.covers import CommandResult


def write_pdf(path, content: bytes = b"%PDF-1.4\n%fake\n") -> str:
    """
    Drop a small file with a PDF header at 'path' (a pathlib.Path), creating folders.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return str(path)


class FakeRunner:
    """
    Stands in for pdftoppm/convert. Records every argv and, for the
    rasterizer, writes "<output base>.jpg" unless told to fail.
    """

    def __init__(self, returncode: int = 0, write_output: bool = True, fail_for: Sequence[str] = ()):
        self.calls: List[List[str]] = []
        self.returncode = returncode
        self.write_output = write_output
        self.fail_for = set(fail_for)

    @property
    def rasterize_calls(self) -> List[List[str]]:
        return [c for c in self.calls if "-singlefile" in c]

    async def __call__(self, argv: Sequence[str]) -> CommandResult:
        argv = list(argv)
        self.calls.append(argv)
        if "-singlefile" not in argv:
            return CommandResult(returncode=0)

        pdf_path, output_base = argv[-2], argv[-1]
        if os.path.basename(pdf_path) in self.fail_for:
            return CommandResult(returncode=1, stderr="Syntax Error: Couldn't read xref table")
        if self.returncode != 0:
            return CommandResult(returncode=self.returncode, stderr="boom")
        if self.write_output:
            with open(output_base + ".jpg", "wb") as f:
                f.write(b"\xff\xd8\xff\xe0fake-jpeg")
        return CommandResult(returncode=0)


@pytest.fixture
def library(tmp_path):
    """
    Empty PDF and covers roots under a temp folder.
    """
    pdf_dir = tmp_path / "pdfs"
    covers_dir = tmp_path / "covers"
    pdf_dir.mkdir()
    covers_dir.mkdir()
    return pdf_dir, covers_dir


@pytest.fixture
def test_settings(library):
    pdf_dir, covers_dir = library
    return dataclasses.replace(
        settings,
        pdf_dir=str(pdf_dir),
        covers_dir=str(covers_dir),
        cover_width=200,
        cover_quality=30,
        cover_workers=1,
        log_downloads=True,
    )


@pytest.fixture
def fake_runner():
    return FakeRunner()
