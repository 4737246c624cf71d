"""
Responsible for "covers":
- Map each PDF to a JPEG path under the covers root (mirrors the category folders)
- Rasterize page 1 with poppler's pdftoppm, then optionally shrink it with
  ImageMagick's convert
- Skip any PDF whose cover file already exists (existence is the only cache key)

Builds run through CoverQueue, an asyncio.Queue drained by N workers
(one by default, i.e. strictly sequential in scan order). Failures are logged
and recorded; they never stop the batch and are never retried.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set

from .models import BatchSummary, CoverResult, PdfEntry

logger = logging.getLogger("covers")


class CoverBuildError(RuntimeError):
    """
    Raised when the external tools fail or leave no cover file behind.
    """


@dataclass(frozen=True)
class CoverOptions:
    resize_width: Optional[int] = None  # px; None -> keep rasterizer output as is
    jpeg_quality: Optional[int] = None  # 1-100; None -> rasterizer default
    pdftoppm_bin: str = "pdftoppm"
    convert_bin: str = "convert"


@dataclass
class CommandResult:
    returncode: int
    stderr: str = ""


Runner = Callable[[Sequence[str]], Awaitable[CommandResult]]


# -----------------------------------------------------------------------------
# Paths & commands
# -----------------------------------------------------------------------------
def cover_path_for(entry: PdfEntry, covers_root: str) -> str:
    return os.path.join(covers_root, *entry.cover_relative.split("/"))


def rasterize_command(pdf_path: str, target: str, options: CoverOptions) -> List[str]:
    """
    pdftoppm appends ".jpg" itself, so it gets the target without extension.
    """
    output_base = os.path.splitext(target)[0]
    argv = [options.pdftoppm_bin, "-jpeg"]
    if options.jpeg_quality is not None:
        argv += ["-jpegopt", f"quality={options.jpeg_quality}"]
    argv += ["-singlefile", "-f", "1", "-l", "1", pdf_path, output_base]
    return argv


def resize_command(target: str, options: CoverOptions) -> Optional[List[str]]:
    if options.resize_width is None:
        return None
    argv = [options.convert_bin, target, "-resize", str(options.resize_width)]
    if options.jpeg_quality is not None:
        argv += ["-quality", str(options.jpeg_quality)]
    argv.append(target)
    return argv


async def run_command(argv: Sequence[str]) -> CommandResult:
    """
    Run an external program and wait for it. No shell, no timeout.
    A missing executable is reported like any other failure (exit code 127).
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        return CommandResult(returncode=127, stderr=str(e))

    _, stderr = await proc.communicate()
    return CommandResult(
        returncode=proc.returncode,
        stderr=stderr.decode("utf-8", errors="replace").strip(),
    )


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------
class CoverBuilder:
    """
    Ensures one cover exists. Safe to call concurrently: a per-target lock
    makes the exists-check + build sequence atomic for each output path.
    """

    def __init__(self, options: Optional[CoverOptions] = None, runner: Runner = run_command):
        self.options = options or CoverOptions()
        self._runner = runner
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, target: str) -> asyncio.Lock:
        key = os.path.abspath(target)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def ensure_cover(self, pdf_path: str, target: str) -> str:
        """
        Returns "cached" when the cover was already there, "built" when it
        was produced now. Raises CoverBuildError otherwise.
        """
        async with self._lock_for(target):
            if os.path.exists(target):
                return "cached"

            os.makedirs(os.path.dirname(target) or ".", exist_ok=True)

            result = await self._runner(rasterize_command(pdf_path, target, self.options))
            if result.returncode != 0:
                raise CoverBuildError(
                    f"rasterizer exited with {result.returncode}: {result.stderr or 'no output'}"
                )

            resize = resize_command(target, self.options)
            if resize is not None and os.path.exists(target):
                result = await self._runner(resize)
                if result.returncode != 0:
                    raise CoverBuildError(
                        f"resize exited with {result.returncode}: {result.stderr or 'no output'}"
                    )

            # The tools can exit 0 on a malformed PDF without writing anything
            if not os.path.exists(target):
                raise CoverBuildError(f"no cover was written at {target}")

            return "built"


# -----------------------------------------------------------------------------
# Queue
# -----------------------------------------------------------------------------
class CoverQueue:
    """
    Runs "ensure cover for PDF X" tasks with a fixed number of workers.
    workers=1 keeps the builds strictly one at a time in scan order.
    """

    def __init__(self, builder: CoverBuilder, workers: int = 1):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.builder = builder
        self.workers = workers

    async def _build_one(self, entry: PdfEntry, target: str) -> CoverResult:
        if not os.path.exists(target):
            logger.info("Generating cover for %s", entry.relative_pdf_path)
        try:
            status = await self.builder.ensure_cover(entry.full_path, target)
        except Exception as e:
            logger.error("Cover generation failed for %s: %s", entry.full_path, e)
            return CoverResult(entry.relative_pdf_path, target, "failed", str(e))
        return CoverResult(entry.relative_pdf_path, target, status)

    async def run(self, entries: Iterable[PdfEntry], covers_root: str) -> BatchSummary:
        """
        Process every entry and return once all of them are done.
        Results come back in the order the entries were given.
        """
        queue: asyncio.Queue = asyncio.Queue()
        seen: Set[str] = set()
        results: List[Optional[CoverResult]] = []

        for entry in entries:
            target = cover_path_for(entry, covers_root)
            # Two PDFs mapping to the same cover: the first one wins
            if target in seen:
                logger.warning("Skipping %s: cover %s already claimed in this batch", entry.relative_pdf_path, target)
                continue
            seen.add(target)
            queue.put_nowait((len(results), entry, target))
            results.append(None)

        async def worker() -> None:
            while True:
                try:
                    index, entry, target = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    results[index] = await self._build_one(entry, target)
                finally:
                    queue.task_done()

        await asyncio.gather(*(worker() for _ in range(min(self.workers, max(1, len(results))))))

        summary = BatchSummary(results=[r for r in results if r is not None])
        logger.info(
            "Cover batch done total=%s built=%s cached=%s failed=%s",
            len(summary.results), summary.built, summary.cached, summary.failed
        )
        return summary
