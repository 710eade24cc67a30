"""Concurrent discovery, classification and reading of repository files."""

from __future__ import annotations

import mmap
import os
import threading
from collections import deque
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import MAX_FILE_SIZE, SummarizationOptions
from .errors import validate_root
from .extractors import EntityExtractor, create_extractor, format_entities
from .logging import get_logger
from .matcher import PatternMatcher
from .models import NamedEntity, ProcessedFile

_LOGGER = get_logger("processor")

MMAP_THRESHOLD = 1024 * 1024
READ_CHUNK_SIZE = 16 * 1024
BINARY_SAMPLE_SIZE = 1024
DEFAULT_COLLECTOR_THREADS = 4

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tif", ".tiff", ".psd",
        ".mp3", ".mp4", ".wav", ".ogg", ".flac", ".avi", ".mov", ".mkv", ".webm",
        ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".tar", ".jar", ".war",
        ".exe", ".dll", ".so", ".dylib", ".a", ".lib", ".o", ".obj", ".class", ".pyc", ".pyo",
        ".bin", ".dat", ".db", ".sqlite", ".wasm", ".onnx", ".pt", ".pkl", ".npy",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".ttf", ".otf", ".woff", ".woff2", ".eot",
    }
)

_WHITESPACE_BYTES = frozenset(b"\t\n\r\x0b\x0c")

ThreadFactory = Callable[..., threading.Thread]


class PipelineState(Enum):
    """Execution phases of one :meth:`FileProcessor.process_directory` run."""

    NOT_STARTED = "not_started"
    PARALLEL = "parallel"
    DEGRADING = "degrading"
    SEQUENTIAL = "sequential"
    DONE = "done"


def count_lines(data: bytes) -> int:
    """Number of ``\\n`` bytes, plus one for a non-empty unterminated tail."""
    if not data:
        return 0
    lines = data.count(b"\n")
    if not data.endswith(b"\n"):
        lines += 1
    return lines


def is_binary_sample(sample: bytes) -> bool:
    """Binary when >10% of bytes are NUL or <80% are printable ASCII or whitespace."""
    if not sample:
        return False
    total = len(sample)
    if sample.count(0) > total * 0.1:
        return True
    printable = sum(1 for byte in sample if 32 <= byte < 127 or byte in _WHITESPACE_BYTES)
    return printable < total * 0.8


def is_binary_file(path: Path) -> bool:
    if path.suffix.lower() in BINARY_EXTENSIONS:
        return True
    with path.open("rb") as handle:
        return is_binary_sample(handle.read(BINARY_SAMPLE_SIZE))


@contextmanager
def mapped_file(path: Path) -> Iterator[mmap.mmap]:
    """Map ``path`` read-only; the mapping is always closed on exit."""
    with path.open("rb") as handle:
        mapping = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)
        try:
            yield mapping
        finally:
            mapping.close()


def _read_buffered(path: Path, size: int) -> bytes:
    buffer = bytearray(size)
    view = memoryview(buffer)
    offset = 0
    with path.open("rb") as handle:
        while offset < size:
            read = handle.readinto(view[offset : offset + READ_CHUNK_SIZE])
            if not read:
                break
            offset += read
        tail = handle.read()
    view.release()
    # The file may have changed size since it was stat'ed.
    del buffer[offset:]
    return bytes(buffer) + tail


def read_file(path: Path, size: Optional[int] = None) -> bytes:
    """Read ``path`` using buffered reads, or a memory map above 1 MiB."""
    if size is None:
        size = path.stat().st_size
    if size == 0:
        return b""
    if size > MMAP_THRESHOLD:
        try:
            with mapped_file(path) as mapping:
                return mapping[:]
        except (OSError, ValueError) as exc:
            _LOGGER.debug("mmap failed for %s, using buffered read: %s", path, exc)
    return _read_buffered(path, size)


def is_readme(path: Path) -> bool:
    return path.name.lower().startswith("readme")


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


class _FileQueue:
    """Lock-guarded deque shared by collectors and workers."""

    def __init__(self) -> None:
        self._items: Deque[Path] = deque()
        self._lock = threading.Lock()

    def extend(self, paths: Iterable[Path]) -> None:
        batch = list(paths)
        if not batch:
            return
        with self._lock:
            self._items.extend(batch)

    def pop(self) -> Optional[Path]:
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def snapshot(self) -> List[Path]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class FileProcessor:
    """Walks a directory tree and turns every matching file into a :class:`ProcessedFile`.

    Work is spread across ``num_threads`` worker threads (``None`` means the
    CPU count, ``0`` forces sequential processing). If a worker thread
    cannot be started, the workers already running are stopped and joined
    and the remaining queue is drained on the calling thread.
    """

    def __init__(
        self,
        matcher: PatternMatcher | None = None,
        num_threads: int | None = None,
        *,
        max_file_size: int = MAX_FILE_SIZE,
        summarization: SummarizationOptions | None = None,
        extractor: EntityExtractor | None = None,
        parallel_collection: bool = False,
        collector_threads: int = DEFAULT_COLLECTOR_THREADS,
        retain_content: bool = True,
        thread_factory: ThreadFactory = threading.Thread,
    ) -> None:
        self.matcher = matcher or PatternMatcher()
        self.num_threads = (os.cpu_count() or 1) if num_threads is None else max(0, num_threads)
        self.max_file_size = max_file_size
        self.summarization = summarization or SummarizationOptions()
        self.parallel_collection = parallel_collection
        self.collector_threads = max(1, collector_threads)
        self.retain_content = retain_content
        self._thread_factory = thread_factory
        self._extractor = extractor
        if (
            self._extractor is None
            and self.summarization.enabled
            and self.summarization.include_entity_recognition
        ):
            self._extractor = create_extractor(self.summarization)
        self._state = PipelineState.NOT_STARTED
        self._state_lock = threading.Lock()
        self.state_history: List[PipelineState] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def extractor(self) -> Optional[EntityExtractor]:
        return self._extractor

    def _set_state(self, state: PipelineState) -> None:
        with self._state_lock:
            _LOGGER.debug("Pipeline state %s -> %s", self._state.value, state.value)
            self._state = state
            self.state_history.append(state)

    # discovery -------------------------------------------------------------

    def collect_files(self, root: str | Path) -> List[Path]:
        """Single-pass walk that prunes ignored directories and filters files inline."""
        root_path = validate_root(root)
        queue = _FileQueue()
        for dirpath, dirnames, filenames in os.walk(root_path):
            current = Path(dirpath)
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not self.matcher.is_ignored_dir(_relative(current / name, root_path))
            )
            batch = []
            for name in sorted(filenames):
                candidate = current / name
                if self.matcher.should_process(_relative(candidate, root_path)) and candidate.is_file():
                    batch.append(candidate)
            queue.extend(batch)
        return queue.snapshot()

    def collect_files_parallel(self, root: str | Path) -> List[Path]:
        """Producer/consumer discovery with a bounded pool of directory collectors."""
        root_path = validate_root(root)
        files = _FileQueue()
        directories: Deque[Path] = deque([root_path])
        condition = threading.Condition()
        active = 0
        finished = False

        def collect() -> None:
            nonlocal active, finished
            while True:
                with condition:
                    while not directories and active > 0 and not finished:
                        condition.wait()
                    if not directories:
                        finished = True
                        condition.notify_all()
                        return
                    directory = directories.popleft()
                    active += 1

                batch: List[Path] = []
                subdirectories: List[Path] = []
                try:
                    with os.scandir(directory) as entries:
                        for entry in entries:
                            candidate = Path(entry.path)
                            relative = _relative(candidate, root_path)
                            try:
                                if entry.is_dir(follow_symlinks=False):
                                    if not self.matcher.is_ignored_dir(relative):
                                        subdirectories.append(candidate)
                                elif entry.is_file() and self.matcher.should_process(relative):
                                    batch.append(candidate)
                            except OSError as exc:
                                _LOGGER.debug("Skipping unreadable entry %s: %s", candidate, exc)
                except OSError as exc:
                    _LOGGER.warning("Could not list directory %s: %s", directory, exc)

                files.extend(batch)
                with condition:
                    directories.extend(subdirectories)
                    active -= 1
                    condition.notify_all()

        started = self._start_threads(collect, self.collector_threads, "repolens-collector")
        if not started:
            collect()
        for thread in started:
            thread.join()
        return sorted(files.snapshot())

    # processing ------------------------------------------------------------

    def process_directory(
        self, root: str | Path, parallel_collection: bool | None = None
    ) -> List[ProcessedFile]:
        """Discover and process every matching file under ``root``.

        Raises ``FileNotFoundError`` or ``NotADirectoryError`` before any work
        when ``root`` is unusable. Per-file failures are returned as records
        with ``error`` set.
        """
        root_path = validate_root(root)
        use_parallel = self.parallel_collection if parallel_collection is None else parallel_collection
        if use_parallel:
            paths = self.collect_files_parallel(root_path)
        else:
            paths = self.collect_files(root_path)
        _LOGGER.info("Discovered %d files under %s", len(paths), root_path)
        return self._run(paths, root_path)

    def process_paths(self, paths: Sequence[str | Path], root: str | Path) -> List[ProcessedFile]:
        """Process an explicit list of files (absolute or relative to ``root``)."""
        root_path = validate_root(root)
        resolved = [Path(p) if Path(p).is_absolute() else root_path / p for p in paths]
        return self._run(resolved, root_path)

    def process_file(self, path: str | Path, root: str | Path | None = None) -> ProcessedFile:
        """Process one file, raising instead of recording errors."""
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        root_path = Path(root).resolve() if root is not None else file_path.parent.resolve()
        return self._process(file_path.resolve(), root_path)

    def _run(self, paths: Sequence[Path], root: Path) -> List[ProcessedFile]:
        with self._state_lock:
            self._state = PipelineState.NOT_STARTED
            self.state_history = []
        queue = _FileQueue()
        queue.extend(paths)
        results: List[ProcessedFile] = []
        results_lock = threading.Lock()
        stop = threading.Event()

        def work() -> None:
            while not stop.is_set():
                path = queue.pop()
                if path is None:
                    return
                record = self._process_safely(path, root)
                with results_lock:
                    results.append(record)

        worker_count = min(self.num_threads, len(queue))
        if worker_count > 0:
            self._set_state(PipelineState.PARALLEL)
            workers, failed = self._spawn(work, worker_count, "repolens-worker")
            if failed:
                self._set_state(PipelineState.DEGRADING)
                stop.set()
                for thread in workers:
                    thread.join()
                stop.clear()
                self._set_state(PipelineState.SEQUENTIAL)
                work()
            else:
                for thread in workers:
                    thread.join()
        elif len(queue):
            self._set_state(PipelineState.SEQUENTIAL)
            work()

        self._set_state(PipelineState.DONE)
        errors = sum(1 for record in results if record.error)
        skipped = sum(1 for record in results if record.skipped)
        _LOGGER.info(
            "Processed %d files (%d skipped, %d errors)", len(results), skipped, errors
        )
        return results

    def _spawn(
        self, target: Callable[[], None], count: int, name: str
    ) -> Tuple[List[threading.Thread], bool]:
        threads: List[threading.Thread] = []
        for index in range(count):
            try:
                thread = self._thread_factory(target=target, name=f"{name}-{index}", daemon=True)
                thread.start()
            except (RuntimeError, OSError) as exc:
                _LOGGER.warning(
                    "Could not start thread %d of %d (%s); continuing sequentially", index + 1, count, exc
                )
                return threads, True
            threads.append(thread)
        return threads, False

    def _start_threads(
        self, target: Callable[[], None], count: int, name: str
    ) -> List[threading.Thread]:
        threads, _ = self._spawn(target, count, name)
        return threads

    def _process_safely(self, path: Path, root: Path) -> ProcessedFile:
        try:
            return self._process(path, root)
        except Exception as exc:  # per-file failures are recorded, never fatal to the batch
            _LOGGER.warning("Error processing %s: %s", path, exc)
            return ProcessedFile(path=path, relative_path=_relative(path, root), error=str(exc))

    def _process(self, path: Path, root: Path) -> ProcessedFile:
        relative = _relative(path, root)
        size = path.stat().st_size
        if size > self.max_file_size:
            _LOGGER.debug("Skipping %s: %d bytes exceeds limit", relative, size)
            return ProcessedFile(path=path, relative_path=relative, byte_size=size, skipped=True)
        if is_binary_file(path):
            _LOGGER.debug("Skipping binary file %s", relative)
            return ProcessedFile(path=path, relative_path=relative, byte_size=size, skipped=True)

        data = read_file(path, size)
        content = data.decode("utf-8", errors="replace")
        preview = ""
        snippets: Tuple[str, ...] = ()
        entities: Tuple[NamedEntity, ...] = ()
        entity_summary = ""

        options = self.summarization
        if options.enabled and len(data) > options.file_size_threshold and not (
            options.include_readme and is_readme(path)
        ):
            lines = content.splitlines()
            if options.include_first_n_lines:
                preview = "\n".join(lines[: options.first_n_lines])
            if options.include_snippets:
                snippets = tuple(self._snippets(lines))
            if options.include_entity_recognition and self._extractor is not None:
                entities = tuple(self._extractor.extract_entities(content, path))
                entity_summary = format_entities(entities, options.group_entities_by_type)

        return ProcessedFile(
            path=path,
            relative_path=relative,
            content=content if self.retain_content else "",
            line_count=count_lines(data),
            byte_size=len(data),
            preview=preview,
            snippets=snippets,
            entities=entities,
            entity_summary=entity_summary,
        )

    def _snippets(self, lines: Sequence[str]) -> List[str]:
        count = self.summarization.snippets_count
        width = self.summarization.snippet_lines
        total = len(lines)
        if count <= 0 or width <= 0 or total < count * width * 2:
            return []
        step = total // (count + 1)
        snippets = []
        for index in range(1, count + 1):
            start = min(max(0, step * index - width // 2), total - width)
            snippets.append("\n".join(lines[start : start + width]))
        return snippets

    # summarization -----------------------------------------------------------

    def summarize_file(self, processed: ProcessedFile) -> str:
        """Condensed text for a large file: preview, snippets and entities."""
        options = self.summarization
        if options.include_readme and is_readme(processed.path):
            return processed.content

        output: List[str] = []
        if options.include_first_n_lines:
            preview = processed.preview or "\n".join(
                processed.content.splitlines()[: options.first_n_lines]
            )
            if preview:
                output.extend(preview.splitlines())
            remaining = processed.line_count - len(preview.splitlines()) if preview else processed.line_count
            if remaining > 0:
                output.append(f"// ... ({remaining} more lines) ...")
        for index, snippet in enumerate(processed.snippets, start=1):
            output.append(f"// Snippet {index}:")
            output.extend(snippet.splitlines())
        if processed.entity_summary:
            output.append("// Entities:")
            output.extend(processed.entity_summary.splitlines())

        limit = options.max_summary_lines
        if limit > 0 and len(output) > limit:
            output = output[:limit]
            output.append("// ... (summary truncated) ...")
        return "\n".join(output) + "\n" if output else ""


__all__ = [
    "BINARY_EXTENSIONS",
    "FileProcessor",
    "MMAP_THRESHOLD",
    "PipelineState",
    "count_lines",
    "is_binary_file",
    "is_binary_sample",
    "is_readme",
    "mapped_file",
    "read_file",
]
