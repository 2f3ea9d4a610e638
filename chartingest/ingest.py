"""Batch ingestion of S-57 chart files into the chart database."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from chartingest.database import DatabaseError
from chartingest.models import Feature, ProcessingResult
from chartingest.s57 import S57, Opener

_log = logging.getLogger(__name__)

#: File suffix of a base S-57 cell.
S57_SUFFIX = ".000"

#: Number of features stored per database transaction.
BATCH_SIZE = 1000

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class Statistics:
    """Counters gathered over one run of :meth:`ChartIngest.process_files`."""

    total_files: int = 0
    success_count: int = 0
    fail_count: int = 0
    total_features: int = 0


def _is_cell(path: Path) -> bool:
    return path.is_file() and path.suffix == S57_SUFFIX


def find_s57_files(path: str | os.PathLike[str], recursive: bool = False) -> list[str]:
    """Return the ``.000`` files at ``path``.

    A file path gives itself if it is a cell; a directory gives its cells,
    searched recursively on request and sorted. Anything else gives nothing.
    """
    root = Path(path)
    if not root.exists():
        return []
    if root.is_file():
        return [str(root)] if root.suffix == S57_SUFFIX else []
    if not root.is_dir():
        return []

    if recursive:
        candidates: Iterable[Path] = (
            Path(dirpath) / name
            for dirpath, _dirs, names in os.walk(root)
            for name in names
        )
    else:
        candidates = root.iterdir()
    return sorted(str(candidate) for candidate in candidates if _is_cell(candidate))


def _batches(features: Sequence[Feature], size: int) -> Iterator[Sequence[Feature]]:
    for start in range(0, len(features), size):
        yield features[start:start + size]


class ChartIngest:
    """Reads chart files and stores their charts and features."""

    def __init__(
        self,
        database: Any,
        opener: Opener,
        workers: int = 4,
        verbose: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._database = database
        self._opener = opener
        self.workers = workers
        self.verbose = verbose
        self.progress = progress
        self._stats = Statistics()

    @property
    def workers(self) -> int:
        """Requested number of workers, never less than one."""
        return self._workers

    @workers.setter
    def workers(self, count: int) -> None:
        self._workers = max(1, count)

    def _say(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _chart_exists(self, name: str) -> bool:
        try:
            return self._database.chart_exists(name)
        except DatabaseError as exc:
            _log.error("%s", exc)
            return False

    def _replace_existing(self, name: str) -> None:
        if not self._chart_exists(name):
            return
        self._say(f"  Updating existing chart: {name}")
        try:
            self._database.delete_chart(name)
        except DatabaseError as exc:
            _log.error("%s", exc)

    def process_file(self, file_path: str | os.PathLike[str]) -> ProcessingResult:
        """Store one chart file, replacing any chart of the same name."""
        path_text = os.fspath(file_path)
        result = ProcessingResult(file_name=Path(path_text).name)
        try:
            with S57(path_text, self._opener) as chart:
                if not chart.is_open():
                    result.error_message = "Failed to open file"
                    return result

                info = chart.chart_info()
                result.chart_name = info.name
                self._say(f"Processing: {info.name} (scale 1:{info.scale})")

                self._replace_existing(info.name)

                try:
                    chart_id = self._database.insert_chart(info)
                except DatabaseError as exc:
                    _log.error("%s", exc)
                    result.error_message = "Failed to insert chart"
                    return result

                features = chart.all_features()
                result.feature_count = len(features)
                self._say(f"  Found {len(features)} features")

                for batch in _batches(features, BATCH_SIZE):
                    try:
                        self._database.insert_features(chart_id, batch)
                    except DatabaseError as exc:
                        _log.error("%s", exc)
                        result.error_message = "Failed to insert features"
                        return result

                result.success = True
        except Exception as exc:
            result.success = False
            result.error_message = str(exc)
        return result

    def process_files(
        self, files: Iterable[str | os.PathLike[str]]
    ) -> list[ProcessingResult]:
        """Store each file in turn, updating statistics and reporting progress."""
        paths = list(files)
        total = len(paths)
        self._stats = Statistics()
        results: list[ProcessingResult] = []

        for path in paths:
            result = self.process_file(path)
            results.append(result)

            self._stats.total_files += 1
            if result.success:
                self._stats.success_count += 1
                self._stats.total_features += result.feature_count
            else:
                self._stats.fail_count += 1
                if self.verbose:
                    print(
                        f"Failed: {result.file_name} - {result.error_message}",
                        file=sys.stderr,
                    )

            if self.progress is not None:
                self.progress(self._stats.total_files, total, result.file_name)

        return results

    def process_directory(
        self, dir_path: str | os.PathLike[str], recursive: bool = False
    ) -> list[ProcessingResult]:
        """Store every chart file found under ``dir_path``."""
        files = find_s57_files(dir_path, recursive)
        self._say(f"Found {len(files)} S-57 files")
        return self.process_files(files)

    def statistics(self) -> Statistics:
        """Return a snapshot of the counters of the last batch run."""
        return replace(self._stats)