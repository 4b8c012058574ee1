"""Pipeline orchestration: scan -> build units -> request -> parse -> sync.

Units are processed strictly one after another with a fixed cooldown in
between to stay under upstream rate limits.  ``Pipeline.process_unit``
turns stage failures into a ``UnitResult``; the run methods decide what a
failure means:

- file mode logs the failed unit and moves on to the next one;
- feature mode has a single unit, so its failure aborts the run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from codescribe.artifact import parse_artifact
from codescribe.errors import ArtifactParseError, CodescribeError
from codescribe.requester import request_documentation
from codescribe.scanner import UnitMode, extensions_for, scan
from codescribe.sync import SyncEngine, SyncOutcome
from codescribe.units import build_units

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from codescribe.config import Settings
    from codescribe.store import DocumentStore
    from codescribe.units import AnalysisUnit

logger = logging.getLogger(__name__)

STATUS_CREATED = "created"
STATUS_UPDATED = "updated"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class RunContext:
    """Service handles and settings shared by every unit of a run."""

    settings: Settings
    store: DocumentStore


@dataclass(frozen=True)
class UnitResult:
    """Outcome of one unit's request -> parse -> sync stages."""

    unit_key: str
    status: str  # created | updated | failed
    stage: str = ""  # failing stage: request | parse | sync
    title: str = ""
    error: CodescribeError | None = None

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAILED


@dataclass
class RunReport:
    """Summary of a whole run."""

    mode: UnitMode
    root: str
    scanned: int = 0
    skipped: int = 0
    results: list[UnitResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def created(self) -> int:
        return self.count(STATUS_CREATED)

    @property
    def updated(self) -> int:
        return self.count(STATUS_UPDATED)

    @property
    def failed(self) -> int:
        return self.count(STATUS_FAILED)


class Pipeline:
    """Run the documentation pipeline against one destination store."""

    def __init__(
        self,
        context: RunContext,
        *,
        engine: SyncEngine | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._context = context
        self._engine = engine or SyncEngine(context.store)
        self._sleep = sleep

    def process_unit(self, unit: AnalysisUnit) -> UnitResult:
        """Run one unit through request, parse and sync.

        Never raises codescribe errors; failures come back as a result with
        ``status == "failed"`` and the failing stage.
        """
        try:
            raw = request_documentation(self._context.settings.llm, unit)
        except CodescribeError as exc:
            return UnitResult(unit.unit_key, STATUS_FAILED, stage="request", error=exc)

        try:
            artifact = parse_artifact(raw, unit.mode)
        except ArtifactParseError as exc:
            logger.error("Failed to parse JSON for %s: %s", unit.unit_key, exc)
            logger.error("Response: %s", exc.raw_payload)
            return UnitResult(unit.unit_key, STATUS_FAILED, stage="parse", error=exc)

        try:
            outcome = self._engine.sync(artifact, unit.source_label)
        except CodescribeError as exc:
            return UnitResult(
                unit.unit_key, STATUS_FAILED, stage="sync", title=artifact.title, error=exc
            )

        status = STATUS_CREATED if outcome is SyncOutcome.CREATED else STATUS_UPDATED
        return UnitResult(unit.unit_key, status, title=artifact.title)

    def _run_units(self, units: Sequence[AnalysisUnit], report: RunReport) -> None:
        for index, unit in enumerate(units):
            if index:
                self._sleep(self._context.settings.cooldown_seconds)

            result = self.process_unit(unit)
            report.results.append(result)

            if result.ok:
                continue
            if unit.mode is UnitMode.FEATURE and result.error is not None:
                raise result.error
            logger.error(
                "Error processing %s (%s stage): %s", unit.unit_key, result.stage, result.error
            )

    def run_files(self, root: Path) -> RunReport:
        """Document every eligible file under *root*, one record per file.

        Raises
        ------
        ScanError
            If *root* is not a directory.
        EmptyUnitError
            If no candidate files were found.
        """
        settings = self._context.settings
        report = RunReport(mode=UnitMode.FILE, root=str(root))

        logger.info("Scanning repository at: %s", root)
        files = scan(root, extensions_for(UnitMode.FILE))
        report.scanned = len(files)
        logger.info("Found %d code files", len(files))

        units = build_units(files, UnitMode.FILE, settings.size_ceiling_bytes)
        report.skipped = len(files) - len(units)

        if settings.max_units and len(units) > settings.max_units:
            logger.info(
                "Processing %d of %d units (max_units limit)", settings.max_units, len(units)
            )
            report.skipped += len(units) - settings.max_units
            units = units[: settings.max_units]

        self._run_units(units, report)
        return report

    def run_feature(self, root: Path, feature_name: str | None = None) -> RunReport:
        """Document the whole subtree at *root* as a single feature record.

        Raises
        ------
        CodescribeError
            Any scan, build, request, parse or sync failure.
        """
        settings = self._context.settings
        report = RunReport(mode=UnitMode.FEATURE, root=str(root))

        logger.info("Scanning feature at: %s", root)
        files = scan(root, extensions_for(UnitMode.FEATURE))
        report.scanned = len(files)
        logger.info("Found %d feature files", len(files))

        units = build_units(
            files,
            UnitMode.FEATURE,
            settings.feature_size_ceiling_bytes,
            unit_key=feature_name or root.resolve().name,
        )
        report.skipped = len(files) - len(units[0].members)

        self._run_units(units, report)
        return report
