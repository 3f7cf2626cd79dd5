from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

from .classify import RuleSet, classify
from .config import DATA_PATH

log = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    copied = "copied"
    planned = "planned"
    unmapped = "unmapped"
    exists = "exists"
    failed = "failed"


@dataclass(frozen=True)
class CopyOutcome:
    kind: OutcomeKind
    source: Path
    target: Path | None = None
    cause: str = ""


@dataclass(frozen=True)
class CopyReport:
    root: Path
    outcomes: tuple[CopyOutcome, ...]

    def by_kind(self, kind: OutcomeKind) -> tuple[CopyOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.kind == kind)

    def count(self, kind: OutcomeKind) -> int:
        return len(self.by_kind(kind))

    @property
    def ok(self) -> bool:
        return self.count(OutcomeKind.failed) == 0


class CopyError(RuntimeError):
    def __init__(self, message: str, reports: Iterable[CopyReport] = ()):
        super().__init__(message)
        self.reports = tuple(reports)


def _list_dir(directory: Path) -> list[Path]:
    return sorted(directory.iterdir(), key=lambda entry: entry.name)


def _copy_file(source: Path, target: Path) -> None:
    # Exclusive create: an existing destination is never truncated.
    with source.open("rb") as reader, target.open("xb") as writer:
        shutil.copyfileobj(reader, writer)


def _copy_one(
    source: Path,
    source_root: Path,
    working_dir: Path,
    rules: RuleSet,
    dry_run: bool,
    planned: set[Path],
) -> CopyOutcome:
    relative = source.relative_to(source_root)
    mapped = classify(relative, rules)
    if mapped is None:
        log.warning('Unable to map "%s" to the pack file. Skipped.', source)
        return CopyOutcome(kind=OutcomeKind.unmapped, source=source)

    target = working_dir / mapped
    try:
        taken = target.exists() or target in planned
    except OSError as error:
        log.warning('Unable to check "%s" (copying "%s"): %s', target, source, error)
        return CopyOutcome(kind=OutcomeKind.failed, source=source, target=target, cause=str(error))
    if taken:
        log.warning('File "%s" already exists. Skipped "%s".', target, source)
        return CopyOutcome(kind=OutcomeKind.exists, source=source, target=target)

    if dry_run:
        planned.add(target)
        log.debug('Would copy "%s" to "%s"', source, target)
        return CopyOutcome(kind=OutcomeKind.planned, source=source, target=target)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        log.warning('Unable to create directory for "%s" (copying "%s"): %s', target, source, error)
        return CopyOutcome(kind=OutcomeKind.failed, source=source, target=target, cause=str(error))

    try:
        _copy_file(source, target)
    except FileExistsError:
        log.warning('File "%s" already exists. Skipped "%s".', target, source)
        return CopyOutcome(kind=OutcomeKind.exists, source=source, target=target)
    except OSError as error:
        log.warning('Unable to copy "%s" to "%s": %s', source, target, error)
        return CopyOutcome(kind=OutcomeKind.failed, source=source, target=target, cause=str(error))

    log.debug('Copied "%s" to "%s"', source, target)
    return CopyOutcome(kind=OutcomeKind.copied, source=source, target=target)


def copy_tree(source_root: Path, working_dir: Path, rules: RuleSet, dry_run: bool = False) -> CopyReport:
    """Copy every mappable file under ``source_root`` into ``working_dir``.

    Only an unreadable ``source_root`` raises ``CopyError``. Unmapped files,
    existing destinations and per-file I/O failures are logged and recorded
    in the report, and the walk carries on.
    """
    try:
        top_entries = _list_dir(source_root)
    except OSError as error:
        raise CopyError(f'Failed to read directory "{source_root}": {error}') from error

    outcomes: list[CopyOutcome] = []
    planned: set[Path] = set()
    # Reversed so entries pop off the stack in sorted order.
    stack: list[Path] = list(reversed(top_entries))
    while stack:
        entry = stack.pop()
        try:
            is_dir = entry.is_dir()
        except OSError as error:
            log.warning('Unable to inspect "%s": %s', entry, error)
            outcomes.append(CopyOutcome(kind=OutcomeKind.failed, source=entry, cause=str(error)))
            continue
        if is_dir:
            try:
                children = _list_dir(entry)
            except OSError as error:
                log.warning('Failed to read directory "%s": %s', entry, error)
                outcomes.append(CopyOutcome(kind=OutcomeKind.failed, source=entry, cause=str(error)))
                continue
            stack.extend(reversed(children))
            continue
        outcomes.append(_copy_one(entry, source_root, working_dir, rules, dry_run, planned))

    return CopyReport(root=source_root, outcomes=tuple(outcomes))


def copy_trees_by_roots(
    working_dir: Path,
    rules: RuleSet,
    roots: Iterable[str],
    data_path: str = DATA_PATH,
    dry_run: bool = False,
) -> list[CopyReport]:
    """Walk each named root under ``<working_dir>/<data_path>`` in order.

    The first root that cannot be listed stops the run; the raised
    ``CopyError`` carries the reports of the roots finished before it.
    """
    reports: list[CopyReport] = []
    for root in roots:
        source_root = working_dir / data_path / root
        log.info('Copying files from "%s"', source_root)
        try:
            reports.append(copy_tree(source_root, working_dir, rules, dry_run=dry_run))
        except CopyError as error:
            raise CopyError(str(error), reports=reports) from error
    return reports
