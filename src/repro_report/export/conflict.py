"""Conflict resolution for artifact writes.

A conflict is a desired output path that already holds a file. Callers render
into a temp file first (see temp_sibling), then hand it to write_artifact(),
which decides between write / skip / backup / overwrite / prompt and moves the
content into place. The canonical path never holds a half-written file.

No locking: one writer per output path.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional
import errno
import logging
import os
import shutil
import tempfile

from ..errors import ExportError
from ..policies.export import ExportPolicy
from ..utils.hashing import file_md5
from .layout import artifact_path

log = logging.getLogger("repro_report.export")

TIME_TAG_FORMAT = "%Y%m%d%H%M"

Chooser = Callable[[str], str]


class Action(str, Enum):
    WRITTEN = "written"          # no conflict, new file
    OVERWRITTEN = "overwritten"  # replaced in place
    BACKED_UP = "backed_up"      # old file renamed aside, new file written
    SKIPPED = "skipped"          # existing file kept, new content discarded


@dataclass
class WriteOutcome:
    path: str
    action: Action
    backup_path: Optional[str] = None
    prompted_choice: Optional[str] = None  # only set when the operator was asked

    @property
    def written(self) -> bool:
        return self.action in (Action.WRITTEN, Action.OVERWRITTEN, Action.BACKED_UP)

    @property
    def skipped(self) -> bool:
        return self.action == Action.SKIPPED

    @property
    def backed_up(self) -> bool:
        return self.action == Action.BACKED_UP


def prompt_choice(path: str) -> str:
    """Ask on stdin. Anything unrecognised means skip."""
    msg = f"File exists:\n {path}\nChoose: [o]verwrite, [r]ename existing, [s]kip: "
    try:
        ans = input(msg).strip().lower()
    except EOFError:
        ans = ""
    if ans in ("o", "overwrite"):
        return "overwrite"
    if ans in ("r", "rename"):
        return "rename"
    return "skip"


def file_time_tag(path: str, fmt: str = TIME_TAG_FORMAT) -> str:
    """Timestamp tag from the file's mtime, falling back to ctime, then now."""
    try:
        st = os.stat(path)
    except OSError:
        return datetime.now().strftime(fmt)
    for ts in (getattr(st, "st_mtime", None), getattr(st, "st_ctime", None)):
        if ts is not None:
            return datetime.fromtimestamp(ts).strftime(fmt)
    return datetime.now().strftime(fmt)


def backup_path_for(final_path: str) -> str:
    """`<dir>/<stem>_<YYYYMMDDHHMM><ext>`; `_1`, `_2`... appended if that name is taken."""
    stem, ext = os.path.splitext(final_path)
    base = f"{stem}_{file_time_tag(final_path)}"
    candidate = base + ext
    n = 1
    while os.path.exists(candidate):
        candidate = f"{base}_{n}{ext}"
        n += 1
    return candidate


def temp_sibling(final_path: str) -> str:
    """Allocate an empty temp file next to final_path (same filesystem, so os.replace is atomic)."""
    dirname, basename = os.path.split(os.path.abspath(final_path))
    stem, ext = os.path.splitext(basename)
    fd, tmp = tempfile.mkstemp(prefix=f".{stem}_", suffix=ext + ".tmp", dir=dirname)
    os.close(fd)
    return tmp


def files_identical(a: str, b: str) -> bool:
    # Byte-level: formats embedding timestamps will always differ
    if os.path.getsize(a) != os.path.getsize(b):
        return False
    return file_md5(a) == file_md5(b)


def _discard(temp_path: str) -> None:
    try:
        os.remove(temp_path)
    except FileNotFoundError:
        pass


def _move_into_place(temp_path: str, final_path: str) -> None:
    try:
        os.replace(temp_path, final_path)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        # Different filesystem: stage a copy beside the target, then replace
        staged = temp_sibling(final_path)
        try:
            shutil.copyfile(temp_path, staged)
            os.replace(staged, final_path)
        except BaseException:
            _discard(staged)
            raise
        _discard(temp_path)


def _backup_then_write(temp_path: str, final_path: str) -> str:
    backup = backup_path_for(final_path)
    os.rename(final_path, backup)
    try:
        _move_into_place(temp_path, final_path)
    except BaseException:
        # Put the original back so the canonical path is never left empty
        os.rename(backup, final_path)
        raise
    return backup


def write_artifact(
    temp_path: str,
    final_path: str,
    policy: ExportPolicy,
    chooser: Optional[Chooser] = None,
) -> WriteOutcome:
    """Move a fully rendered temp file to final_path according to policy.

    Evaluation order on conflict: prompt -> compare -> overwrite -> backup -> skip.
    The temp file is always consumed (moved or deleted).
    """
    try:
        if not os.path.exists(final_path):
            _move_into_place(temp_path, final_path)
            log.info("Saved %s", final_path)
            return WriteOutcome(path=final_path, action=Action.WRITTEN)

        if policy.prompt:
            choice = (chooser or prompt_choice)(final_path)
            if choice == "overwrite":
                _move_into_place(temp_path, final_path)
                log.info("Overwrote %s (operator choice)", final_path)
                return WriteOutcome(final_path, Action.OVERWRITTEN, prompted_choice=choice)
            if choice == "rename":
                backup = _backup_then_write(temp_path, final_path)
                log.info("Renamed existing to %s, saved %s (operator choice)", backup, final_path)
                return WriteOutcome(final_path, Action.BACKED_UP, backup_path=backup, prompted_choice=choice)
            _discard(temp_path)
            log.info("Skipped %s (operator choice)", final_path)
            return WriteOutcome(final_path, Action.SKIPPED, prompted_choice="skip")

        if policy.compare and files_identical(temp_path, final_path):
            _discard(temp_path)
            log.info("Unchanged, kept %s", final_path)
            return WriteOutcome(final_path, Action.SKIPPED)

        if policy.overwrite:
            _move_into_place(temp_path, final_path)
            log.info("Overwrote %s", final_path)
            return WriteOutcome(final_path, Action.OVERWRITTEN)

        if policy.backup:
            backup = _backup_then_write(temp_path, final_path)
            log.info("Backed up existing to %s, saved %s", backup, final_path)
            return WriteOutcome(final_path, Action.BACKED_UP, backup_path=backup)

        _discard(temp_path)
        log.info("Exists, kept %s (no overwrite, no backup)", final_path)
        return WriteOutcome(final_path, Action.SKIPPED)
    finally:
        # Failed moves must not leave temp files behind either
        _discard(temp_path)


@dataclass
class ExportResult:
    """Per-call result of a multi-variant export (one entry per format)."""
    outcomes: List[WriteOutcome] = field(default_factory=list)
    errors: Dict[str, BaseException] = field(default_factory=dict)

    @property
    def paths(self) -> List[str]:
        """Canonical paths that now hold the requested content (written or retained)."""
        return [o.path for o in self.outcomes]

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> "ExportResult":
        if self.errors:
            raise ExportError(self.errors)
        return self


def export_variants(
    out_dir: str,
    name: str,
    formats: List[str],
    render: Callable[[str, str], None],
    policy: ExportPolicy,
    chooser: Optional[Chooser] = None,
) -> ExportResult:
    """Render each format into a temp file and resolve it against `<out_dir>/<name>.<fmt>`.

    `render(temp_path, fmt)` must fully write the temp file or raise. A failing
    variant is recorded and the remaining formats are still processed.
    """
    result = ExportResult()
    for fmt in formats:
        final_path = artifact_path(out_dir, name, fmt)
        try:
            tmp = temp_sibling(final_path)
            try:
                render(tmp, fmt)
            except BaseException:
                _discard(tmp)
                raise
            result.outcomes.append(write_artifact(tmp, final_path, policy, chooser))
        except Exception as exc:
            log.error("Failed to save %s: %s", final_path, exc)
            result.errors[final_path] = exc
    return result
