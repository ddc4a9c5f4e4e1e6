# session.py -- Interactive rebase execution state machine
# Copyright (C) 2026 Regraft contributors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# Regraft is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Driving an interactive rebase from plan to finished history.

A :class:`RebaseSession` owns one plan and the phase of its run::

    planning -> running -> completed
                        -> stopped_at_edit -> running (amend & continue, skip)
                        -> conflicts       -> running (continue, skip)
                        -> error

Abort leads back to ``planning`` from any phase but ``completed`` and reloads
the commit range. A front end holds one session per open workflow.
"""

__all__ = [
    "EditStop",
    "InvalidPhase",
    "Phase",
    "RebaseSession",
    "SessionBusy",
]

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from typing_extensions import assert_never

from .backend import RebaseBackend
from .config import RegraftConfig
from .errors import BackendError, RegraftError
from .loader import CommitRange, LoadError, effective_base, load_commit_range
from .log_utils import getLogger
from .objects import (
    Completed,
    Conflicts,
    ExecutionResult,
    Failed,
    FileEntry,
    StatusEntry,
    StoppedAtEdit,
    format_author,
)
from .planner import Plan, ValidationError
from .safety import SafetyWarning, compute_warnings
from .view import PlanView

logger = getLogger(__name__)

OPERATION = "rebase"


class Phase(Enum):
    """Phase of a rebase run."""

    PLANNING = "planning"
    RUNNING = "running"
    STOPPED_AT_EDIT = "stopped_at_edit"
    CONFLICTS = "conflicts"
    COMPLETED = "completed"
    ERROR = "error"


_ABORTABLE = (Phase.STOPPED_AT_EDIT, Phase.CONFLICTS, Phase.RUNNING, Phase.ERROR)


class SessionBusy(RegraftError):
    """Raised when a backend call is already outstanding."""

    def __init__(self) -> None:
        super().__init__("Another rebase operation is still running.")


class InvalidPhase(RegraftError):
    """Raised when an operation is not available in the current phase."""

    def __init__(self, operation: str, phase: Phase) -> None:
        self.operation = operation
        self.phase = phase
        super().__init__(f"{operation} is not possible while {phase.value}")


@dataclass
class EditStop:
    """State of the edit-stop sub-workflow.

    ``message``, ``author_name`` and ``author_email`` are seeded from the
    paused commit and edited by the user; empty author fields keep the
    recorded author.
    """

    commit_hash: Optional[str]
    original_message: str
    message: str
    author_name: str
    author_email: str
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    status: list[StatusEntry] = field(default_factory=list)
    files: list[FileEntry] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: StoppedAtEdit) -> "EditStop":
        return cls(
            commit_hash=result.commit_hash,
            original_message=result.message,
            message=result.message,
            author_name=result.author_name,
            author_email=result.author_email,
            current_step=result.current_step,
            total_steps=result.total_steps,
        )

    @property
    def amend_message(self) -> Optional[str]:
        return self.message.strip() or None

    @property
    def amend_author(self) -> Optional[str]:
        name = self.author_name.strip()
        email = self.author_email.strip()
        if name and email:
            return format_author(name, email)
        return None


class RebaseSession:
    """One interactive rebase workflow: plan, confirm, run, finish."""

    def __init__(
        self,
        backend: RebaseBackend,
        base: Optional[str] = None,
        config: Optional[RegraftConfig] = None,
        on_conflicts: Optional[Callable[[list[str], str], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize a session.

        Args:
          backend: Backend executing the rebase primitives
          base: Base reference to plan against, None for the default range
          config: Settings; defaults apply when omitted
          on_conflicts: Called with the conflicted paths and the operation
            name (``"rebase"``) whenever a run stops on conflicts
          on_complete: Called when a completed run is acknowledged, so the
            caller can refresh its view of the repository
        """
        self.backend = backend
        self.config = config if config is not None else RegraftConfig()
        self.on_conflicts = on_conflicts
        self.on_complete = on_complete
        self.base = base
        self.include_pushed = self.config.include_pushed
        self._lock = threading.Lock()
        self._reset()

    def _reset(self) -> None:
        self.phase = Phase.PLANNING
        self.error = ""
        self.commit_range: Optional[CommitRange] = None
        self.plan = Plan([], base=self.base)
        self.view = PlanView(self.plan)
        self.pending_warnings: list[SafetyWarning] = []
        self._reset_run_state()

    def _reset_run_state(self) -> None:
        self.result: Optional[ExecutionResult] = None
        self.edit_stop: Optional[EditStop] = None
        self.conflict_files: list[str] = []
        self.completion_message = ""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} phase={self.phase.value} plan={self.plan!r}>"

    @property
    def busy(self) -> bool:
        """Whether a backend call is outstanding."""
        return self._lock.locked()

    @property
    def awaiting_confirmation(self) -> bool:
        return bool(self.pending_warnings)

    @contextmanager
    def _busy(self, wait: bool = False) -> Iterator[None]:
        if not self._lock.acquire(blocking=wait):
            raise SessionBusy()
        try:
            yield
        finally:
            self._lock.release()

    def _require(self, operation: str, *phases: Phase) -> None:
        if self.phase not in phases:
            raise InvalidPhase(operation, self.phase)

    def _set_phase(self, phase: Phase) -> None:
        if phase is not self.phase:
            logger.debug("%s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _fail(self, message: str) -> None:
        logger.debug("rebase failed: %s", message)
        self.error = message
        self._set_phase(Phase.ERROR)

    # Planning

    def load(self, base: Optional[str] = None) -> bool:
        """(Re)load the commit range and build a fresh plan.

        Args:
          base: New base reference; None keeps the current one and an empty
            string selects the default range

        Returns:
          True on success. On failure the message is in ``error`` and the
          previous plan is left untouched.
        """
        self._require("load", Phase.PLANNING)
        with self._busy():
            return self._load(base)

    def _load(self, base: Optional[str] = None) -> bool:
        if base is not None:
            self.base = base.strip() or None
        try:
            commit_range = load_commit_range(
                self.backend, self.base, self.include_pushed
            )
        except LoadError as e:
            logger.warning("loading commits failed: %s", e)
            self.error = str(e)
            return False
        self.error = ""
        self.commit_range = commit_range
        self.include_pushed = commit_range.include_pushed
        self._rebuild_plan()
        return True

    def _rebuild_plan(self) -> None:
        assert self.commit_range is not None
        self.plan = self.commit_range.plan()
        self.view = PlanView(self.plan)
        self.pending_warnings = []

    def set_include_pushed(self, include_pushed: bool) -> None:
        """Show or hide published commits; rebuilds the plan."""
        self._require("set_include_pushed", Phase.PLANNING)
        self.include_pushed = include_pushed
        if self.commit_range is not None:
            self.commit_range.set_include_pushed(include_pushed)
            self.include_pushed = self.commit_range.include_pushed
            self._rebuild_plan()

    def warnings(self) -> list[SafetyWarning]:
        """Pre-flight warnings for the current plan."""
        return compute_warnings(self.plan, self.config.step_warning_threshold)

    def start(self) -> Phase:
        """Start the run, or ask for confirmation first.

        An invalid plan is reported in ``error`` without asking anything. If
        the plan triggers safety warnings they are stored in
        ``pending_warnings`` and the session stays in ``planning`` until
        :meth:`confirm` or :meth:`decline` is called.
        """
        self._require("start", Phase.PLANNING)
        if self._prepare() is None:
            return self.phase
        warnings = self.warnings()
        if warnings:
            self.pending_warnings = warnings
            return self.phase
        return self._execute()

    def confirm(self) -> Phase:
        """Accept the pending warnings and start the run."""
        self._require("confirm", Phase.PLANNING)
        if not self.pending_warnings:
            raise InvalidPhase("confirm", self.phase)
        self.pending_warnings = []
        return self._execute()

    def decline(self) -> None:
        """Drop the pending warnings; the plan is left as it was."""
        self.pending_warnings = []

    def _prepare(self) -> Optional[str]:
        """Validate the plan and work out the base to submit it against.

        Returns: The base, or None with the problem stored in ``error``
        """
        if self.commit_range is not None:
            requested_base = self.commit_range.rebase_base
        else:
            requested_base = self.base
        try:
            base = effective_base(requested_base, self.plan)
            self.plan.validate()
        except ValidationError as e:
            self.error = str(e)
            return None
        self.error = ""
        return base

    def _execute(self) -> Phase:
        if self.busy:
            raise SessionBusy()
        base = self._prepare()
        if base is None:
            return self.phase
        entries = self.plan.compile()
        logger.debug("starting rebase onto %s with %d entries", base, len(entries))
        return self._run(lambda: self.backend.start_rebase(base, entries))

    # Running

    def _run(
        self,
        operation: Callable[[], ExecutionResult],
        before: Optional[Callable[[], None]] = None,
    ) -> Phase:
        with self._busy():
            self.error = ""
            self._set_phase(Phase.RUNNING)
            try:
                if before is not None:
                    before()
                result = operation()
            except (BackendError, OSError) as e:
                self._fail(str(e))
            else:
                self._dispatch(result)
        if self.phase is Phase.CONFLICTS and self.on_conflicts is not None:
            self.on_conflicts(list(self.conflict_files), OPERATION)
        return self.phase

    def _dispatch(self, result: ExecutionResult) -> None:
        self.result = result
        match result:
            case Completed(message=message):
                self.edit_stop = None
                self.conflict_files = []
                self.completion_message = message
                self._set_phase(Phase.COMPLETED)
            case StoppedAtEdit():
                self.edit_stop = EditStop.from_result(result)
                self.conflict_files = []
                self._set_phase(Phase.STOPPED_AT_EDIT)
                self._refresh_edit_stop()
            case Conflicts(files=files):
                self.edit_stop = None
                self.conflict_files = list(files)
                self._set_phase(Phase.CONFLICTS)
            case Failed(message=message):
                self._fail(message)
            case _:
                assert_never(result)

    def amend_and_continue(self) -> Phase:
        """Apply the edited message/author to the paused commit, then go on."""
        self._require("amend_and_continue", Phase.STOPPED_AT_EDIT)
        assert self.edit_stop is not None
        message = self.edit_stop.amend_message
        author = self.edit_stop.amend_author
        return self._run(
            self.backend.continue_rebase,
            lambda: self.backend.amend_paused_commit(message, author),
        )

    def skip(self) -> Phase:
        """Continue from an edit stop without amending."""
        self._require("skip", Phase.STOPPED_AT_EDIT)
        return self._run(self.backend.continue_rebase)

    def continue_after_conflicts(self) -> Phase:
        """Continue once the conflicts have been resolved and staged."""
        self._require("continue_after_conflicts", Phase.CONFLICTS)
        return self._run(self.backend.continue_rebase)

    def skip_conflicted_commit(self) -> Phase:
        """Drop the commit that conflicted and continue."""
        self._require("skip_conflicted_commit", Phase.CONFLICTS)
        return self._run(self.backend.skip_rebase)

    def abort(self) -> Phase:
        """Abort the run, restore the original branch and reload the plan.

        An abort requested while another call is outstanding runs once that
        call has returned.
        """
        self._require("abort", *_ABORTABLE)
        with self._busy(wait=True):
            if self.phase not in _ABORTABLE:
                logger.debug("nothing to abort once %s", self.phase.value)
                return self.phase
            abort_error = ""
            try:
                self.backend.abort_rebase()
            except (BackendError, OSError) as e:
                logger.warning("abort failed: %s", e)
                abort_error = str(e)
            self._reset_run_state()
            self._set_phase(Phase.PLANNING)
            self._load()
            if abort_error:
                self.error = abort_error
        return self.phase

    def acknowledge(self) -> Phase:
        """Acknowledge a completed run and start over with a fresh plan."""
        self._require("acknowledge", Phase.COMPLETED)
        if self.on_complete is not None:
            self.on_complete()
        with self._busy():
            self._reset_run_state()
            self._set_phase(Phase.PLANNING)
            self._load()
        return self.phase

    def close(self) -> None:
        """Discard all in-memory state.

        A rebase paused in the backend stays paused; :meth:`resume` can pick
        it up again.
        """
        with self._busy():
            self._reset()

    def resume(self) -> Phase:
        """Attach to a rebase that is already in progress in the backend."""
        self._require("resume", Phase.PLANNING)
        with self._busy():
            try:
                status = self.backend.rebase_status()
            except (BackendError, OSError) as e:
                self.error = str(e)
                return self.phase
            if not status.in_progress:
                return self.phase
            if status.conflict_files:
                self._dispatch(
                    Conflicts(
                        files=list(status.conflict_files),
                        commit_hash=status.stopped_commit_hash,
                        current_step=status.current_step,
                        total_steps=status.total_steps,
                    )
                )
            else:
                self._dispatch(
                    StoppedAtEdit(
                        commit_hash=status.stopped_commit_hash,
                        message=status.stopped_commit_message or "",
                        author_name=status.stopped_commit_author_name,
                        author_email=status.stopped_commit_author_email,
                        current_step=status.current_step,
                        total_steps=status.total_steps,
                    )
                )
        if self.phase is Phase.CONFLICTS and self.on_conflicts is not None:
            self.on_conflicts(list(self.conflict_files), OPERATION)
        return self.phase

    # Edit stop

    def _refresh_edit_stop(self) -> None:
        stop = self.edit_stop
        if stop is None:
            return
        try:
            stop.status = self.backend.working_tree_status()
        except (BackendError, OSError) as e:
            logger.warning("reading working tree status failed: %s", e)
            stop.status = []
        try:
            stop.files = self.backend.files_changed_in_paused_commit()
        except (BackendError, OSError) as e:
            logger.warning("listing files of paused commit failed: %s", e)
            stop.files = []

    def refresh(self) -> None:
        """Re-read working tree status and the paused commit's files."""
        self._require("refresh", Phase.STOPPED_AT_EDIT)
        with self._busy():
            self._refresh_edit_stop()

    def _file_op(self, operation: str, call: Callable[[], None]) -> bool:
        # Failures are reported through the return value only; the workflow
        # carries on and the refreshed file list shows what happened.
        self._require(operation, Phase.STOPPED_AT_EDIT)
        with self._busy():
            try:
                call()
            except (BackendError, OSError) as e:
                logger.warning("%s failed: %s", operation, e)
                return False
            self._refresh_edit_stop()
        return True

    def stage(self, *paths: str) -> bool:
        return self._file_op("stage", lambda: self.backend.stage_paths(list(paths)))

    def unstage(self, *paths: str) -> bool:
        return self._file_op(
            "unstage", lambda: self.backend.unstage_paths(list(paths))
        )

    def read_file(self, path: str) -> Optional[str]:
        """Read a file of the paused commit; None if it cannot be read."""
        self._require("read_file", Phase.STOPPED_AT_EDIT)
        try:
            return self.backend.read_file(path)
        except (BackendError, OSError) as e:
            logger.warning("reading %s failed: %s", path, e)
            return None

    def save_file(self, path: str, content: str) -> bool:
        """Write a file and stage it."""

        def write_and_stage() -> None:
            self.backend.write_file(path, content)
            self.backend.stage_paths([path])

        return self._file_op("save_file", write_and_stage)

    def discard_file(self, path: str) -> bool:
        """Restore a file to the version recorded in the paused commit."""
        return self._file_op("discard_file", lambda: self.backend.restore_file(path))

    def rename_file(self, old_path: str, new_path: str) -> bool:
        new_path = new_path.strip()
        if not new_path or new_path == old_path:
            return False
        return self._file_op(
            "rename_file", lambda: self.backend.rename_file(old_path, new_path)
        )

    def delete_file(self, path: str) -> bool:
        return self._file_op("delete_file", lambda: self.backend.delete_file(path))
