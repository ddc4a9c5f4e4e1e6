# objects.py -- Data model for interactive rebase plans
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

"""Data model shared by the planner, the session and the backends.

Commits are described by immutable :class:`CommitInfo` snapshots. A compiled
plan is a list of :class:`TodoEntry` objects, oldest first. Backends answer
every start/continue request with one of the :data:`ExecutionResult`
variants.
"""

__all__ = [
    "Action",
    "CommitInfo",
    "Completed",
    "Conflicts",
    "ExecutionResult",
    "Failed",
    "FileEntry",
    "RebaseStatus",
    "StatusEntry",
    "StoppedAtEdit",
    "TodoEntry",
    "format_author",
]

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Action(Enum):
    """Enum for rebase todo actions."""

    PICK = "pick"
    REWORD = "reword"
    EDIT = "edit"
    SQUASH = "squash"
    FIXUP = "fixup"
    DROP = "drop"

    @classmethod
    def from_string(cls, s: str) -> "Action":
        """Parse an action from its string representation.

        Args:
            s: Action string (can be abbreviated)

        Returns:
            Action enum value

        Raises:
            ValueError: If action is not recognized
        """
        s = s.strip().lower()
        abbreviations = {
            "p": cls.PICK,
            "r": cls.REWORD,
            "e": cls.EDIT,
            "s": cls.SQUASH,
            "f": cls.FIXUP,
            "d": cls.DROP,
        }

        if s in abbreviations:
            return abbreviations[s]

        try:
            return cls(s)
        except ValueError:
            raise ValueError(f"Unknown rebase action: {s}")

    @property
    def folds(self) -> bool:
        """Whether this action merges the commit into an older one."""
        return self in (Action.SQUASH, Action.FIXUP)

    @property
    def description(self) -> str:
        """Short human readable description of the action."""
        return _ACTION_DESCRIPTIONS[self]


_ACTION_DESCRIPTIONS = {
    Action.PICK: "Use commit as-is",
    Action.REWORD: "Change commit message / author",
    Action.EDIT: "Stop to amend files, message, or author",
    Action.SQUASH: "Fold into the nearest older non-squash/fixup commit",
    Action.FIXUP: (
        "Fold into the nearest older non-squash/fixup commit (discard message)"
    ),
    Action.DROP: "Remove this commit entirely",
}


def format_author(name: str, email: str) -> str:
    """Format an identity the way git expects it for ``--author``."""
    return f"{name} <{email}>"


@dataclass(frozen=True)
class CommitInfo:
    """Snapshot of one existing commit, taken when the range was loaded."""

    hash: str
    short_hash: str
    subject: str
    author_name: str
    author_email: str
    is_pushed: bool = False
    body: str = ""
    author_date: str = ""

    @property
    def author(self) -> str:
        return format_author(self.author_name, self.author_email)


@dataclass
class TodoEntry:
    """A single compiled step, as submitted to a backend."""

    action: Action
    hash: str
    short_hash: Optional[str] = None
    original_message: Optional[str] = None
    new_message: Optional[str] = None
    new_author: Optional[str] = None

    def to_string(self) -> str:
        """Convert to git-rebase-todo format string.

        Returns:
            String representation for todo file
        """
        parts = [self.action.value, self.hash]
        if self.original_message:
            parts.append(self.original_message)
        return " ".join(parts)


@dataclass(frozen=True)
class Completed:
    """The run finished and the branch points at the rewritten history."""

    message: str = "Rebase completed successfully."


@dataclass(frozen=True)
class StoppedAtEdit:
    """The run paused after applying a commit marked ``edit``."""

    commit_hash: Optional[str]
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    current_step: Optional[int] = None
    total_steps: Optional[int] = None


@dataclass(frozen=True)
class Conflicts:
    """The run stopped because a commit did not apply cleanly."""

    files: list[str]
    commit_hash: Optional[str] = None
    message: str = "Rebase stopped due to conflicts."
    current_step: Optional[int] = None
    total_steps: Optional[int] = None


@dataclass(frozen=True)
class Failed:
    """The backend reported an outcome it could not carry on from."""

    message: str


ExecutionResult = Union[Completed, StoppedAtEdit, Conflicts, Failed]


@dataclass(frozen=True)
class StatusEntry:
    """One changed path in the working tree.

    ``status`` is the two letter porcelain code: the first letter describes
    the index, the second the working tree.
    """

    status: str
    path: str
    old_path: Optional[str] = None

    @property
    def staged(self) -> bool:
        return self.status[:1] not in (" ", "?", "!", "")

    @property
    def unstaged(self) -> bool:
        return self.status[1:2] not in (" ", "")

    @property
    def untracked(self) -> bool:
        return self.status == "??"


@dataclass(frozen=True)
class FileEntry:
    """A file touched by the commit a rebase is paused at."""

    path: str
    status: str
    old_path: Optional[str] = None


@dataclass(frozen=True)
class RebaseStatus:
    """Snapshot of the sequencer state, used to attach to a running rebase."""

    in_progress: bool
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    stopped_commit_hash: Optional[str] = None
    stopped_commit_message: Optional[str] = None
    stopped_commit_author_name: str = ""
    stopped_commit_author_email: str = ""
    conflict_files: list[str] = field(default_factory=list)
