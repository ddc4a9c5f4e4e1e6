# backend.py -- Command surface consumed from a rebase backend
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

"""Protocol for the primitives a rebase backend exposes.

The planner and the session never touch the repository directly; all reads
and writes go through an object implementing :class:`RebaseBackend`.
Implementations report failures by raising
:class:`regraft.errors.BackendError`.
"""

from collections.abc import Sequence
from typing import Optional, Protocol

from .objects import (
    CommitInfo,
    ExecutionResult,
    FileEntry,
    RebaseStatus,
    StatusEntry,
    TodoEntry,
)


class RebaseBackend(Protocol):
    """Protocol for executing interactive rebases."""

    def list_rebaseable_commits(self, base: Optional[str] = None) -> list[CommitInfo]:
        """List the commits above ``base``, oldest first.

        Args:
          base: Ref name, relative expression or hash. None lets the backend
            pick a default range.
        """
        ...

    def start_rebase(self, base: str, entries: Sequence[TodoEntry]) -> ExecutionResult:
        """Run ``entries`` (oldest first) on top of ``base``."""
        ...

    def continue_rebase(self) -> ExecutionResult:
        """Resume a paused rebase."""
        ...

    def skip_rebase(self) -> ExecutionResult:
        """Drop the commit the rebase stopped at and resume."""
        ...

    def amend_paused_commit(
        self, message: Optional[str] = None, author: Optional[str] = None
    ) -> None:
        """Rewrite the commit the rebase is paused at.

        Args:
          message: New message, None to keep the recorded one
          author: New author as ``Name <email>``, None to keep it
        """
        ...

    def abort_rebase(self) -> None:
        """Abort the rebase and restore the original branch."""
        ...

    def rebase_status(self) -> RebaseStatus:
        """Describe the rebase currently in progress, if any."""
        ...

    def working_tree_status(self) -> list[StatusEntry]:
        """List changed paths in the working tree."""
        ...

    def stage_paths(self, paths: Sequence[str]) -> None:
        """Add ``paths`` to the index."""
        ...

    def unstage_paths(self, paths: Sequence[str]) -> None:
        """Reset ``paths`` in the index to the paused commit."""
        ...

    def files_changed_in_paused_commit(self) -> list[FileEntry]:
        """List the files the paused commit touches."""
        ...

    def read_file(self, path: str) -> str:
        """Read a working tree file."""
        ...

    def write_file(self, path: str, content: str) -> None:
        """Replace the contents of a working tree file."""
        ...

    def restore_file(self, path: str) -> None:
        """Restore a file to the version recorded in the paused commit."""
        ...

    def rename_file(self, old_path: str, new_path: str) -> None:
        """Rename a working tree file and stage the rename."""
        ...

    def delete_file(self, path: str) -> None:
        """Delete a working tree file and stage the deletion."""
        ...
