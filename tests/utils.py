# utils.py -- Test utilities for regraft
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

"""Utility functions common to regraft tests."""

import itertools
from collections import deque
from collections.abc import Sequence
from typing import Optional

from dulwich.objects import Blob, Commit, Tree

from regraft.errors import BackendError
from regraft.objects import (
    CommitInfo,
    Completed,
    ExecutionResult,
    FileEntry,
    RebaseStatus,
    StatusEntry,
    TodoEntry,
)


def make_commit(
    hash: str,
    subject: Optional[str] = None,
    author_name: str = "Test Author",
    author_email: str = "test@example.com",
    is_pushed: bool = False,
    **attrs,
) -> CommitInfo:
    """Make a CommitInfo with sensible defaults.

    Args:
      hash: Commit hash; padded with zeros to 40 characters
      subject: Subject line, defaults to ``"Commit <hash>"``
    """
    full = hash.ljust(40, "0")
    return CommitInfo(
        hash=full,
        short_hash=full[:7],
        subject=subject if subject is not None else f"Commit {hash}",
        author_name=author_name,
        author_email=author_email,
        is_pushed=is_pushed,
        **attrs,
    )


def make_commits(*hashes: str, **attrs) -> list[CommitInfo]:
    """Make commits in the order given (newest first by convention)."""
    return [make_commit(h, **attrs) for h in hashes]


class ScriptedBackend:
    """In-memory backend that replays queued results.

    Every call is recorded in ``calls`` as ``(name, args)``. Results for
    start/continue/skip are taken from ``results`` in order; an exception
    instance in the queue is raised instead of returned. ``failures`` maps
    method names to exceptions raised on every call to that method.
    """

    def __init__(
        self,
        commits: Sequence[CommitInfo] = (),
        results: Sequence = (),
    ) -> None:
        # Stored oldest first, the way backends list them.
        self.commits = list(commits)
        self.results: deque = deque(results)
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.status: list[StatusEntry] = []
        self.files: list[FileEntry] = []
        self.contents: dict[str, str] = {}
        self.rebase: RebaseStatus = RebaseStatus(in_progress=False)
        self.started: Optional[tuple[str, list[TodoEntry]]] = None

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _next_result(self) -> ExecutionResult:
        if not self.results:
            return Completed()
        result = self.results.popleft()
        if isinstance(result, BaseException):
            raise result
        return result

    def list_rebaseable_commits(self, base=None):
        self._record("list_rebaseable_commits", base)
        return list(self.commits)

    def start_rebase(self, base, entries):
        self._record("start_rebase", base, list(entries))
        self.started = (base, list(entries))
        return self._next_result()

    def continue_rebase(self):
        self._record("continue_rebase")
        return self._next_result()

    def skip_rebase(self):
        self._record("skip_rebase")
        return self._next_result()

    def amend_paused_commit(self, message=None, author=None):
        self._record("amend_paused_commit", message, author)

    def abort_rebase(self):
        self._record("abort_rebase")

    def rebase_status(self):
        self._record("rebase_status")
        return self.rebase

    def working_tree_status(self):
        self._record("working_tree_status")
        return list(self.status)

    def stage_paths(self, paths):
        self._record("stage_paths", list(paths))

    def unstage_paths(self, paths):
        self._record("unstage_paths", list(paths))

    def files_changed_in_paused_commit(self):
        self._record("files_changed_in_paused_commit")
        return list(self.files)

    def read_file(self, path):
        self._record("read_file", path)
        try:
            return self.contents[path]
        except KeyError:
            raise BackendError(f"{path}: no such file")

    def write_file(self, path, content):
        self._record("write_file", path, content)
        self.contents[path] = content

    def restore_file(self, path):
        self._record("restore_file", path)

    def rename_file(self, old_path, new_path):
        self._record("rename_file", old_path, new_path)
        if old_path in self.contents:
            self.contents[new_path] = self.contents.pop(old_path)

    def delete_file(self, path):
        self._record("delete_file", path)
        self.contents.pop(path, None)


_commit_times = itertools.count(1700000000, 60)


def add_commit(
    repo,
    message: bytes,
    files: Optional[dict[bytes, bytes]] = None,
    parents: Sequence[bytes] = (),
    author: bytes = b"Test Author <test@example.com>",
) -> Commit:
    """Add a commit with a flat tree to ``repo``'s object store.

    Commit times increase with every call, so walkers see commits in the
    order they were created.
    """
    store = repo.object_store
    tree = Tree()
    for path, content in (files or {}).items():
        blob = Blob.from_string(content)
        store.add_object(blob)
        tree.add(path, 0o100644, blob.id)
    store.add_object(tree)
    commit = Commit()
    commit.tree = tree.id
    commit.parents = list(parents)
    commit.author = author
    commit.committer = author
    commit.author_time = commit.commit_time = next(_commit_times)
    commit.author_timezone = commit.commit_timezone = 7200
    commit.encoding = b"UTF-8"
    commit.message = message
    store.add_object(commit)
    return commit
