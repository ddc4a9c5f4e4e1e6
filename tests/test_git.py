# test_git.py -- tests for regraft.git
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

"""Tests for regraft.git that do not need a git executable."""

import os
import shutil
import tempfile

from dulwich.repo import Repo

from regraft.errors import BackendError, UnsafePath
from regraft.git import (
    GitBackend,
    GitCommandError,
    check_path,
    commit_info,
    parse_porcelain_status,
    todo_lines,
)
from regraft.objects import Action, FileEntry, StatusEntry, TodoEntry

from . import TestCase
from .utils import add_commit


class TodoLinesTests(TestCase):
    def test_translation(self) -> None:
        entries = [
            TodoEntry(Action.PICK, "a1", original_message="First"),
            TodoEntry(Action.SQUASH, "b2", original_message="Second"),
            TodoEntry(Action.FIXUP, "c3", original_message="Third"),
            TodoEntry(Action.DROP, "d4", original_message="Fourth"),
            TodoEntry(Action.EDIT, "e5", original_message="Fifth"),
        ]
        lines, overrides = todo_lines(entries)
        self.assertEqual(
            [
                "pick a1 First",
                "fixup b2 Second",
                "fixup c3 Third",
                "edit e5 Fifth",
            ],
            lines,
        )
        self.assertEqual({}, overrides)

    def test_reword_becomes_edit_with_override(self) -> None:
        lines, overrides = todo_lines(
            [TodoEntry(Action.REWORD, "a1", original_message="Old", new_message="New")]
        )
        self.assertEqual(["edit a1 Old"], lines)
        self.assertEqual(
            {"a1": {"message": "New", "author": None, "stop": False}}, overrides
        )

    def test_edit_with_override_stops(self) -> None:
        _, overrides = todo_lines(
            [TodoEntry(Action.EDIT, "a1", new_author="A <a@example.com>")]
        )
        self.assertTrue(overrides["a1"]["stop"])

    def test_pick_with_author_becomes_edit(self) -> None:
        lines, overrides = todo_lines(
            [TodoEntry(Action.PICK, "a1", new_author="A <a@example.com>")]
        )
        self.assertEqual(["edit a1"], lines)
        self.assertFalse(overrides["a1"]["stop"])

    def test_all_dropped(self) -> None:
        self.assertEqual(([], {}), todo_lines([TodoEntry(Action.DROP, "a1")]))


class ParsePorcelainStatusTests(TestCase):
    def test_parse(self) -> None:
        output = " M modified.txt\0A  added.txt\0R  new.txt\0old.txt\0?? untracked.txt\0"
        self.assertEqual(
            [
                StatusEntry(" M", "modified.txt"),
                StatusEntry("A ", "added.txt"),
                StatusEntry("R ", "new.txt", "old.txt"),
                StatusEntry("??", "untracked.txt"),
            ],
            parse_porcelain_status(output),
        )

    def test_empty(self) -> None:
        self.assertEqual([], parse_porcelain_status(""))


class CheckPathTests(TestCase):
    def test_relative(self) -> None:
        self.assertEqual("dir/file.txt", check_path("dir/file.txt"))

    def test_rejected(self) -> None:
        for path in ("", "/etc/passwd", "../outside", "dir/../../outside", "a\\..\\b"):
            self.assertRaises(UnsafePath, check_path, path)


class GitCommandErrorTests(TestCase):
    def test_message(self) -> None:
        e = GitCommandError(["git", "rebase"], 1, "fatal: bad\n")
        self.assertEqual("fatal: bad", str(e))
        self.assertIsInstance(e, BackendError)
        e = GitCommandError(["git", "rebase"], 128, "")
        self.assertEqual("git rebase exited with status 128", str(e))


class GitBackendRepoTests(TestCase):
    """Tests for the parts of GitBackend implemented with dulwich."""

    def setUp(self) -> None:
        super().setUp()
        self.test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.test_dir)
        self.repo = Repo.init(self.test_dir)
        self.addCleanup(self.repo.close)
        self.repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")
        self.c1 = add_commit(self.repo, b"Initial\n", {b"a.txt": b"a\n"})
        self.c2 = add_commit(
            self.repo,
            b"Second\n\nWith a body.\n",
            {b"a.txt": b"a\n", b"b.txt": b"b\n"},
            [self.c1.id],
        )
        self.c3 = add_commit(
            self.repo,
            b"Third\n",
            {b"a.txt": b"changed\n", b"c.txt": b"b\n"},
            [self.c2.id],
            author=b"Jane Doe <jane@example.com>",
        )
        self.repo.refs[b"refs/heads/main"] = self.c3.id
        self.backend = GitBackend(self.test_dir)

    def hashes(self, commits) -> list[bytes]:
        return [c.hash.encode("ascii") for c in commits]

    def test_commit_info(self) -> None:
        info = commit_info(self.c2)
        self.assertEqual(self.c2.id.decode("ascii"), info.hash)
        self.assertEqual(info.hash[:7], info.short_hash)
        self.assertEqual("Second", info.subject)
        self.assertEqual("With a body.", info.body)
        self.assertEqual("Test Author", info.author_name)
        self.assertEqual("test@example.com", info.author_email)
        self.assertTrue(info.author_date.endswith("+02:00"))
        self.assertFalse(info.is_pushed)

    def test_list_whole_history(self) -> None:
        commits = self.backend.list_rebaseable_commits()
        self.assertEqual([self.c1.id, self.c2.id, self.c3.id], self.hashes(commits))
        self.assertEqual("Jane Doe", commits[2].author_name)

    def test_list_above_base(self) -> None:
        commits = self.backend.list_rebaseable_commits("HEAD~2")
        self.assertEqual([self.c2.id, self.c3.id], self.hashes(commits))
        commits = self.backend.list_rebaseable_commits(self.c2.id.decode("ascii"))
        self.assertEqual([self.c3.id], self.hashes(commits))

    def test_unknown_base(self) -> None:
        self.assertRaises(
            BackendError, self.backend.list_rebaseable_commits, "no-such-branch"
        )

    def test_upstream_is_default_base(self) -> None:
        self.repo.refs[b"refs/remotes/origin/main"] = self.c1.id
        config = self.repo.get_config()
        config.set((b"branch", b"main"), b"remote", b"origin")
        config.set((b"branch", b"main"), b"merge", b"refs/heads/main")
        config.write_to_path()
        commits = self.backend.list_rebaseable_commits()
        self.assertEqual([self.c2.id, self.c3.id], self.hashes(commits))

    def test_pushed(self) -> None:
        self.repo.refs[b"refs/remotes/origin/main"] = self.c2.id
        commits = self.backend.list_rebaseable_commits()
        self.assertEqual([True, True, False], [c.is_pushed for c in commits])

    def test_merges_excluded(self) -> None:
        side = add_commit(self.repo, b"Side\n", {b"s.txt": b"s\n"}, [self.c1.id])
        merge = add_commit(
            self.repo, b"Merge\n", {b"a.txt": b"a\n"}, [self.c3.id, side.id]
        )
        self.repo.refs[b"refs/heads/main"] = merge.id
        commits = self.backend.list_rebaseable_commits(self.c1.id.decode("ascii"))
        self.assertNotIn(merge.id, self.hashes(commits))
        self.assertEqual({self.c2.id, self.c3.id, side.id}, set(self.hashes(commits)))

    def test_unborn_branch(self) -> None:
        self.repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/unborn")
        self.assertEqual([], self.backend.list_rebaseable_commits())

    def test_files_changed_in_paused_commit(self) -> None:
        self.assertEqual(
            [FileEntry("a.txt", "M"), FileEntry("c.txt", "R", old_path="b.txt")],
            sorted(self.backend.files_changed_in_paused_commit(), key=lambda e: e.path),
        )

    def test_files_changed_in_root_commit(self) -> None:
        self.repo.refs[b"refs/heads/main"] = self.c1.id
        self.assertEqual(
            [FileEntry("a.txt", "A")], self.backend.files_changed_in_paused_commit()
        )

    def test_read_write_file(self) -> None:
        self.backend.write_file("sub/new.txt", "content\r\n")
        with open(os.path.join(self.test_dir, "sub", "new.txt"), "rb") as f:
            self.assertEqual(b"content\r\n", f.read())
        self.assertEqual("content\r\n", self.backend.read_file("sub/new.txt"))
        self.assertRaises(UnsafePath, self.backend.write_file, "../escape.txt", "x")

    def test_not_a_repository(self) -> None:
        path = os.path.join(self.test_dir, "plain")
        os.mkdir(path)
        self.assertRaises(
            BackendError, GitBackend(path).list_rebaseable_commits, "HEAD"
        )
