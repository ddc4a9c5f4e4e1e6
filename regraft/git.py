# git.py -- Rebase backend driving the git executable
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

"""Rebase backend built on the git command line.

History, refs, configuration and trees are read with dulwich. Everything
that rewrites history goes through ``git rebase -i`` so that the sequencer
state in the repository is exactly the one git itself would leave behind;
a run started here can be continued or aborted from a shell and vice versa.

Todo entries are translated as follows:

  * ``drop`` entries are left out of the todo list;
  * ``reword`` entries, and ``pick``/``edit`` entries carrying a new message
    or author, become ``edit`` stops. The overrides are stored in
    ``<gitdir>/regraft-reword-map.json`` and applied with
    ``git commit --amend`` when git stops there;
  * ``squash`` entries become ``fixup``: the combined message is already
    recorded as an override on the commit they fold into.
"""

__all__ = [
    "REWORD_MAP_FILENAME",
    "GitBackend",
    "GitCommandError",
]

import json
import os
import shlex
import subprocess
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from dulwich.diff_tree import (
    CHANGE_ADD,
    CHANGE_COPY,
    CHANGE_DELETE,
    CHANGE_RENAME,
    RenameDetector,
    tree_changes,
)
from dulwich.errors import NotGitRepository
from dulwich.mailmap import parse_identity
from dulwich.objects import Commit
from dulwich.objectspec import parse_commit, parse_object
from dulwich.repo import Repo

from .errors import BackendError, UnsafePath
from .log_utils import getLogger
from .objects import (
    Action,
    CommitInfo,
    Completed,
    Conflicts,
    ExecutionResult,
    Failed,
    FileEntry,
    RebaseStatus,
    StatusEntry,
    StoppedAtEdit,
    TodoEntry,
)

logger = getLogger(__name__)

REWORD_MAP_FILENAME = "regraft-reword-map.json"

SHORT_HASH_LENGTH = 7

# Keeps git from ever waiting on an interactive editor.
NO_EDITOR_ENV = {
    "GIT_EDITOR": "true",
    "EDITOR": "true",
    "VISUAL": "true",
}

_CHANGE_LETTERS = {
    CHANGE_ADD: "A",
    CHANGE_DELETE: "D",
    CHANGE_RENAME: "R",
    CHANGE_COPY: "C",
}


class GitCommandError(BackendError):
    """A git invocation exited with a non-zero status."""

    def __init__(
        self, argv: Sequence[str], returncode: int, stderr: str, stdout: str = ""
    ) -> None:
        """Initialize GitCommandError.

        Args:
          argv: The command line that was run
          returncode: Exit status of the command
          stderr: Captured standard error
          stdout: Captured standard output
        """
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        message = (
            stderr.strip()
            or stdout.strip()
            or f"{' '.join(argv)} exited with status {returncode}"
        )
        super().__init__(message)


def _decode(value: Optional[bytes], encoding: str = "utf-8") -> str:
    if value is None:
        return ""
    return value.decode(encoding, "replace")


def _output(proc: subprocess.CompletedProcess) -> str:
    return proc.stderr.strip() or proc.stdout.strip()


def _format_date(timestamp: int, offset: int) -> str:
    """Format a commit time as ISO 8601 with its original UTC offset."""
    tz = timezone(timedelta(seconds=offset))
    return datetime.fromtimestamp(timestamp, tz).isoformat()


def commit_info(commit: Commit, is_pushed: bool = False) -> CommitInfo:
    """Build a :class:`CommitInfo` from a dulwich commit object."""
    encoding = _decode(commit.encoding) or "utf-8"
    message = _decode(commit.message, encoding)
    subject, _, body = message.partition("\n")
    name, email = parse_identity(commit.author)
    sha = commit.id.decode("ascii")
    return CommitInfo(
        hash=sha,
        short_hash=sha[:SHORT_HASH_LENGTH],
        subject=subject.strip(),
        author_name=_decode(name, encoding),
        author_email=_decode(email, encoding),
        is_pushed=is_pushed,
        body=body.strip(),
        author_date=_format_date(commit.author_time, commit.author_timezone),
    )


def todo_lines(entries: Sequence[TodoEntry]) -> tuple[list[str], dict]:
    """Translate entries into git todo lines and the override map.

    Returns:
      Tuple with the todo lines (oldest first) and a dictionary mapping
      commit hashes to ``{"message", "author", "stop"}`` overrides
    """
    lines = []
    overrides = {}
    for entry in entries:
        sha = entry.hash.strip()
        if not sha:
            continue
        subject = entry.original_message or ""
        action = entry.action
        if action is Action.DROP:
            continue
        if action in (Action.SQUASH, Action.FIXUP):
            lines.append(f"fixup {sha} {subject}".rstrip())
            continue
        has_overrides = entry.new_message is not None or entry.new_author is not None
        if action is Action.EDIT or action is Action.REWORD or has_overrides:
            lines.append(f"edit {sha} {subject}".rstrip())
            if action is Action.REWORD or has_overrides:
                overrides[sha] = {
                    "message": entry.new_message,
                    "author": entry.new_author,
                    "stop": action is Action.EDIT,
                }
        else:
            lines.append(f"pick {sha} {subject}".rstrip())
    return lines, overrides


def _amend_args(message: Optional[str], author: Optional[str]) -> list[str]:
    args = ["commit", "--amend", "--no-verify"]
    if message is not None and message.strip():
        args.extend(["-m", message])
    else:
        args.append("--no-edit")
    if author is not None and author.strip():
        args.extend(["--author", author])
    return args


def parse_porcelain_status(output: str) -> list[StatusEntry]:
    """Parse the output of ``git status --porcelain -z``."""
    entries = []
    fields = output.split("\0")
    i = 0
    while i < len(fields):
        record = fields[i]
        i += 1
        if len(record) < 4:
            continue
        status, path = record[:2], record[3:]
        old_path = None
        if status[0] in "RC" and i < len(fields):
            old_path = fields[i]
            i += 1
        entries.append(StatusEntry(status, path, old_path))
    return entries


def check_path(path: str) -> str:
    """Check that ``path`` stays inside the working tree.

    Raises:
      UnsafePath: if the path is empty, absolute or contains ``..``
    """
    if not path or not path.strip():
        raise UnsafePath(path, "empty path")
    if os.path.isabs(path) or path.startswith(("/", "\\")):
        raise UnsafePath(path, "absolute paths are not allowed")
    parts = path.replace("\\", "/").split("/")
    if ".." in parts:
        raise UnsafePath(path, "path escapes the working tree")
    return path


class GitBackend:
    """Rebase backend for a git working tree."""

    def __init__(
        self, repo_path: str, git_path: str = "git", autostash: bool = True
    ) -> None:
        """Initialize a GitBackend.

        Args:
          repo_path: Path to the working tree
          git_path: git executable to run
          autostash: Pass ``--autostash`` when starting a rebase
        """
        self.repo_path = os.path.abspath(repo_path)
        self.git_path = git_path
        self.autostash = autostash

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.repo_path!r})"

    @contextmanager
    def _open_repo(self) -> Iterator[Repo]:
        try:
            repo = Repo(self.repo_path)
        except NotGitRepository as e:
            raise BackendError(f"Not a git repository: {self.repo_path}") from e
        with repo:
            yield repo

    def _run_git(
        self, *args: str, check: bool = True, editor: bool = False, env=None
    ) -> subprocess.CompletedProcess:
        argv = [self.git_path, *args]
        logger.debug("running %s", shlex.join(argv))
        full_env = None
        if editor or env:
            full_env = dict(os.environ)
            if editor:
                full_env.update(NO_EDITOR_ENV)
            if env:
                full_env.update(env)
        try:
            proc = subprocess.run(
                argv,
                cwd=self.repo_path,
                env=full_env,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise BackendError(f"Failed to run {self.git_path}: {e}") from e
        if check and proc.returncode != 0:
            raise GitCommandError(argv, proc.returncode, proc.stderr, proc.stdout)
        return proc

    def _git_path(self, name: str) -> str:
        path = self._run_git("rev-parse", "--git-path", name).stdout.strip()
        return os.path.join(self.repo_path, path)

    def _rebase_dir(self) -> Optional[str]:
        path = self._git_path("rebase-merge")
        if os.path.isdir(path):
            return path
        return None

    def _in_progress(self) -> bool:
        return (
            self._rebase_dir() is not None
            or os.path.isdir(self._git_path("rebase-apply"))
        )

    # Commit listing

    def _upstream(self, repo: Repo) -> Optional[bytes]:
        refnames, _ = repo.refs.follow(b"HEAD")
        branch_ref = refnames[-1]
        if not branch_ref.startswith(b"refs/heads/"):
            return None
        branch = branch_ref[len(b"refs/heads/") :]
        config = repo.get_config_stack()
        try:
            remote = config.get((b"branch", branch), b"remote")
            merge = config.get((b"branch", branch), b"merge")
        except KeyError:
            return None
        if remote == b".":
            ref = merge
        else:
            ref = b"refs/remotes/" + remote + b"/" + merge[len(b"refs/heads/") :]
        try:
            return repo.refs[ref]
        except KeyError:
            logger.debug("upstream %s of %s does not exist", ref, branch)
            return None

    def _resolve(self, repo: Repo, committish: str) -> Commit:
        try:
            return parse_commit(repo, parse_object(repo, committish))
        except (KeyError, ValueError) as e:
            raise BackendError(f"Unknown revision: {committish}") from e

    def list_rebaseable_commits(self, base: Optional[str] = None) -> list[CommitInfo]:
        """List non-merge commits between ``base`` and HEAD, oldest first.

        Without a base the upstream of the current branch is used, and all
        of HEAD's history if there is none.
        """
        with self._open_repo() as repo:
            try:
                head = repo.refs[b"HEAD"]
            except KeyError:
                # Unborn branch
                return []
            exclude = []
            if base:
                exclude.append(self._resolve(repo, base).id)
            else:
                upstream = self._upstream(repo)
                if upstream is not None:
                    exclude.append(upstream)

            remote_heads = list(repo.refs.as_dict(b"refs/remotes").values())
            pushed = set()
            if remote_heads:
                pushed = {
                    entry.commit.id
                    for entry in repo.get_walker(include=remote_heads, exclude=exclude)
                }

            commits = []
            for entry in repo.get_walker(include=[head], exclude=exclude, reverse=True):
                commit = entry.commit
                if len(commit.parents) > 1:
                    continue
                commits.append(commit_info(commit, commit.id in pushed))
            return commits

    # Sequencer

    def _base_args(self, base: str) -> list[str]:
        with self._open_repo() as repo:
            try:
                parse_commit(repo, parse_object(repo, base))
            except (KeyError, ValueError):
                pass
            else:
                return [base]
            if base.endswith("^"):
                commit = self._resolve(repo, base[:-1])
                if not commit.parents:
                    return ["--root"]
        raise BackendError(f"Unknown revision: {base}")

    def _reword_map_path(self) -> str:
        git_dir = self._run_git("rev-parse", "--git-dir").stdout.strip()
        return os.path.join(self.repo_path, git_dir, REWORD_MAP_FILENAME)

    def _load_reword_map(self) -> dict:
        try:
            with open(self._reword_map_path(), encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return {}
        except ValueError as e:
            logger.warning("ignoring unreadable %s: %s", REWORD_MAP_FILENAME, e)
            return {}

    def _save_reword_map(self, overrides: dict) -> None:
        with open(self._reword_map_path(), "w", encoding="utf-8") as f:
            json.dump(overrides, f)

    def _remove_reword_map(self) -> None:
        try:
            os.remove(self._reword_map_path())
        except FileNotFoundError:
            pass

    def start_rebase(self, base: str, entries: Sequence[TodoEntry]) -> ExecutionResult:
        if not entries:
            raise BackendError("No commits selected for rebase.")
        if self._in_progress():
            raise BackendError("A rebase is already in progress.")
        if os.path.exists(self._git_path("MERGE_HEAD")):
            raise BackendError("A merge is in progress. Resolve it first.")

        lines, overrides = todo_lines(entries)
        if not lines:
            raise BackendError("All commits were dropped. Nothing to rebase.")
        base_args = self._base_args(base.strip())

        args = ["rebase", "-i"]
        if self.autostash:
            args.append("--autostash")
        args.extend(base_args)

        with tempfile.TemporaryDirectory(prefix="regraft-") as tmpdir:
            todo_path = os.path.join(tmpdir, "git-rebase-todo")
            with open(todo_path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
            self._save_reword_map(overrides)
            # git appends the todo path to the editor command.
            proc = self._run_git(
                *args,
                check=False,
                editor=True,
                env={"GIT_SEQUENCE_EDITOR": f"cp {shlex.quote(todo_path)}"},
            )

        if not self._in_progress():
            self._remove_reword_map()
            if proc.returncode != 0:
                raise GitCommandError(
                    [self.git_path, *args], proc.returncode, proc.stderr, proc.stdout
                )
            output = proc.stdout.strip() or proc.stderr.strip()
            return Completed(output) if output else Completed()
        if proc.returncode != 0 and not self._conflict_files():
            return Failed(_output(proc))
        return self._settle()

    def _resume(self, *args: str) -> ExecutionResult:
        if not self._in_progress():
            raise BackendError("No rebase in progress.")
        proc = self._run_git(*args, check=False, editor=True)
        if not self._in_progress():
            if proc.returncode != 0:
                raise GitCommandError(
                    [self.git_path, *args], proc.returncode, proc.stderr, proc.stdout
                )
            self._remove_reword_map()
            return Completed()
        # Edit stops exit successfully; any other failure without conflicts
        # means git refused to move on.
        if proc.returncode != 0 and not self._conflict_files():
            return Failed(_output(proc))
        return self._settle()

    def continue_rebase(self) -> ExecutionResult:
        if self._rebase_dir() is not None:
            stopped = self._commit_resolution()
            if stopped is not None:
                return stopped
        return self._resume("rebase", "--continue")

    def _commit_resolution(self) -> Optional[ExecutionResult]:
        """Commit a resolved conflict on a commit that carries overrides.

        git does not stop at the ``edit`` line of a commit that conflicted,
        so the overrides are applied here, before the sequencer moves on.

        Returns: The edit stop to report for an ``edit`` row, else None
        """
        if self._read_rebase_file("amend") is not None:
            # Paused at an edit stop; the commit already exists.
            return None
        overrides = self._load_reword_map()
        key = self._match_override(overrides, self._stopped_sha())
        if key is None or self._conflict_files():
            return None
        override = overrides.pop(key)
        self._save_reword_map(overrides)
        staged = self._run_git("diff", "--cached", "--quiet", check=False)
        if staged.returncode == 0:
            logger.debug("resolution of %s is empty; leaving it to git", key)
            return None
        logger.debug("committing resolution of %s with stored overrides", key)
        # Keeps the original author, date and message.
        self._run_git("commit", "--no-verify", "-q", "-C", key, editor=True)
        self._run_git(
            *_amend_args(override.get("message"), override.get("author")),
            editor=True,
        )
        if override.get("stop"):
            return self._detect_state()
        return None

    def skip_rebase(self) -> ExecutionResult:
        return self._resume("rebase", "--skip")

    def _settle(self) -> ExecutionResult:
        """Apply stored overrides at each stop until a stop needs the user."""
        overrides = self._load_reword_map()
        while True:
            state = self._detect_state()
            if not isinstance(state, StoppedAtEdit):
                if isinstance(state, Completed):
                    self._remove_reword_map()
                return state
            key = self._match_override(overrides, state.commit_hash)
            if key is None:
                return state
            override = overrides.pop(key)
            self._save_reword_map(overrides)
            logger.debug("applying stored overrides to %s", key)
            self._run_git(
                *_amend_args(override.get("message"), override.get("author")),
                editor=True,
            )
            if override.get("stop"):
                return self._detect_state()
            proc = self._run_git("rebase", "--continue", check=False, editor=True)
            if proc.returncode != 0:
                if not self._in_progress():
                    raise GitCommandError(
                        [self.git_path, "rebase", "--continue"],
                        proc.returncode,
                        proc.stderr,
                        proc.stdout,
                    )
                if not self._conflict_files():
                    return Failed(_output(proc))

    @staticmethod
    def _match_override(overrides: dict, stopped: Optional[str]) -> Optional[str]:
        if not stopped:
            return None
        for key in overrides:
            if key.startswith(stopped) or stopped.startswith(key):
                return key
        return None

    def _read_rebase_file(self, name: str) -> Optional[str]:
        rebase_dir = self._rebase_dir()
        if rebase_dir is None:
            return None
        try:
            with open(os.path.join(rebase_dir, name), encoding="utf-8") as f:
                return f.read().strip() or None
        except FileNotFoundError:
            return None

    def _read_step(self, name: str) -> Optional[int]:
        value = self._read_rebase_file(name)
        try:
            return int(value) if value else None
        except ValueError:
            return None

    def _stopped_sha(self) -> Optional[str]:
        sha = self._read_rebase_file("stopped-sha")
        if not sha:
            done = self._read_rebase_file("done")
            if not done:
                return None
            fields = done.splitlines()[-1].split()
            if len(fields) < 2:
                return None
            sha = fields[1]
        # Older git versions record an abbreviated hash
        proc = self._run_git(
            "rev-parse", "--verify", "--quiet", sha + "^{commit}", check=False
        )
        return proc.stdout.strip() or sha

    def _conflict_files(self) -> list[str]:
        output = self._run_git("diff", "--name-only", "-z", "--diff-filter=U").stdout
        return sorted({path for path in output.split("\0") if path})

    def _head_details(self) -> tuple[str, str, str]:
        output = self._run_git("log", "-1", "--format=%an%x00%ae%x00%B", "HEAD").stdout
        name, email, message = (output.split("\0", 2) + ["", ""])[:3]
        return name, email, message.strip()

    def _detect_state(self) -> ExecutionResult:
        if not self._in_progress():
            return Completed()
        current_step = self._read_step("msgnum")
        total_steps = self._read_step("end")
        stopped = self._stopped_sha()
        conflicts = self._conflict_files()
        if conflicts:
            return Conflicts(
                files=conflicts,
                commit_hash=stopped,
                current_step=current_step,
                total_steps=total_steps,
            )
        name, email, message = self._head_details()
        return StoppedAtEdit(
            commit_hash=stopped,
            message=message,
            author_name=name,
            author_email=email,
            current_step=current_step,
            total_steps=total_steps,
        )

    def amend_paused_commit(
        self, message: Optional[str] = None, author: Optional[str] = None
    ) -> None:
        if self._rebase_dir() is None:
            raise BackendError("No interactive rebase in progress.")
        self._run_git(*_amend_args(message, author), editor=True)

    def abort_rebase(self) -> None:
        if self._in_progress():
            self._run_git("rebase", "--abort", editor=True)
        self._remove_reword_map()

    def rebase_status(self) -> RebaseStatus:
        if not self._in_progress():
            return RebaseStatus(in_progress=False)
        conflicts = self._conflict_files()
        message = self._read_rebase_file("message")
        name = email = ""
        if not conflicts:
            name, email, message = self._head_details()
        return RebaseStatus(
            in_progress=True,
            current_step=self._read_step("msgnum"),
            total_steps=self._read_step("end"),
            stopped_commit_hash=self._stopped_sha(),
            stopped_commit_message=message,
            stopped_commit_author_name=name,
            stopped_commit_author_email=email,
            conflict_files=conflicts,
        )

    # Working tree

    def working_tree_status(self) -> list[StatusEntry]:
        output = self._run_git(
            "status", "--porcelain", "-z", "--untracked-files=all"
        ).stdout
        return parse_porcelain_status(output)

    def stage_paths(self, paths: Sequence[str]) -> None:
        if paths:
            self._run_git("add", "-A", "--", *[check_path(p) for p in paths])

    def unstage_paths(self, paths: Sequence[str]) -> None:
        if paths:
            self._run_git("reset", "-q", "HEAD", "--", *[check_path(p) for p in paths])

    def files_changed_in_paused_commit(self) -> list[FileEntry]:
        with self._open_repo() as repo:
            head = repo[repo.head()]
            assert isinstance(head, Commit)
            parent_tree = None
            if head.parents:
                parent = repo[head.parents[0]]
                assert isinstance(parent, Commit)
                parent_tree = parent.tree
            store = repo.object_store
            entries = []
            for change in tree_changes(
                store,
                parent_tree,
                head.tree,
                rename_detector=RenameDetector(store),
            ):
                status = _CHANGE_LETTERS.get(change.type, "M")
                if change.type == CHANGE_DELETE:
                    entries.append(FileEntry(_decode(change.old.path), status))
                elif change.type in (CHANGE_RENAME, CHANGE_COPY):
                    entries.append(
                        FileEntry(
                            _decode(change.new.path),
                            status,
                            old_path=_decode(change.old.path),
                        )
                    )
                else:
                    entries.append(FileEntry(_decode(change.new.path), status))
            return entries

    def _full_path(self, path: str) -> str:
        return os.path.join(self.repo_path, check_path(path))

    def read_file(self, path: str) -> str:
        with open(self._full_path(path), encoding="utf-8", errors="replace") as f:
            return f.read()

    def write_file(self, path: str, content: str) -> None:
        full_path = self._full_path(path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def restore_file(self, path: str) -> None:
        self._run_git("checkout", "HEAD", "--", check_path(path))

    def rename_file(self, old_path: str, new_path: str) -> None:
        old_full = self._full_path(old_path)
        new_full = self._full_path(new_path)
        os.makedirs(os.path.dirname(new_full), exist_ok=True)
        os.rename(old_full, new_full)
        self._run_git("add", "-A", "--", old_path, new_path)

    def delete_file(self, path: str) -> None:
        os.remove(self._full_path(path))
        self._run_git("add", "-A", "--", path)
