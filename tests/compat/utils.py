# utils.py -- Git compatibility utilities
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

"""Utilities for interacting with cgit."""

import os
import shutil
import subprocess
import tempfile

from .. import SkipTest, TestCase

_DEFAULT_GIT = "git"


def git_version(git_path: str = _DEFAULT_GIT) -> tuple[int, ...] | None:
    """Attempt to determine the version of git currently installed.

    Args:
      git_path: Path to the git executable; defaults to the version in
        the system path.
    Returns: A tuple of ints of the form (major, minor, point), or None if no
      git installation was found.
    """
    try:
        _, output = run_git(["--version"], git_path=git_path, capture_stdout=True)
    except OSError:
        return None
    version_prefix = b"git version "
    if not output.startswith(version_prefix):
        return None
    nums = output[len(version_prefix) :].split(b".")[:3]
    while len(nums) < 3:
        nums.append(b"0")
    try:
        return tuple(int(x) for x in nums)
    except ValueError:
        return None


def require_git_version(
    required_version: tuple[int, ...], git_path: str = _DEFAULT_GIT
) -> None:
    """Require git version >= version, or skip the calling test."""
    found_version = git_version(git_path=git_path)
    if found_version is None:
        raise SkipTest("Test requires git, but it was not found")
    if found_version < required_version:
        required = ".".join(map(str, required_version))
        found = ".".join(map(str, found_version))
        raise SkipTest(f"Test requires git >= {required}, found {found}")


def run_git(
    args: list[str],
    git_path: str = _DEFAULT_GIT,
    input: bytes | None = None,
    capture_stdout: bool = False,
    **popen_kwargs,
) -> tuple[int, bytes | None]:
    """Run a git command.

    Input is piped from the input parameter and output is sent to the standard
    streams, unless capture_stdout is set.

    Returns: A tuple of (returncode, stdout contents). If capture_stdout is
      False, None will be returned as stdout contents.

    Raises:
      OSError: if the git executable was not found.
    """
    args = [git_path, *args]
    popen_kwargs["stdin"] = subprocess.PIPE
    if capture_stdout:
        popen_kwargs["stdout"] = subprocess.PIPE
    else:
        popen_kwargs.pop("stdout", None)
    p = subprocess.Popen(args, **popen_kwargs)
    stdout, _ = p.communicate(input=input)
    return (p.returncode, stdout)


def run_git_or_fail(
    args: list[str], git_path: str = _DEFAULT_GIT, input: bytes | None = None, **popen_kwargs
) -> bytes:
    """Run a git command, capture stdout/stderr, and fail if git fails."""
    popen_kwargs["stderr"] = subprocess.STDOUT
    returncode, stdout = run_git(
        args, git_path=git_path, input=input, capture_stdout=True, **popen_kwargs
    )
    if returncode != 0:
        raise AssertionError(
            f"git with args {args!r} failed with {returncode}: {stdout!r}"
        )
    return stdout or b""


class CompatTestCase(TestCase):
    """Test case that requires git for compatibility checks.

    Each test gets a fresh repository on branch ``main`` with a committer
    identity configured. Subclasses can change the git version required by
    overriding min_git_version.
    """

    # init --initial-branch
    min_git_version: tuple[int, ...] = (2, 28, 0)

    def setUp(self) -> None:
        super().setUp()
        require_git_version(self.min_git_version)
        self.overrideEnv("GIT_EDITOR", None)
        self.overrideEnv("GIT_SEQUENCE_EDITOR", None)
        self.repo_path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.repo_path)
        self.git("init", "-q", "--initial-branch=main")
        self.git("config", "user.name", "Test Author")
        self.git("config", "user.email", "test@example.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str) -> str:
        """Run git in the test repository and return its output."""
        return run_git_or_fail(list(args), cwd=self.repo_path).decode("utf-8")

    def commit_file(self, path: str, content: str, message: str) -> str:
        """Write ``path``, commit it and return the new commit hash."""
        full_path = os.path.join(self.repo_path, path)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(content)
        self.git("add", path)
        self.git("commit", "-q", "-m", message)
        return self.rev_parse("HEAD")

    def rev_parse(self, rev: str) -> str:
        return self.git("rev-parse", rev).strip()

    def subjects(self, rev: str = "HEAD") -> list[str]:
        """Subjects of the history of ``rev``, newest first."""
        return self.git("log", "--format=%s", rev).splitlines()

    def show(self, rev: str, path: str) -> str:
        return self.git("show", f"{rev}:{path}")
