# loader.py -- Loading the commits an interactive rebase can rewrite
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

"""Commit range loading.

Backends list commits oldest first; a :class:`CommitRange` keeps them newest
first, the way they are presented, and applies the "hide pushed commits"
filter.
"""

from collections.abc import Sequence
from typing import Optional

from .backend import RebaseBackend
from .errors import BackendError, RegraftError
from .log_utils import getLogger
from .objects import CommitInfo
from .planner import Plan, ValidationError

logger = getLogger(__name__)

SUGGESTION_MIN_QUERY = 3


class LoadError(RegraftError):
    """The commit range could not be enumerated."""


class MissingBase(ValidationError):
    """Raised when no base was given and none can be derived."""

    def __init__(self) -> None:
        super().__init__("Please specify a base commit/ref or load commits first.")


class CommitRange:
    """The commits above a base, newest first."""

    def __init__(
        self,
        commits: Sequence[CommitInfo],
        base: Optional[str] = None,
        include_pushed: bool = False,
    ) -> None:
        """Initialize a CommitRange.

        Args:
          commits: All loaded commits, newest first
          base: The base reference as requested, None for the default range
          include_pushed: Whether published commits are part of the plan
        """
        self.base = base
        self.commits = list(commits)
        self.include_pushed = include_pushed
        if not include_pushed and self.commits and all(
            c.is_pushed for c in self.commits
        ):
            # Nothing would be left to plan with; show everything instead
            self.include_pushed = True

    def __len__(self) -> int:
        return len(self.commits)

    @property
    def visible(self) -> list[CommitInfo]:
        """Commits that take part in planning."""
        if self.include_pushed:
            return list(self.commits)
        return [c for c in self.commits if not c.is_pushed]

    @property
    def hidden_pushed_count(self) -> int:
        if self.include_pushed:
            return 0
        return sum(1 for c in self.commits if c.is_pushed)

    @property
    def rebase_base(self) -> Optional[str]:
        """Base to submit a plan against, None to start above the oldest row.

        Published commits are ancestors of every unpublished one, so hidden
        commits always sit below the visible rows. They must stay out of the
        rewritten range, or the run would drop them.
        """
        if self.hidden_pushed_count:
            return None
        return self.base

    def set_include_pushed(self, include_pushed: bool) -> None:
        self.include_pushed = include_pushed or all(c.is_pushed for c in self.commits)

    def suggest_bases(self, query: str, limit: int = 12) -> list[CommitInfo]:
        """Suggest commits matching a partially typed base.

        A commit matches when its full or short hash starts with ``query`` or
        its subject contains it, case-insensitively.
        """
        q = query.strip().lower()
        if len(q) < SUGGESTION_MIN_QUERY:
            return []
        matches = [
            c
            for c in self.commits
            if c.hash.lower().startswith(q)
            or c.short_hash.lower().startswith(q)
            or q in c.subject.lower()
        ]
        return matches[:limit]

    def plan(self) -> Plan:
        """Build a fresh plan from the visible commits."""
        return Plan(self.visible, base=self.base)


def load_commit_range(
    backend: RebaseBackend, base: Optional[str] = None, include_pushed: bool = False
) -> CommitRange:
    """Load the commits above ``base``.

    Args:
      backend: Backend to list commits with
      base: Ref, relative expression or hash; None or blank for the
        backend's default range
      include_pushed: Whether to plan for already published commits
    Returns: A CommitRange
    Raises:
      LoadError: if the backend cannot list the commits
    """
    if base is not None:
        base = base.strip() or None
    try:
        oldest_first = backend.list_rebaseable_commits(base)
    except (BackendError, OSError) as e:
        raise LoadError(str(e)) from e
    logger.debug("loaded %d commits above %s", len(oldest_first), base or "(default)")
    return CommitRange(list(reversed(oldest_first)), base, include_pushed)


def effective_base(base: Optional[str], plan: Plan) -> str:
    """Determine the base to submit a plan against.

    An explicit base wins; otherwise the parent of the oldest loaded commit.

    Raises:
      MissingBase: if there is neither a base nor a loaded commit
    """
    if base is not None and base.strip():
        return base.strip()
    oldest = plan.oldest
    if oldest is None:
        raise MissingBase()
    return f"{oldest.hash}^"
