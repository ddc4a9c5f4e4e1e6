# planner.py -- Mutable interactive rebase plans
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

"""Planning of interactive rebases.

A :class:`Plan` holds one :class:`TodoRow` per loaded commit, newest first,
the way a history view shows them. Rows can be reordered and given an
:class:`~regraft.objects.Action` plus message/author overrides.
:meth:`Plan.compile` turns the plan into the oldest-first list of
:class:`~regraft.objects.TodoEntry` objects that a backend executes.

``squash`` and ``fixup`` rows fold into their *fold target*: the nearest
older row whose action is not squash, fixup or drop.
"""

__all__ = [
    "AllDropped",
    "EmptyPlan",
    "NoFoldTarget",
    "NoopPlan",
    "Plan",
    "TodoRow",
    "ValidationError",
]

from collections import Counter
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Optional

from .errors import RegraftError
from .log_utils import getLogger
from .objects import Action, CommitInfo, TodoEntry, format_author

logger = getLogger(__name__)


class ValidationError(RegraftError):
    """The plan violates an invariant and cannot be submitted."""


class EmptyPlan(ValidationError):
    """Raised when there are no rows to rebase."""

    def __init__(self) -> None:
        super().__init__("No commits selected for rebase.")


class AllDropped(ValidationError):
    """Raised when every row is dropped."""

    def __init__(self) -> None:
        super().__init__("All commits were dropped. Nothing to rebase.")


class NoFoldTarget(ValidationError):
    """Raised when a squash or fixup row has no older commit to fold into."""

    def __init__(self, index: int) -> None:
        """Initialize NoFoldTarget.

        Args:
          index: Display index of the offending row
        """
        self.index = index
        super().__init__(
            "The oldest commit cannot be squash or fixup: "
            "there is no preceding commit to fold into."
        )


class NoopPlan(ValidationError):
    """Raised when executing the plan would not change history."""

    def __init__(self) -> None:
        super().__init__(
            "Nothing to do: every commit is picked unchanged, in its original order."
        )


_NO_FOLD_TARGET = (Action.SQUASH, Action.FIXUP, Action.DROP)


@dataclass(eq=False)
class TodoRow:
    """One planning unit: a commit plus what to do with it."""

    id: str
    commit: CommitInfo
    action: Action
    new_message: str
    new_author_name: str
    new_author_email: str

    @classmethod
    def from_commit(cls, commit: CommitInfo, position: int) -> "TodoRow":
        """Create a pristine ``pick`` row.

        Args:
          commit: Commit the row stands for
          position: Position of the commit in load order; together with the
            hash it forms the row identity
        """
        return cls(
            id=f"{commit.hash}_{position}",
            commit=commit,
            action=Action.PICK,
            new_message=commit.subject,
            new_author_name=commit.author_name,
            new_author_email=commit.author_email,
        )

    @property
    def new_author(self) -> str:
        return format_author(self.new_author_name, self.new_author_email)

    @property
    def message_changed(self) -> bool:
        return self.new_message != self.commit.subject

    @property
    def author_changed(self) -> bool:
        return self.new_author != self.commit.author

    @property
    def has_changes(self) -> bool:
        """Whether the row differs from a plain, unedited ``pick``."""
        return self.action is not Action.PICK or self.message_changed or self.author_changed

    @property
    def effective_action(self) -> Action:
        """Action as compiled.

        A ``pick`` whose message or author was edited is promoted to
        ``reword``.
        """
        if self.action is Action.PICK and (self.message_changed or self.author_changed):
            return Action.REWORD
        return self.action

    def compile(self) -> TodoEntry:
        """Convert the row to a todo entry."""
        action = self.effective_action
        entry = TodoEntry(
            action=action,
            hash=self.commit.hash,
            short_hash=self.commit.short_hash,
            original_message=self.commit.subject,
        )
        if action in (Action.REWORD, Action.EDIT):
            if self.message_changed:
                entry.new_message = self.new_message
            if self.author_changed:
                entry.new_author = self.new_author
        return entry


class Plan:
    """An ordered, editable list of todo rows (newest first)."""

    def __init__(
        self, commits: Sequence[CommitInfo], base: Optional[str] = None
    ) -> None:
        """Initialize a plan.

        Args:
          commits: Commits to plan for, newest first
          base: Base reference the plan was loaded against, if any
        """
        self.base = base
        self.rows = [TodoRow.from_commit(c, i) for i, c in enumerate(commits)]
        self._load_order = [c.hash for c in commits]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[TodoRow]:
        return iter(self.rows)

    def __getitem__(self, index: int) -> TodoRow:
        return self.rows[index]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} base={self.base!r} rows={len(self.rows)}>"

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.rows):
            raise IndexError(f"row index out of range: {index}")

    def index_of(self, row_id: str) -> int:
        """Find the display index of the row with the given identity.

        Raises:
          KeyError: if no such row exists
        """
        for i, row in enumerate(self.rows):
            if row.id == row_id:
                return i
        raise KeyError(row_id)

    def find(self, commitish: str) -> int:
        """Find the display index of a row by full or abbreviated hash.

        Raises:
          KeyError: if no row, or more than one row, matches
        """
        matches = [
            i for i, row in enumerate(self.rows) if row.commit.hash.startswith(commitish)
        ]
        if len(matches) != 1:
            raise KeyError(commitish)
        return matches[0]

    @property
    def oldest(self) -> Optional[CommitInfo]:
        """The oldest commit in load order."""
        if not self.rows:
            return None
        oldest_hash = self._load_order[-1]
        for row in self.rows:
            if row.commit.hash == oldest_hash:
                return row.commit
        return None

    def fold_target(self, index: int) -> Optional[int]:
        """Return the index a squash/fixup at ``index`` would fold into.

        That is the nearest older (lower in the list) row whose action is not
        squash, fixup or drop, or None when no such row exists.
        """
        self._check_index(index)
        for j in range(index + 1, len(self.rows)):
            if self.rows[j].action not in _NO_FOLD_TARGET:
                return j
        return None

    def allowed_actions(self, index: int) -> list[Action]:
        """List the actions the row at ``index`` may be given."""
        if self.fold_target(index) is None:
            return [a for a in Action if not a.folds]
        return list(Action)

    def set_action(self, index: int, action: Action) -> Optional[int]:
        """Change the action of one row.

        Setting ``squash`` pre-fills the fold target's message with the
        subjects of the commits folded into it, unless that message was
        already edited.

        Returns:
          Index of the fold target whose message was filled in, or None

        Raises:
          NoFoldTarget: if ``action`` folds and nothing older can take it
        """
        self._check_index(index)
        if action.folds and self.fold_target(index) is None:
            raise NoFoldTarget(index)
        self.rows[index].action = action
        if action is Action.SQUASH:
            return self._compose_squash_message(index)
        return None

    def _compose_squash_message(self, index: int) -> Optional[int]:
        target_index = self.fold_target(index)
        if target_index is None:
            return None
        target = self.rows[target_index]
        if target.message_changed:
            return None

        # Target first, then the squashed subjects oldest to newest
        messages = [target.commit.subject]
        for j in range(target_index - 1, -1, -1):
            row = self.rows[j]
            if row.action is Action.SQUASH:
                messages.append(row.commit.subject)
            elif row.action in (Action.FIXUP, Action.DROP):
                continue
            else:
                break
        target.new_message = "\n\n".join(messages)
        logger.debug(
            "filled squash message of %s from %d commits",
            target.commit.short_hash,
            len(messages),
        )
        return target_index

    def set_message(self, index: int, message: str) -> None:
        """Override the message of one row."""
        self._check_index(index)
        self.rows[index].new_message = message

    def set_author(
        self, index: int, name: Optional[str] = None, email: Optional[str] = None
    ) -> None:
        """Override the author name and/or email of one row."""
        self._check_index(index)
        row = self.rows[index]
        if name is not None:
            row.new_author_name = name
        if email is not None:
            row.new_author_email = email

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move a row so that it ends up at ``to_index``.

        The row keeps its identity, action and overrides.
        """
        self._check_index(from_index)
        self._check_index(to_index)
        if from_index == to_index:
            return
        row = self.rows.pop(from_index)
        self.rows.insert(to_index, row)

    def move(self, index: int, direction: int) -> None:
        """Swap a row with its neighbour; -1 moves it up (newer), 1 down."""
        self._check_index(index)
        new_index = index + direction
        if not 0 <= new_index < len(self.rows):
            return
        self.rows[index], self.rows[new_index] = self.rows[new_index], self.rows[index]

    def reset_all(self) -> None:
        """Set every row back to ``pick``, keeping message and author edits."""
        for row in self.rows:
            row.action = Action.PICK

    @property
    def has_changes(self) -> bool:
        return any(row.has_changes for row in self.rows)

    @property
    def is_reordered(self) -> bool:
        if len(self.rows) != len(self._load_order):
            return True
        return any(
            row.commit.hash != h for row, h in zip(self.rows, self._load_order)
        )

    @property
    def is_noop(self) -> bool:
        """Whether executing the plan would leave history untouched."""
        return not self.has_changes and not self.is_reordered

    @property
    def pushed_count(self) -> int:
        return sum(1 for row in self.rows if row.commit.is_pushed)

    def summary(self) -> dict[Action, int]:
        """Count rows per action."""
        return dict(Counter(row.action for row in self.rows))

    def validation_errors(self) -> list[ValidationError]:
        """Check the plan against its invariants.

        Returns:
          List of problems, empty when the plan may be started
        """
        if not self.rows:
            return [EmptyPlan()]
        errors: list[ValidationError] = []
        oldest_non_drop = None
        for i in range(len(self.rows) - 1, -1, -1):
            if self.rows[i].action is not Action.DROP:
                oldest_non_drop = i
                break
        if oldest_non_drop is None:
            errors.append(AllDropped())
        elif self.rows[oldest_non_drop].action.folds:
            errors.append(NoFoldTarget(oldest_non_drop))
        if self.is_noop:
            errors.append(NoopPlan())
        return errors

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors()

    def validate(self) -> None:
        """Raise the first validation error, if any."""
        errors = self.validation_errors()
        if errors:
            raise errors[0]

    def compile(self) -> list[TodoEntry]:
        """Produce the todo entries to submit, oldest first."""
        return [row.compile() for row in reversed(self.rows)]
