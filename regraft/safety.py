# safety.py -- Pre-flight warnings for interactive rebases
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

"""Warnings shown before a plan is submitted.

The gate is advisory: warnings never block a run, they only require the
user to confirm before it starts.
"""

from dataclasses import dataclass
from enum import Enum

from .config import DEFAULT_STEP_WARNING_THRESHOLD
from .planner import Plan


class WarningKind(Enum):
    """Kinds of pre-flight warning."""

    MANY_STEPS = "many_steps"
    PUBLISHED_HISTORY = "published_history"


@dataclass(frozen=True)
class SafetyWarning:
    """A single pre-flight warning."""

    kind: WarningKind
    message: str


def compute_warnings(
    plan: Plan, step_threshold: int = DEFAULT_STEP_WARNING_THRESHOLD
) -> list[SafetyWarning]:
    """Compute the warnings for submitting ``plan``.

    Args:
      plan: Plan about to be submitted
      step_threshold: Number of steps above which to suggest a narrower base
    Returns: List of warnings, empty if the plan can start right away
    """
    warnings = []
    steps = len(plan)
    if steps > step_threshold:
        warnings.append(
            SafetyWarning(
                WarningKind.MANY_STEPS,
                f"You are about to perform {steps} interactive rebase steps. "
                "Consider limiting the number of commits by choosing a more "
                "recent base commit.",
            )
        )
    pushed = plan.pushed_count
    if pushed:
        if pushed == 1:
            what = "1 commit that has"
        else:
            what = f"{pushed} commits that have"
        warnings.append(
            SafetyWarning(
                WarningKind.PUBLISHED_HISTORY,
                f"You are about to rebase {what} already been pushed. "
                "This will rewrite published history and may cause issues "
                "for collaborators.",
            )
        )
    return warnings
