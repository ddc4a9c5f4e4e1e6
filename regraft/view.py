# view.py -- Presentation state kept next to a plan
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

"""Which rows a front end shows expanded.

Expansion is keyed on row identity so it survives reordering. It is not part
of :class:`regraft.planner.Plan`; front ends that do not care can ignore it.
"""

from typing import Optional

from .objects import Action
from .planner import Plan


class PlanView:
    """Expansion state for the rows of a plan."""

    def __init__(self, plan: Plan) -> None:
        self.plan = plan
        self.expanded: set[str] = set()

    def is_expanded(self, index: int) -> bool:
        return self.plan[index].id in self.expanded

    def set_expanded(self, index: int, expanded: bool) -> None:
        row_id = self.plan[index].id
        if expanded:
            self.expanded.add(row_id)
        else:
            self.expanded.discard(row_id)

    def set_action(self, index: int, action: Action) -> Optional[int]:
        """Change a row's action and expand the rows the user should look at.

        A row switched to ``reword`` is expanded, and so is a fold target
        whose message was just composed.
        """
        target = self.plan.set_action(index, action)
        if action is Action.REWORD:
            self.set_expanded(index, True)
        if target is not None:
            self.set_expanded(target, True)
        return target

    def reset_all(self) -> None:
        """Reset every action to ``pick`` and collapse all rows."""
        self.plan.reset_all()
        self.expanded.clear()
