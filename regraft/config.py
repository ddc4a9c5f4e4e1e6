# config.py -- Regraft settings read from git configuration
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

"""Settings for regraft.

Settings live in the ``[regraft]`` section of the usual git configuration
files, so they can be set per repository or globally::

    [regraft]
        stepWarningThreshold = 8
        includePushed = true
        autostash = false
        gitPath = /usr/local/bin/git

``REGRAFT_GIT`` in the environment overrides ``gitPath``.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from dulwich.config import Config
from dulwich.repo import Repo

SECTION = (b"regraft",)

DEFAULT_STEP_WARNING_THRESHOLD = 5


@dataclass
class RegraftConfig:
    """Resolved regraft settings."""

    step_warning_threshold: int = DEFAULT_STEP_WARNING_THRESHOLD
    include_pushed: bool = False
    autostash: bool = True
    git_path: str = "git"

    @classmethod
    def from_config(
        cls, config: Config, environ: Optional[Mapping[str, str]] = None
    ) -> "RegraftConfig":
        """Build settings from a dulwich config object.

        Args:
          config: Config (or StackedConfig) to read from
          environ: Environment to consult for overrides, defaults to
            os.environ

        Raises:
          ValueError: if a setting holds a value of the wrong type
        """
        if environ is None:
            environ = os.environ

        settings = cls()
        try:
            raw = config.get(SECTION, b"stepWarningThreshold")
        except KeyError:
            pass
        else:
            try:
                settings.step_warning_threshold = int(raw)
            except ValueError:
                raise ValueError(
                    f"regraft.stepWarningThreshold: not an integer: {raw!r}"
                )
            if settings.step_warning_threshold < 0:
                raise ValueError(
                    f"regraft.stepWarningThreshold: must not be negative: {raw!r}"
                )

        settings.include_pushed = _get_boolean(
            config, b"includePushed", settings.include_pushed
        )
        settings.autostash = _get_boolean(config, b"autostash", settings.autostash)

        try:
            settings.git_path = config.get(SECTION, b"gitPath").decode()
        except KeyError:
            pass
        if environ.get("REGRAFT_GIT"):
            settings.git_path = environ["REGRAFT_GIT"]
        return settings


def _get_boolean(config: Config, name: bytes, default: bool) -> bool:
    try:
        return config.get_boolean(SECTION, name, default)
    except ValueError:
        raise ValueError(
            f"regraft.{name.decode()}: not a valid boolean: "
            f"{config.get(SECTION, name)!r}"
        )


def load_config(repo_path: str) -> RegraftConfig:
    """Read regraft settings for the repository containing ``repo_path``.

    The repository, global and system configuration files all apply, with
    the usual git precedence.
    """
    with Repo.discover(repo_path) as repo:
        return RegraftConfig.from_config(repo.get_config_stack())
