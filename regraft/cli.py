#!/usr/bin/env python3
#
# regraft - Plan and run interactive rebases
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

"""Command line interface for regraft.

The interactive front end is a session driven step by step; this module
drives the same session non-interactively. A run is described with
per-commit options::

    regraft rebase origin/main --action abc1234=squash \\
        --message def5678="Better subject" --yes

and resumed with ``regraft continue``, ``regraft skip`` or
``regraft abort`` after it stops.
"""

import argparse
import logging
import signal
import sys
import types
from collections.abc import Sequence
from typing import Optional

from dulwich.errors import NotGitRepository
from dulwich.mailmap import parse_identity
from dulwich.repo import Repo

from .config import load_config
from .errors import BackendError
from .git import GitBackend
from .log_utils import _configure_logging_from_trace
from .objects import Action
from .planner import Plan, ValidationError
from .session import Phase, RebaseSession

logger = logging.getLogger(__name__)


def signal_int(signal: int, frame: Optional[types.FrameType]) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def open_session(path: str = ".", base: Optional[str] = None) -> RebaseSession:
    """Create a session for the work tree containing ``path``.

    Raises:
      NotGitRepository: if ``path`` is not inside a git repository
      ValueError: if the regraft configuration is invalid
    """
    with Repo.discover(path) as repo:
        root = repo.path
    config = load_config(root)
    backend = GitBackend(root, git_path=config.git_path, autostash=config.autostash)
    return RebaseSession(backend, base=base, config=config)


def parse_assignment(value: str) -> tuple[str, str]:
    """Split a ``HASH=VALUE`` command line argument."""
    commitish, sep, rest = value.partition("=")
    if not sep or not commitish.strip():
        raise argparse.ArgumentTypeError(f"expected HASH=VALUE, got {value!r}")
    return commitish.strip(), rest


def parse_author(value: str) -> tuple[str, str]:
    """Parse ``Name <email>`` into its parts.

    Raises:
      ValueError: if the value is not of that form
    """
    if "<" not in value:
        raise ValueError(f"expected 'Name <email>', got {value!r}")
    name, email = parse_identity(value.strip().encode("utf-8"))
    if not name or email is None:
        raise ValueError(f"expected 'Name <email>', got {value!r}")
    return name.decode("utf-8"), email.decode("utf-8")


def format_step(current: Optional[int], total: Optional[int]) -> str:
    if current is None or total is None:
        return ""
    return f" ({current}/{total})"


def report(session: RebaseSession) -> int:
    """Log the outcome of the last session operation.

    Returns: Exit code
    """
    phase = session.phase
    if phase is Phase.COMPLETED:
        logger.info("%s", session.completion_message)
        return 0
    if phase is Phase.STOPPED_AT_EDIT:
        stop = session.edit_stop
        assert stop is not None
        short = (stop.commit_hash or "")[:7]
        subject = stop.original_message.splitlines()[0] if stop.original_message else ""
        logger.info(
            "Stopped at %s%s: %s",
            short,
            format_step(stop.current_step, stop.total_steps),
            subject,
        )
        logger.info(
            "Amend the commit, then run 'regraft continue' "
            "(optionally with --message/--author)."
        )
        return 0
    if phase is Phase.CONFLICTS:
        logger.error("Rebase stopped due to conflicts in:")
        for path in session.conflict_files:
            logger.error("  %s", path)
        logger.error(
            "Resolve and stage them, then run 'regraft continue', "
            "or 'regraft skip' to drop the commit."
        )
        return 1
    if session.error:
        logger.error("%s", session.error)
    return 1


class Command:
    """A regraft subcommand."""

    def run(self, args: Sequence[str]) -> Optional[int]:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_log(Command):
    """List the commits that a rebase onto BASE would rewrite."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="regraft log")
        parser.add_argument("base", nargs="?", help="Base commit or ref")
        parser.add_argument(
            "--include-pushed",
            action="store_true",
            help="Include commits that exist on a remote",
        )
        parsed_args = parser.parse_args(args)
        session = open_session(".", parsed_args.base)
        if parsed_args.include_pushed:
            session.include_pushed = True
        if not session.load():
            logger.error("%s", session.error)
            return 1
        for row in session.plan:
            commit = row.commit
            marker = "*" if commit.is_pushed else " "
            sys.stdout.write(
                f"{commit.short_hash} {marker} {commit.author_name:<20.20} "
                f"{commit.subject}\n"
            )
        assert session.commit_range is not None
        hidden = session.commit_range.hidden_pushed_count
        if hidden:
            logger.info(
                "%d pushed commit(s) hidden; use --include-pushed to show them.",
                hidden,
            )
        return 0


def apply_plan_options(plan: Plan, parsed_args: argparse.Namespace) -> None:
    """Apply --order, --action, --message and --author to a plan.

    Raises:
      KeyError: if a hash does not identify exactly one row
      ValueError: for an unknown action or malformed author
    """
    if parsed_args.order:
        hashes = [h.strip() for h in parsed_args.order.split(",") if h.strip()]
        for position, commitish in enumerate(hashes):
            plan.reorder(plan.find(commitish), position)
    for commitish, message in parsed_args.message:
        plan.set_message(plan.find(commitish), message)
    for commitish, author in parsed_args.author:
        name, email = parse_author(author)
        plan.set_author(plan.find(commitish), name, email)
    # Actions last: squash composes messages from the final order.
    for commitish, action in parsed_args.action:
        plan.set_action(plan.find(commitish), Action.from_string(action))


class cmd_rebase(Command):
    """Plan and start an interactive rebase."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="regraft rebase")
        parser.add_argument("base", nargs="?", help="Base commit or ref")
        parser.add_argument(
            "--action",
            action="append",
            default=[],
            type=parse_assignment,
            metavar="HASH=ACTION",
            help="Set the action for a commit (pick, reword, edit, squash, "
            "fixup, drop)",
        )
        parser.add_argument(
            "--message",
            action="append",
            default=[],
            type=parse_assignment,
            metavar="HASH=TEXT",
            help="New message for a commit",
        )
        parser.add_argument(
            "--author",
            action="append",
            default=[],
            type=parse_assignment,
            metavar="HASH=NAME <EMAIL>",
            help="New author for a commit",
        )
        parser.add_argument(
            "--order",
            type=str,
            metavar="HASH,...",
            help="Commits in their new order, newest first",
        )
        parser.add_argument(
            "--include-pushed",
            action="store_true",
            help="Include commits that exist on a remote",
        )
        parser.add_argument(
            "--yes", "-y", action="store_true", help="Accept safety warnings"
        )
        parsed_args = parser.parse_args(args)

        session = open_session(".", parsed_args.base)
        if parsed_args.include_pushed:
            session.include_pushed = True
        if not session.load():
            logger.error("%s", session.error)
            return 1

        try:
            apply_plan_options(session.plan, parsed_args)
        except KeyError as e:
            logger.error("No unique commit matches %s", e.args[0])
            return 1
        except (ValidationError, ValueError, IndexError) as e:
            logger.error("%s", e)
            return 1

        session.start()
        if session.awaiting_confirmation:
            for warning in session.pending_warnings:
                logger.warning("%s", warning.message)
            if not parsed_args.yes:
                logger.error("Not starting; pass --yes to proceed anyway.")
                session.decline()
                return 1
            session.confirm()
        return report(session)


def _resumed_session() -> Optional[RebaseSession]:
    session = open_session(".")
    session.resume()
    if session.phase is Phase.PLANNING:
        logger.error("%s", session.error or "No rebase in progress.")
        return None
    return session


class cmd_continue(Command):
    """Continue a stopped rebase, optionally amending the paused commit."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="regraft continue")
        parser.add_argument("--message", "-m", type=str, help="New commit message")
        parser.add_argument(
            "--author", type=str, metavar="NAME <EMAIL>", help="New commit author"
        )
        parsed_args = parser.parse_args(args)
        session = _resumed_session()
        if session is None:
            return 1
        if session.phase is Phase.CONFLICTS:
            session.continue_after_conflicts()
            return report(session)
        stop = session.edit_stop
        assert stop is not None
        if parsed_args.message is None and parsed_args.author is None:
            session.skip()
            return report(session)
        if parsed_args.message is not None:
            stop.message = parsed_args.message
        if parsed_args.author is not None:
            try:
                stop.author_name, stop.author_email = parse_author(parsed_args.author)
            except ValueError as e:
                logger.error("%s", e)
                return 1
        session.amend_and_continue()
        return report(session)


class cmd_skip(Command):
    """Skip the commit a rebase stopped at."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="regraft skip")
        parser.parse_args(args)
        session = _resumed_session()
        if session is None:
            return 1
        if session.phase is Phase.CONFLICTS:
            session.skip_conflicted_commit()
        else:
            session.skip()
        return report(session)


class cmd_abort(Command):
    """Abort a rebase and restore the original branch."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="regraft abort")
        parser.parse_args(args)
        session = _resumed_session()
        if session is None:
            return 1
        session.abort()
        if session.error:
            logger.error("%s", session.error)
            return 1
        logger.info("Rebase aborted.")
        return 0


class cmd_status(Command):
    """Show the state of a rebase in progress."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="regraft status")
        parser.parse_args(args)
        session = open_session(".")
        status = session.backend.rebase_status()
        if not status.in_progress:
            logger.info("No rebase in progress.")
            return 0
        short = (status.stopped_commit_hash or "")[:7]
        step = format_step(status.current_step, status.total_steps)
        if status.conflict_files:
            logger.info("Stopped at %s%s with conflicts:", short, step)
            for path in status.conflict_files:
                logger.info("  %s", path)
        else:
            logger.info("Stopped at %s%s for editing.", short, step)
        if status.stopped_commit_message:
            logger.info("%s", status.stopped_commit_message.splitlines()[0])
        return 0


class cmd_help(Command):
    """Show help information."""

    def run(self, args: Sequence[str]) -> int:
        logger.info("The following commands are supported:")
        for cmd, kls in sorted(commands.items()):
            logger.info("  %-10s %s", cmd, (kls.__doc__ or "").strip())
        return 0


commands = {
    "abort": cmd_abort,
    "continue": cmd_continue,
    "help": cmd_help,
    "log": cmd_log,
    "rebase": cmd_rebase,
    "skip": cmd_skip,
    "status": cmd_status,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the regraft CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="regraft",
        description="Plan and run interactive rebases",
    )
    parser.add_argument(
        "command",
        help=f"Command to run. Available: {', '.join(sorted(commands))}",
    )
    parser.add_argument("args", nargs=argparse.REMAINDER)
    if not argv:
        parser.print_help()
        return 1
    parsed_args = parser.parse_args(argv)

    # Try to configure from GIT_TRACE, fall back to default if it fails
    if not _configure_logging_from_trace():
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
        )

    try:
        cmd_kls = commands[parsed_args.command]
    except KeyError:
        logging.fatal("No such subcommand: %s", parsed_args.command)
        return 1
    try:
        return cmd_kls().run(parsed_args.args) or 0
    except NotGitRepository as e:
        logger.error("%s", e)
        return 1
    except (BackendError, ValueError) as e:
        logger.error("%s", e)
        return 1


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)
    sys.exit(main())


if __name__ == "__main__":
    _main()
