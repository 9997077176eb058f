#!/usr/bin/env python3
"""Move the floating major tag (e.g. v1) to a freshly created release tag.

semantic-release invokes this as a successCmd with ${nextRelease.version}
as the only argument:

    tag-major 1.2.3

The version may be bare (1.2.3) or prefixed (v1.2.3); the release tag is
always addressed with the v prefix.
"""

from __future__ import annotations

import argparse
import logging
import re
import subprocess
import sys
from dataclasses import dataclass
from typing import Any, Callable, NoReturn, Protocol

from tag_major_shared import annotate, configure_logging, log_event


LOGGER = logging.getLogger("landfall.tag_major")
PROG = "tag-major"
DEFAULT_REMOTE = "origin"
STABLE_SEMVER_RE = re.compile(r"v?\d+\.\d+\.\d+", flags=re.ASCII)
MAJOR_PREFIX_RE = re.compile(r"v?(\d+)\.", flags=re.ASCII)


class TagMajorError(Exception):
    """Base class for failures that end a tag-major run."""


class MissingArgumentError(TagMajorError, ValueError):
    pass


class InvalidVersionError(TagMajorError, ValueError):
    pass


class GitCommandError(TagMajorError, RuntimeError):
    def __init__(self, cmd: list[str], returncode: int | None, detail: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        message = f"{' '.join(self.cmd)} failed"
        if returncode is not None:
            message += f" with exit code {returncode}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


@dataclass(frozen=True)
class ReleaseVersion:
    canonical: str
    alias: str


class GitOps(Protocol):
    def check_working_tree(self) -> None: ...

    def force_tag_update(self, alias: str, target: str) -> None: ...

    def force_push(self, remote: str, ref: str) -> None: ...


class GitCli:
    """Runs git with inherited stdio so its own diagnostics reach the operator."""

    def __init__(
        self,
        repo_root: str | None = None,
        runner: Callable[..., Any] | None = None,
    ) -> None:
        self.repo_root = repo_root
        self._runner = runner if runner is not None else subprocess.run

    def command(self, *args: str) -> list[str]:
        if self.repo_root:
            return ["git", "-C", self.repo_root, *args]
        return ["git", *args]

    def _run(self, *args: str) -> None:
        cmd = self.command(*args)
        LOGGER.debug("running %s", " ".join(cmd))
        try:
            self._runner(cmd, check=True)
        except subprocess.CalledProcessError as exc:
            raise GitCommandError(cmd, exc.returncode) from exc
        except OSError as exc:
            raise GitCommandError(cmd, None, str(exc)) from exc

    def check_working_tree(self) -> None:
        self._run("rev-parse", "--is-inside-work-tree")

    def force_tag_update(self, alias: str, target: str) -> None:
        self._run("tag", "-f", alias, commit_of(target))

    def force_push(self, remote: str, ref: str) -> None:
        self._run("push", "--force", remote, ref)


class DryRunGit:
    """Delegates read-only checks; prints mutating commands instead of running them."""

    def __init__(self, inner: GitCli) -> None:
        self._inner = inner

    def check_working_tree(self) -> None:
        self._inner.check_working_tree()

    def force_tag_update(self, alias: str, target: str) -> None:
        self._print(self._inner.command("tag", "-f", alias, commit_of(target)))

    def force_push(self, remote: str, ref: str) -> None:
        self._print(self._inner.command("push", "--force", remote, ref))

    @staticmethod
    def _print(cmd: list[str]) -> None:
        print(f"[dry-run] {' '.join(cmd)}", flush=True)


def commit_of(ref: str) -> str:
    """Peel annotated tags so the alias names the release commit, not the tag object."""
    return f"{ref}^{{commit}}"


def canonicalize_version(version: str) -> str:
    return version if version.startswith("v") else f"v{version}"


def major_alias(version: str) -> str:
    """Return 'vN' for 'N.x.y' or 'vN.x.y'."""
    match = MAJOR_PREFIX_RE.match(version)
    if not match:
        raise InvalidVersionError(f'invalid semver version "{version}"')
    return f"v{match.group(1)}"


def parse_release_version(raw: str | None) -> ReleaseVersion:
    if not raw:
        raise MissingArgumentError("missing version argument")
    # Pre-release and build suffixes never move the major tag.
    if not STABLE_SEMVER_RE.fullmatch(raw):
        raise InvalidVersionError(f'invalid semver version "{raw}"')

    canonical = canonicalize_version(raw)
    return ReleaseVersion(canonical=canonical, alias=major_alias(canonical))


def update_major_tag(release: ReleaseVersion, git: GitOps, *, remote: str = DEFAULT_REMOTE) -> None:
    git.check_working_tree()

    # Flushed so the line precedes git output when stdout is a pipe.
    print(f"Updating major tag {release.alias} -> {release.canonical}", flush=True)
    log_event(
        LOGGER,
        logging.INFO,
        "tag_major_started",
        alias=release.alias,
        target=release.canonical,
        remote=remote,
    )

    git.force_tag_update(release.alias, release.canonical)
    git.force_push(remote, release.alias)


class HookArgumentParser(argparse.ArgumentParser):
    """Usage errors exit 1 like every other rejected input (argparse defaults to 2)."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        annotate("error", f"{self.prog}: {message}")
        self.exit(1)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = HookArgumentParser(
        prog=PROG,
        description="Force-move the major version tag (vN) to a release tag and push it.",
    )
    # Optional at the parser level so a missing version exits 1, not argparse's 2.
    parser.add_argument("version", nargs="?", help="Release version, e.g. 1.2.3 or v1.2.3.")
    parser.add_argument("--remote", default=DEFAULT_REMOTE, help="Remote to force-push the major tag to.")
    parser.add_argument("--repo-root", default=None, help="Repository to operate on (default: cwd).")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the working-tree check but only print the tag and push commands.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Structured log verbosity written to stderr.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        release = parse_release_version(args.version)
    except ValueError as exc:
        annotate("error", f"{PROG}: {exc}")
        log_event(LOGGER, logging.ERROR, "tag_major_invalid_input", version=args.version, error=str(exc))
        return 1

    cli = GitCli(args.repo_root)
    git: GitOps = DryRunGit(cli) if args.dry_run else cli

    try:
        update_major_tag(release, git, remote=args.remote)
    except GitCommandError as exc:
        annotate("error", f"{PROG}: {exc}")
        log_event(
            LOGGER,
            logging.ERROR,
            "tag_major_git_failed",
            command=exc.cmd,
            returncode=exc.returncode,
        )
        return 1

    log_event(
        LOGGER,
        logging.INFO,
        "tag_major_updated",
        alias=release.alias,
        target=release.canonical,
        remote=args.remote,
        dry_run=args.dry_run,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
