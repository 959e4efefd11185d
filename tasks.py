"""Invoke tasks for day-to-day autoprune development.

Every task shells out to ``uv`` so the virtual environment defined by
pyproject.toml is the one exercised locally and in CI.
"""

from __future__ import annotations

import shlex
import shutil
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"
SOURCE_DIRS = ("src", "tests")


def _uv(ctx: Context, *args: str, dry_run: bool = False) -> None:
    """Run ``uv`` with ``args``, or just print the command during dry runs."""
    command = shlex.join(("uv", *args))
    if dry_run:
        print(f"[dry-run] {command}")
        return
    ctx.run(command, echo=True, pty=True)


@task(
    help={
        "dev": "Also install the test and dev extras.",
        "dry_run": "Print the uv command without executing it.",
    }
)
def sync(ctx: Context, dev: bool = True, dry_run: bool = False) -> None:
    """Synchronize the virtual environment with pyproject.toml."""
    args: list[str] = ["sync"]
    if dev:
        args.extend(["--extra", "test", "--extra", "dev"])
    _uv(ctx, *args, dry_run=dry_run)


@task(
    help={
        "clean": "Remove existing artifacts from dist/ before building.",
        "dry_run": "Print the build command without executing it.",
    }
)
def build(ctx: Context, clean: bool = False, dry_run: bool = False) -> None:
    """Build sdist and wheel into dist/."""
    if dry_run:
        if clean:
            print(f"[dry-run] remove {DIST_DIR}")
        _uv(ctx, "build", dry_run=True)
        return
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _uv(ctx, "build")


@task(
    help={
        "k": "pytest -k expression for test selection.",
        "path": "Path or module to test (defaults to tests/).",
        "options": "Additional flags forwarded verbatim to pytest.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite."""
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    args.extend(shlex.split(options))
    args.append(path)
    _uv(ctx, *args)


@task(help={"fix": "Apply Ruff auto-fixes.", "check_format": "Run `ruff format --check` first."})
def lint(ctx: Context, fix: bool = False, check_format: bool = False) -> None:
    """Run Ruff over the sources and tests."""
    if check_format:
        _uv(ctx, "run", "ruff", "format", "--check", *SOURCE_DIRS)
    args: list[str] = ["run", "ruff", "check", *SOURCE_DIRS]
    if fix:
        args.append("--fix")
    _uv(ctx, *args)


@task
def mypy(ctx: Context) -> None:
    """Type-check the package."""
    _uv(ctx, "run", "mypy", "src")


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks and tests the way CI does."""
    ctx.invoke(lint, check_format=True)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, build, tests, lint, mypy, ci)
