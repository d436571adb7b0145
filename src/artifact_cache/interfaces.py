"""Collect interface summaries for every Python source file in a context."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence, Set, Tuple

from .fileinfo.context import FileInfoContext
from .providers import INTERFACE_PROMPT_INFO_TYPE

BEGIN_MARKER = "===== BEGIN FILE_INTERFACES ====="
END_MARKER = "===== END FILE_INTERFACES ====="
FILE_SEPARATOR = "\n\n--- FILE_SEPARATOR ---\n\n"
IGNORED_PARTS = frozenset({".git", ".venv", "venv", "node_modules", "__pycache__", "build", "dist"})
LOGGER = logging.getLogger(__name__)


def _run_git_path_command(root: Path, command: Sequence[str]) -> Tuple[Set[Path], bool]:
    try:
        output = subprocess.check_output(
            command,
            cwd=root,
            stderr=subprocess.DEVNULL,
            text=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return set(), False
    paths: Set[Path] = set()
    for line in output.splitlines():
        candidate = line.strip()
        if candidate:
            paths.add(Path(candidate))
    return paths, True


def _is_test_path(relative: Path) -> bool:
    name = relative.name
    if name == "conftest.py" or name.startswith("test_") or name.endswith("_test.py"):
        return True
    return "tests" in relative.parts[:-1] or "test" in relative.parts[:-1]


def list_python_sources(context: FileInfoContext, *, include_tests: bool = False) -> List[Path]:
    """Return repo-relative Python source paths for ``context``, sorted."""
    root = context.root
    collected: Set[Path] = set()
    tracked, tracked_ok = _run_git_path_command(root, ["git", "ls-files"])
    if tracked_ok:
        collected.update(tracked)
        untracked, _ = _run_git_path_command(root, ["git", "ls-files", "--others", "--exclude-standard"])
        collected.update(untracked)
    if not collected:
        for path in root.rglob("*.py"):
            try:
                collected.add(path.relative_to(root))
            except ValueError:
                continue

    cache_root = context.store.cache_root
    sources: List[Path] = []
    for relative in collected:
        if relative.suffix != ".py":
            continue
        if IGNORED_PARTS.intersection(relative.parts):
            continue
        if not include_tests and _is_test_path(relative):
            continue
        absolute = root / relative
        if cache_root == absolute or cache_root in absolute.parents:
            continue
        if not absolute.is_file():
            continue
        sources.append(relative)
    return sorted(sources, key=lambda entry: entry.as_posix())


async def collect_interfaces(context: FileInfoContext, *, include_tests: bool = False) -> str:
    """Join the ``interfacePrompt`` info of every source file into one prompt block."""
    prompts: List[str] = []
    for relative in list_python_sources(context, include_tests=include_tests):
        try:
            prompt = await context.get_info(INTERFACE_PROMPT_INFO_TYPE, relative.as_posix())
        except OSError:
            LOGGER.warning("Skipping %s: unable to read file", relative, exc_info=True)
            continue
        if prompt:
            prompts.append(prompt)

    if not prompts:
        return ""
    return f"{BEGIN_MARKER}\n{FILE_SEPARATOR.join(prompts)}\n{END_MARKER}"
