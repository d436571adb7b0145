"""CLI commands for inspecting and maintaining the derived-info cache."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml

from .fileinfo import CircularDependencyError, ContextFactory, FileInfoContext, InvalidContextUsage
from .interfaces import collect_interfaces

APP_HELP = "Derived-artifact cache CLI entry point."
DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "project": {
        "name": "",
        "repo_root": ".",
    },
    "paths": {
        "cache": ".cache",
        "config": DEFAULT_CONFIG_NAME,
    },
    "cache": {
        "coalesce": True,
    },
}

app = typer.Typer(help=APP_HELP)


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def _load_optional_config(config_path: Path) -> Dict[str, Any]:
    """Load the config when present; read-only commands fall back to defaults."""
    if not config_path.exists():
        return {}
    return load_config(config_path)


def _build_factory(config: str, repository_dir: Optional[Path]) -> ContextFactory:
    config_path = Path(config)
    config_data = _load_optional_config(config_path)
    factory = ContextFactory.from_config(config_data, config_path.resolve() if config_path.exists() else None)
    if repository_dir is not None:
        factory.default_root = repository_dir.resolve()
    return factory


def _select_context(
    factory: ContextFactory,
    worktree_dir: Optional[Path],
) -> FileInfoContext:
    if worktree_dir is not None:
        return factory.worktree(worktree_dir)
    return factory.repository()


def _render_data(data: Any) -> str:
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2, sort_keys=False)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level for cache diagnostics (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Configure logging before running a command."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file to create.",
    ),
    cache_dir: Optional[str] = typer.Option(
        None,
        "--cache-dir",
        help="Cache directory relative to the repository root.",
    ),
) -> None:
    """Write a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        typer.echo(f"Configuration already exists at {config_path}.")
        return
    config_data = _copy_config_template()
    config_data["paths"]["config"] = config_path.name
    if cache_dir and cache_dir.strip():
        config_data["paths"]["cache"] = cache_dir.strip()
    _write_config(config_path, config_data)
    typer.echo(f"Created configuration at {config_path}.")


@app.command()
def info(
    info_type: str = typer.Argument(..., help="Info type to retrieve (e.g. ast, interface, interfacePrompt)."),
    file_name: str = typer.Argument(..., help="Path relative to the repository or worktree root."),
    repository_dir: Optional[Path] = typer.Option(
        None,
        "--repository-dir",
        "-r",
        help="Repository root (defaults to project.repo_root or the current directory).",
    ),
    worktree_dir: Optional[Path] = typer.Option(
        None,
        "--worktree-dir",
        "-w",
        help="Optional worktree root; results are cached per worktree.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
) -> None:
    """Print cached or freshly extracted info for a single file."""
    factory = _build_factory(config, repository_dir)
    try:
        context = _select_context(factory, worktree_dir)
        result = asyncio.run(context.lookup(info_type, file_name))
    except (CircularDependencyError, InvalidContextUsage, OSError) as error:
        typer.echo(f"Failed to get '{info_type}' for '{file_name}': {error}")
        raise typer.Exit(code=1) from error

    if not result.hit:
        reason = result.reason.value if result.reason is not None else "unknown"
        typer.echo(f"No '{info_type}' data for '{file_name}' ({reason}).")
        return
    typer.echo(_render_data(result.data))


@app.command()
def interfaces(
    repository_dir: Optional[Path] = typer.Option(
        None,
        "--repository-dir",
        "-r",
        help="Repository root (defaults to project.repo_root or the current directory).",
    ),
    worktree_dir: Optional[Path] = typer.Option(
        None,
        "--worktree-dir",
        "-w",
        help="Optional worktree root to summarise instead of the repository.",
    ),
    include_tests: bool = typer.Option(
        False,
        "--include-tests/--no-include-tests",
        help="Include test modules in the summary.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
) -> None:
    """Print the interface summary block for every Python source file."""
    factory = _build_factory(config, repository_dir)
    try:
        context = _select_context(factory, worktree_dir)
        block = asyncio.run(collect_interfaces(context, include_tests=include_tests))
    except (CircularDependencyError, InvalidContextUsage) as error:
        typer.echo(f"Failed to collect interfaces: {error}")
        raise typer.Exit(code=1) from error

    if not block:
        typer.echo("No interfaces found.")
        return
    typer.echo(block)


@app.command()
def clear_cache(
    worktree_dir: Path = typer.Option(
        ...,
        "--worktree-dir",
        "-w",
        help="Worktree whose cache should be deleted.",
    ),
    repository_dir: Optional[Path] = typer.Option(
        None,
        "--repository-dir",
        "-r",
        help="Repository root (defaults to project.repo_root or the current directory).",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
) -> None:
    """Delete the cache entries owned by one worktree."""
    factory = _build_factory(config, repository_dir)
    context = factory.worktree(worktree_dir)
    if asyncio.run(context.delete_cache()):
        typer.echo(f"Deleted cache for worktree {worktree_dir.resolve().name}.")
    else:
        typer.echo(f"No cache found for worktree {worktree_dir.resolve().name}.")


@app.command()
def status(
    repository_dir: Optional[Path] = typer.Option(
        None,
        "--repository-dir",
        "-r",
        help="Repository root (defaults to project.repo_root or the current directory).",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
) -> None:
    """Report the cache location, registered providers, and entry counts."""
    factory = _build_factory(config, repository_dir)
    repository = factory.repository()
    store = factory.store()

    typer.echo(f"Repository: {repository.repository_root}")
    typer.echo(f"Cache root: {store.cache_root}")
    typer.echo(f"Providers: {', '.join(factory.registry().info_types()) or '(none)'}")
    typer.echo(f"Repository entries: {sum(1 for _ in store.iter_entries(repository))}")

    worktrees = store.list_worktree_caches()
    if not worktrees:
        typer.echo("No worktree caches.")
        return
    typer.echo("Worktree caches:")
    for name in worktrees:
        count = sum(1 for _ in (store.worktrees_cache_root / name).glob("*.info"))
        typer.echo(f"- {name}: {count} entr{'y' if count == 1 else 'ies'}")


if __name__ == "__main__":
    app()
