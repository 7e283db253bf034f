from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.text import Text

from syncwatch.config import (
    SyncWatchConfig,
    default_bucket,
    default_endpoint,
    load_config,
    save_config,
    validate_endpoint,
)
from syncwatch.errors import ConfigError
from syncwatch.filters import PathFilter, build_path_filter
from syncwatch.hash_store import HashStore
from syncwatch.log import setup_logging
from syncwatch.object_store import ObjectStoreClient
from syncwatch.reconciler import ReconcileResult, Reconciler, SyncAction
from syncwatch.retry import RetryPolicy
from syncwatch.scanner import discover_files
from syncwatch.watcher import DEFAULT_DEBOUNCE_MS, DirectoryWatcher


EMPTY_OBJECT_MESSAGE = "no contents in file"

app = typer.Typer(help="SyncWatch CLI")
console = Console()


def build_object_store(config: SyncWatchConfig) -> ObjectStoreClient:
    access_key, secret_key = config.resolved_credentials()
    return ObjectStoreClient(
        endpoint_url=config.resolved_endpoint(),
        access_key=access_key,
        secret_key=secret_key,
        region=config.region,
        retry_policy=RetryPolicy(max_attempts=config.max_attempts),
    )


def build_reconciler(config: SyncWatchConfig, object_store: ObjectStoreClient | None = None) -> Reconciler:
    return Reconciler(
        config.local_root_path,
        store=HashStore(),
        object_store=object_store or build_object_store(config),
        bucket=config.bucket,
    )


def _path_filter(config: SyncWatchConfig, include: tuple[str, ...], exclude: tuple[str, ...]) -> PathFilter:
    return build_path_filter([*config.include, *include], [*config.exclude, *exclude])


def _load_config_or_report() -> SyncWatchConfig | None:
    try:
        return load_config()
    except (FileNotFoundError, ConfigError) as exc:
        console.print(f"[red]{exc}[/red]")
        return None


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(f"  {path}")


def _render_results(results: list[ReconcileResult]) -> int:
    uploaded = sorted(
        r.path for r in results if r.ok and r.action in {SyncAction.CREATED, SyncAction.UPDATED}
    )
    deleted = sorted(r.path for r in results if r.ok and r.action is SyncAction.DELETED)
    unchanged = [r.path for r in results if r.action is SyncAction.UNCHANGED]
    failed = sorted(r.path for r in results if not r.ok)

    _render_path_summary("Uploaded", uploaded, "green")
    _render_path_summary("Deleted remote", deleted, "yellow")
    _render_path_summary("Failed", failed, "red")
    if not uploaded and not deleted and not failed:
        console.print("[green]Nothing to sync.[/green]")
    console.print(f"Skipped unchanged: {len(unchanged)}")
    return len(failed)


@app.command()
def init(
    bucket: str | None = typer.Argument(None, help="Target bucket. Defaults to $S3_BUCKET or test-bucket."),
    endpoint: str | None = typer.Option(
        None,
        "--endpoint",
        help="S3-compatible endpoint URL. Defaults to $S3_STORAGE_URL.",
    ),
    root: Path = typer.Option(
        Path("."),
        "--root",
        help="Directory to watch.",
    ),
    region: str = typer.Option("local", "--region", help="Region name passed to the S3 client."),
) -> None:
    """Write a SyncWatch config in the current directory."""
    try:
        endpoint_url = validate_endpoint(endpoint or default_endpoint())
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    config = SyncWatchConfig(
        bucket=bucket or default_bucket(),
        local_root=str(root.expanduser().resolve()),
        endpoint_url=endpoint_url,
        region=region,
    )
    path = save_config(config)
    console.print(f"[green]Initialized SyncWatch[/green] for {config.local_root_path}")
    console.print(f"Config: {path}")
    console.print(f"Bucket: {config.bucket}")
    if not config.endpoint_url:
        console.print("[yellow]No endpoint configured; the default AWS endpoint will be used.[/yellow]")
    access_key, secret_key = config.resolved_credentials()
    if not access_key or not secret_key:
        console.print(
            "[yellow]S3_ACCESS_KEY / S3_SECRET_KEY not found in environment. "
            "Set them or add access_key/secret_key to the config file.[/yellow]"
        )


async def _watch_async(
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    *,
    initial_sync: bool,
    debounce: int,
) -> int:
    config = _load_config_or_report()
    if config is None:
        return 1

    path_filter = _path_filter(config, include, exclude)
    reconciler = build_reconciler(config)

    if initial_sync:
        paths = discover_files(config.local_root_path, path_filter)
        console.print(f"Initial sync of {len(paths)} file(s) ...")
        _render_results(await reconciler.sync_all(paths))

    watcher = DirectoryWatcher(
        config.local_root_path,
        reconciler,
        path_filter=path_filter,
        debounce=debounce,
    )
    return 0 if await watcher.run() else 1


@app.command()
def watch(
    include: list[str] | None = typer.Option(
        None,
        "--include",
        help="Include glob pattern(s) for paths to watch (repeatable).",
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude glob pattern(s) for paths to skip (repeatable).",
    ),
    initial_sync: bool = typer.Option(
        False,
        "--initial-sync/--no-initial-sync",
        help="Upload every existing file once before watching.",
    ),
    debounce: int = typer.Option(
        DEFAULT_DEBOUNCE_MS,
        "--debounce",
        help="Milliseconds to group filesystem events.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log unchanged files and hashes."),
) -> None:
    """Watch the configured directory and mirror changes to the bucket."""
    setup_logging(logging.DEBUG if verbose else logging.INFO, console=console)
    try:
        code = asyncio.run(
            _watch_async(
                tuple(include or ()),
                tuple(exclude or ()),
                initial_sync=initial_sync,
                debounce=debounce,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching.[/yellow] Uploads in flight may not have completed.")
        code = 130
    raise typer.Exit(code=code)


async def _scan_async(include: tuple[str, ...], exclude: tuple[str, ...]) -> int:
    config = _load_config_or_report()
    if config is None:
        return 1

    local_root = config.local_root_path
    if not local_root.is_dir():
        console.print(f"[red]Configured local_root does not exist: {local_root}[/red]")
        return 1

    reconciler = build_reconciler(config)
    paths = discover_files(local_root, _path_filter(config, include, exclude))
    console.print(f"Scanning [bold]{local_root}[/bold] ({len(paths)} file(s)) ...")
    failures = _render_results(await reconciler.sync_all(paths))
    return 1 if failures else 0


@app.command()
def scan(
    include: list[str] | None = typer.Option(
        None,
        "--include",
        help="Include glob pattern(s) for paths to upload (repeatable).",
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude glob pattern(s) for paths to skip (repeatable).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log hashes and skipped files."),
) -> None:
    """Upload every file under the configured directory once."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING, console=console)
    try:
        code = asyncio.run(_scan_async(tuple(include or ()), tuple(exclude or ())))
    except KeyboardInterrupt:
        console.print("[yellow]Scan interrupted.[/yellow] Some files were not uploaded.")
        code = 130
    raise typer.Exit(code=code)


async def _show_async(key: str) -> int:
    config = _load_config_or_report()
    if config is None:
        return 1

    result = await build_object_store(config).get_async(config.bucket, key)
    if not result.ok:
        console.print(f"[red]{result.error}[/red]")
        return 1
    if not result.found:
        console.print(EMPTY_OBJECT_MESSAGE)
        return 0
    console.print(Text(result.data.decode("utf-8", errors="replace")))
    return 0


@app.command()
def show(key: str = typer.Argument("story.txt", help="Object key to read back.")) -> None:
    """Print the text of one object from the bucket."""
    raise typer.Exit(code=asyncio.run(_show_async(key)))
