"""CLI for lfs-client."""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .client import LfsClient, TransferState
from .config import Settings, load_config
from .constants import CHUNK_SIZE
from .errors import LfsError
from .local_cache import ObjectStore
from .pointer import Pointer
from .utils import humanize_size, short_oid


app = typer.Typer(help="""\
Git LFS client: build pointers, push and fetch objects through the batch
API, and manage the local object store.""")

cache_app = typer.Typer(help="Inspect and prune the local object store")
app.add_typer(cache_app, name="cache")

console = Console()


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging for all commands."""
    level = logging.DEBUG if verbose or os.environ.get("DEBUG") else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _settings(config: Optional[Path]) -> Settings:
    try:
        return load_config(config)
    except ValueError as e:
        console.print(f"[red]✗[/red] Invalid configuration: {e}")
        raise typer.Exit(1)


def _open_store(settings: Settings, store_dir: Optional[Path]) -> ObjectStore:
    return ObjectStore(store_dir or settings.cache_dir)


def _make_client(settings: Settings, remote: Optional[str]) -> LfsClient:
    return LfsClient(settings.client_config(remote=remote))


def _read_pointers(files: List[Path]) -> List[Tuple[Path, Pointer]]:
    pointers = []
    for path in files:
        content = path.read_bytes()
        if not Pointer.is_pointer(content):
            raise LfsError(f"{path} is not an LFS pointer file")
        pointers.append((path, Pointer.parse(content)))
    return pointers


def _fail(e: Exception) -> None:
    console.print(f"[red]✗[/red] {e}")
    raise typer.Exit(1)


@app.command()
def pointer(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to describe"),
):
    """Print the pointer text git-lfs would commit for FILE."""
    with file.open("rb") as f:
        p = Pointer.from_stream(f)
    typer.echo(p.encode(), nl=False)


@app.command()
def push(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to upload"),
    remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Git remote URL"),
    write_pointer: bool = typer.Option(False, "--write-pointer", help="Replace each file with its pointer after upload"),
    store_dir: Optional[Path] = typer.Option(None, "--store", help="Object store directory"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file"),
):
    """Upload FILES to the LFS server and cache them locally."""
    settings = _settings(config)
    try:
        store = _open_store(settings, store_dir)
        with _make_client(settings, remote) as client:
            for path in files:
                with path.open("rb") as f:
                    p = Pointer.from_stream(f)
                state = client.upload_file(p, path)
                _cache_file(store, p, path)
                label = "already on server" if state is TransferState.ALREADY_SATISFIED else "uploaded"
                console.print(
                    f"[green]✓[/green] {path} {short_oid(p.oid)} ({humanize_size(p.size)}) {label}"
                )
                if write_pointer:
                    path.write_bytes(p.encode_bytes())
    except LfsError as e:
        _fail(e)


def _cache_file(store: ObjectStore, p: Pointer, path: Path) -> None:
    """Copy a pushed file into the store; the cache is optional."""
    if store.contains_valid(p):
        return
    try:
        with path.open("rb") as src, store.writer(p.oid, verify=True) as w:
            for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
                w.write(chunk)
            w.finish()
    except (LfsError, OSError) as e:
        logging.getLogger(__name__).warning("Could not cache %s: %s", path, e)


@app.command()
def fetch(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Pointer files"),
    remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Git remote URL"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write content here instead of replacing the pointer files"),
    store_dir: Optional[Path] = typer.Option(None, "--store", help="Object store directory"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file"),
):
    """Resolve pointer FILES to content, from the store when possible."""
    settings = _settings(config)
    try:
        store = _open_store(settings, store_dir)
        pointers = _read_pointers(files)
        missing = [(path, p) for path, p in pointers if store.get_verified(p) is None]

        if missing:
            with _make_client(settings, remote) as client:
                for path, p in missing:
                    client.download_to_store(p, store)
                    console.print(f"[green]↓[/green] {path} {short_oid(p.oid)} ({humanize_size(p.size)})")

        for path, p in pointers:
            dest = (output / path.name) if output else path
            dest.parent.mkdir(parents=True, exist_ok=True)
            tmp = dest.with_name(f".{dest.name}.fetch")
            shutil.copyfile(store.path_for(p.oid), tmp)
            os.replace(tmp, dest)
        console.print(f"[green]✓[/green] {len(pointers)} file(s) resolved, {len(missing)} downloaded")
    except LfsError as e:
        _fail(e)


@app.command()
def check(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Pointer files"),
    remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Git remote URL"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file"),
):
    """Report which pointer FILES the server can serve."""
    settings = _settings(config)
    try:
        pointers = _read_pointers(files)
        with _make_client(settings, remote) as client:
            existing = set(client.check_exists([p for _, p in pointers]))
    except LfsError as e:
        _fail(e)

    missing = 0
    for path, p in pointers:
        if p.oid in existing:
            console.print(f"[green]✓[/green] {path} {short_oid(p.oid)}")
        else:
            missing += 1
            console.print(f"[red]✗[/red] {path} {short_oid(p.oid)} not on server")
    if missing:
        raise typer.Exit(1)


@cache_app.command(name="stats")
def cache_stats(
    store_dir: Optional[Path] = typer.Option(None, "--store", help="Object store directory"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file"),
):
    """Show object count and total size of the store."""
    try:
        store = _open_store(_settings(config), store_dir)
    except LfsError as e:
        _fail(e)

    table = Table(show_header=False, box=None)
    table.add_row("Location", str(store.root))
    table.add_row("Objects", str(store.count()))
    table.add_row("Size", humanize_size(store.size()))
    console.print(table)


@cache_app.command(name="prune")
def cache_prune(
    keep: List[Path] = typer.Option([], "--keep", "-k", help="Pointer file whose object must be kept (repeatable)"),
    store_dir: Optional[Path] = typer.Option(None, "--store", help="Object store directory"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file"),
):
    """Delete every stored object not referenced by a --keep pointer file."""
    try:
        store = _open_store(_settings(config), store_dir)
        keep_oids = {p.oid for _, p in _read_pointers(keep)}
        reclaimed = store.prune(keep_oids)
    except LfsError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Pruned store, reclaimed {humanize_size(reclaimed)}")


@cache_app.command(name="verify")
def cache_verify(
    remove: bool = typer.Option(False, "--remove", help="Delete corrupted objects"),
    store_dir: Optional[Path] = typer.Option(None, "--store", help="Object store directory"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file"),
):
    """Re-hash every stored object and report corrupted entries."""
    try:
        store = _open_store(_settings(config), store_dir)
        bad = []
        for oid, path in store.iter_objects():
            with path.open("rb") as f:
                actual = Pointer.from_stream(f)
            if actual.oid != oid:
                bad.append(oid)
                console.print(f"[red]✗[/red] {oid} is corrupted")
                if remove:
                    store.remove(oid)
    except LfsError as e:
        _fail(e)
    if bad and not remove:
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Verified store, {len(bad)} corrupted object(s)")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
