"""Operator CLI for the Campus cache.

Provides command-line interface using Typer:
- campus-cache clear: Clear a tenant, or one course/user inside it
- campus-cache keys: List live keys of a tenant
- campus-cache stats: Backend and read-through statistics
- campus-cache warm: Run registered warmers for a tenant
- campus-cache clear-expired: Drop expired entries the backend still holds
- campus-cache flush: Delete every key of the service namespace
- campus-cache serve: Run the operator API server

Usage:
    campus-cache clear --tenant acme --course 42
    campus-cache keys --tenant acme --domain course --limit 20
    campus-cache warm --tenant acme --only dashboard
    campus-cache flush --yes
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import orjson
import typer

from campus.cache.errors import UnknownWarmerError
from campus.cache.keys import CacheDomain
from campus.cache.runtime import CacheRuntime, close_runtime, get_runtime, init_runtime
from campus.config import settings

app = typer.Typer(
    name="campus-cache",
    help="Campus tenant cache: inspect and clear cached read-models",
    no_args_is_help=True,
)


@asynccontextmanager
async def cache_runtime() -> AsyncIterator[CacheRuntime]:
    """The installed runtime, or one built from settings for this command."""
    try:
        installed: CacheRuntime | None = get_runtime()
    except RuntimeError:
        installed = None
    if installed is not None:
        yield installed
        return

    runtime = await init_runtime(settings)
    try:
        yield runtime
    finally:
        await close_runtime()


def _validate_domain(value: str | None) -> str | None:
    if value is not None and value not in {d.value for d in CacheDomain}:
        choices = ", ".join(d.value for d in CacheDomain)
        raise typer.BadParameter(f"Unknown domain {value!r} (choose from: {choices})")
    return value


def _echo_json(data: Any) -> None:
    typer.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2, default=str).decode())


@app.command()
def clear(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant id"),
    course: str | None = typer.Option(None, "--course", "-c", help="Only this course"),
    user: str | None = typer.Option(None, "--user", "-u", help="Only this user"),
) -> None:
    """Clear cached read-models of a tenant.

    Without --course or --user every key of the tenant is deleted.
    """

    async def run() -> bool:
        async with cache_runtime() as runtime:
            manager = runtime.manager
            if course is None and user is None:
                return await manager.clear_tenant_cache(tenant)
            cleared = True
            if course is not None:
                cleared = await manager.clear_course_related_cache(course, tenant) and cleared
            if user is not None:
                cleared = await manager.clear_user_related_cache(user, tenant) and cleared
            return cleared

    cleared = asyncio.run(run())
    targets = []
    if course is not None:
        targets.append(f"course {course}")
    if user is not None:
        targets.append(f"user {user}")
    what = ", ".join(targets) or "all entries"
    if not cleared:
        typer.echo(f"Failed to clear {what} of tenant {tenant}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Cleared {what} of tenant {tenant}")


@app.command()
def keys(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant id"),
    domain: str | None = typer.Option(
        None, "--domain", "-d", help="Cache domain", callback=_validate_domain
    ),
    limit: int = typer.Option(100, "--limit", "-n", min=1, help="Maximum keys to list"),
) -> None:
    """List live cache keys of a tenant."""

    async def run() -> list[str]:
        async with cache_runtime() as runtime:
            return await runtime.manager.list_tenant_keys(tenant, domain, limit=limit)

    found = asyncio.run(run())
    for key in found:
        typer.echo(key)
    typer.echo(f"{len(found)} key(s)", err=True)


@app.command()
def stats() -> None:
    """Show backend statistics as JSON."""

    async def run() -> dict[str, Any]:
        async with cache_runtime() as runtime:
            return await runtime.manager.get_cache_stats()

    _echo_json(asyncio.run(run()))


@app.command()
def warm(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant id"),
    only: list[str] | None = typer.Option(
        None, "--only", "-o", help="Run only this warmer (repeatable)"
    ),
) -> None:
    """Fill the cache of a tenant through the registered warmers."""

    async def run() -> dict[str, bool]:
        async with cache_runtime() as runtime:
            return await runtime.manager.warm_up_tenant_cache(tenant, only=only or None)

    try:
        results = asyncio.run(run())
    except UnknownWarmerError as e:
        raise typer.BadParameter(str(e), param_hint="--only") from e

    if not results:
        typer.echo("No cache warmers registered")
        return
    for name, ok in results.items():
        typer.echo(f"{name}: {'ok' if ok else 'failed'}")
    if not all(results.values()):
        raise typer.Exit(1)


@app.command("clear-expired")
def clear_expired() -> None:
    """Drop expired entries the backend still holds."""

    async def run() -> int:
        async with cache_runtime() as runtime:
            return await runtime.manager.clear_expired_cache()

    removed = asyncio.run(run())
    typer.echo(f"Removed {removed} expired key(s)")


@app.command()
def flush(
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm deleting the whole namespace"),
) -> None:
    """Delete every key of the configured namespace."""
    if not yes:
        typer.echo("Refusing to flush without --yes", err=True)
        raise typer.Abort()

    async def run() -> int:
        async with cache_runtime() as runtime:
            return await runtime.manager.flush_namespace()

    deleted = asyncio.run(run())
    typer.echo(f"Flushed {deleted} key(s) from namespace {settings.cache_namespace}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8080, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
    log_level: str = typer.Option("info", "--log-level", "-l", help="Uvicorn log level"),
) -> None:
    """Run the operator API server."""
    import uvicorn

    typer.echo(f"Starting {settings.app_name} on http://{host}:{port}")
    uvicorn.run(
        app="campus.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
