"""Foodiii CLI — run the server, watch live orders, administer admins.

Usage:
    foodiii serve                                  # Run the API server
    foodiii watch                                  # Live order feed (admin WebSocket)
    foodiii orders --status pending                # List orders (admin)
    foodiii set-status <order-id> shipped          # Change an order's status
    foodiii stats                                  # Order counts and revenue
    foodiii create-admin admin@foodiii.dev         # Create or promote an admin
    foodiii check-admin admin@foodiii.dev          # Inspect an admin account
    foodiii set-admin-password admin@foodiii.dev   # Reset an admin's password
    foodiii gen-secret                             # Print a random JWT secret

HTTP commands talk to FOODIII_API_URL with the admin token in FOODIII_TOKEN.
Admin account commands go straight to the configured database.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import os
import secrets
import sys
from typing import Optional

import click
import httpx

from foodiii import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:7000"


def _api_url() -> str:
    return os.environ.get("FOODIII_API_URL", DEFAULT_API_URL).rstrip("/")


def _token() -> Optional[str]:
    return os.environ.get("FOODIII_TOKEN") or None


def _client() -> httpx.AsyncClient:
    """Async HTTP client pointed at the Foodiii API, with the admin token."""
    headers = {}
    token = _token()
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


def _ws_url() -> str:
    """ws(s)://…/ws/admin?token=… derived from the API URL."""
    base = _api_url()
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    url = f"{base}/ws/admin"
    token = _token()
    return f"{url}?token={token}" if token else url


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run a coroutine from a synchronous click handler.

    Inside an already running loop (e.g. an async test) it runs on a
    worker thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table. columns: (header, dict_key, width)."""
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    colors = {
        "pending": "yellow",
        "processing": "cyan",
        "shipped": "blue",
        "delivered": "green",
        "cancelled": "red",
    }
    return colors.get(status, "white")


def _fail(message: str):
    click.secho(message, fg="red", err=True)
    sys.exit(1)


def _check(r: httpx.Response):
    """Exit with the API's error message on auth and validation failures."""
    if r.status_code in (401, 403):
        _fail("Not authorized. Set FOODIII_TOKEN to an admin access token.")
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        _fail(f"Error {r.status_code}: {detail}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="foodiii")
def main():
    """Foodiii — food ordering platform with a live admin order feed."""


# ---------------------------------------------------------------------------
# foodiii serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: FOODIII_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: FOODIII_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API and WebSocket server."""
    import uvicorn

    from foodiii.config import settings

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    uvicorn.run(
        "foodiii.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# foodiii watch
# ---------------------------------------------------------------------------


@main.command()
@click.option("--max-retries", default=5, show_default=True, help="Reconnect attempts before giving up")
def watch(max_retries: int):
    """Follow new orders and status changes as they happen."""
    try:
        _run(_watch_impl(max_retries))
    except KeyboardInterrupt:
        click.echo()


def _print_order_event(event: str, order: dict):
    status = order.get("status", "?")
    status_str = click.style(status, fg=_status_color(status))
    number = order.get("orderNumber") or order.get("_id")
    if event == "created":
        total = order.get("totalAmount", 0)
        click.echo(f"  {click.style('NEW', fg='green', bold=True)}  {number}  {status_str}  {total:.2f}")
    else:
        click.echo(f"  {click.style('UPD', fg='cyan')}  {number}  -> {status_str}")


async def _watch_impl(max_retries: int):
    from foodiii.realtime.client import DashboardClient

    client = DashboardClient(_ws_url(), max_reconnect_attempts=max_retries)
    client.on_connection_change(
        lambda connected: click.secho(
            "● connected" if connected else "○ disconnected",
            fg="green" if connected else "red",
            err=True,
        )
    )
    client.on_order_event(_print_order_event)

    click.secho(f"Watching {_api_url()} for order updates (Ctrl+C to stop)", bold=True)
    await client.connect()
    try:
        await client.wait_stopped()
    finally:
        await client.disconnect()

    if client.gave_up:
        _fail(f"Gave up after {client.reconnect_attempts} reconnect attempts.")


# ---------------------------------------------------------------------------
# foodiii orders
# ---------------------------------------------------------------------------


@main.command()
@click.option("--status", "-s", "status_filter", help="Filter by status")
@click.option("--page", default=1, show_default=True)
@click.option("--limit", "-l", default=20, show_default=True, help="Orders per page")
def orders(status_filter: Optional[str], page: int, limit: int):
    """List orders, newest first."""
    _run(_orders_impl(status_filter, page, limit))


async def _orders_impl(status_filter: Optional[str], page: int, limit: int):
    async with _client() as c:
        params: dict = {"page": page, "limit": limit}
        if status_filter:
            params["status"] = status_filter
        r = await c.get("/api/v1/admin/orders", params=params)
        _check(r)
        body = r.json()

    if not body["data"]:
        click.echo("No orders found.")
        return

    click.secho(
        f"Orders (page {body['current_page']}/{max(body['total_pages'], 1)}, "
        f"{body['total']} total):",
        bold=True,
    )
    click.echo()
    _print_table(body["data"], [
        ("ID", "id", 36),
        ("Number", "order_number", 22),
        ("Status", "status", 11),
        ("Total", "total_amount", 10),
        ("Email", "email", 30),
    ])


# ---------------------------------------------------------------------------
# foodiii set-status
# ---------------------------------------------------------------------------


@main.command("set-status")
@click.argument("order_id")
@click.argument("status")
def set_status(order_id: str, status: str):
    """Set ORDER_ID's status (pending, processing, shipped, delivered, cancelled)."""
    _run(_set_status_impl(order_id, status))


async def _set_status_impl(order_id: str, status: str):
    async with _client() as c:
        r = await c.put(f"/api/v1/admin/orders/{order_id}/status", json={"status": status})
        _check(r)
        order = r.json()

    status_str = click.style(order["status"], fg=_status_color(order["status"]))
    click.echo(f"Order {order['order_number']} → {status_str}")


# ---------------------------------------------------------------------------
# foodiii stats
# ---------------------------------------------------------------------------


@main.command()
def stats():
    """Order counts and revenue by status."""
    _run(_stats_impl())


async def _stats_impl():
    async with _client() as c:
        r = await c.get("/api/v1/admin/orders/stats")
        _check(r)
        data = r.json()

    click.secho(
        f"Orders: {data['total_orders']}   Revenue: {data['total_revenue']:.2f}",
        bold=True,
    )
    for s in data["statuses"]:
        status_str = click.style(f"{s['status']:12s}", fg=_status_color(s["status"]))
        click.echo(f"  {status_str}  {s['count']:5d}  {s['amount']:10.2f}")


# ---------------------------------------------------------------------------
# Admin accounts (direct database access)
# ---------------------------------------------------------------------------


def _session():
    from foodiii.db import engine as db_engine

    return db_engine.async_session_factory()


@main.command("create-admin")
@click.argument("email")
@click.option("--name", default="Admin", show_default=True)
@click.password_option(help="Password (prompted if omitted)")
def create_admin(email: str, name: str, password: str):
    """Create an admin account, or promote an existing user to admin."""
    _run(_create_admin_impl(email, name, password))


async def _create_admin_impl(email: str, name: str, password: str):
    from foodiii.services.user_service import UserService

    if len(password) < 6:
        _fail("Password must be at least 6 characters.")

    async with _session() as db:
        svc = UserService(db)
        user = await svc.get_by_email(email)
        if user:
            if user.role == "admin":
                click.secho(f"{user.email} is already an admin.", fg="yellow")
                return
            await svc.promote_to_admin(user)
            click.secho(f"Promoted {user.email} to admin.", fg="green")
            return
        user = await svc.create_user(name=name, email=email, password=password, role="admin")
        click.secho(f"Created admin {user.email} ({user.id}).", fg="green")


@main.command("check-admin")
@click.argument("email")
def check_admin(email: str):
    """Show whether EMAIL exists, is an admin and is active."""
    _run(_check_admin_impl(email))


async def _check_admin_impl(email: str):
    from foodiii.services.user_service import UserService

    async with _session() as db:
        user = await UserService(db).get_by_email(email)

    if not user:
        _fail(f"No user with email {email}.")

    role_str = click.style(user.role, fg="green" if user.role == "admin" else "yellow")
    active_str = click.style(
        "active" if user.is_active else "inactive",
        fg="green" if user.is_active else "red",
    )
    click.echo(f"  {user.email}  {user.name}  role={role_str}  {active_str}")
    click.echo(f"  id={user.id}  created={user.created_at:%Y-%m-%d %H:%M}")
    if user.role != "admin":
        sys.exit(1)


@main.command("set-admin-password")
@click.argument("email")
@click.password_option(help="New password (prompted if omitted)")
def set_admin_password(email: str, password: str):
    """Reset the password of admin EMAIL."""
    _run(_set_admin_password_impl(email, password))


async def _set_admin_password_impl(email: str, password: str):
    from foodiii.services.user_service import UserService

    if len(password) < 6:
        _fail("Password must be at least 6 characters.")

    async with _session() as db:
        svc = UserService(db)
        user = await svc.get_by_email(email)
        if not user or user.role != "admin":
            _fail(f"No admin with email {email}.")
        await svc.set_password(user, password)
    click.secho(f"Password updated for {email}.", fg="green")


# ---------------------------------------------------------------------------
# foodiii gen-secret
# ---------------------------------------------------------------------------


@main.command("gen-secret")
@click.option("--bytes", "nbytes", default=64, show_default=True, help="Random bytes")
def gen_secret(nbytes: int):
    """Print a random secret for FOODIII_JWT_SECRET."""
    click.echo(secrets.token_hex(nbytes))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
