import json
from pathlib import Path

import click
from flask import current_app

from services.receipt_cleanup import RECEIPT_BUCKET, cleanup_old_receipts
from shop.errors import OrderStoreError
from shop.services.menu_import import import_menu
from shop.services.order_poller import OrderStatusPoller
from shop.services.session_store import MemorySessionStore


def _components() -> dict:
    return current_app.extensions["storefront_components"]


@click.command("import-menu")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_menu_command(path):
    """Load categories, products and payment methods from a JSON file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    counts = import_menu(data, _components()["catalog"], _components()["payments"])
    click.echo(
        f"Imported {counts['categories']} categories, {counts['products']} products, "
        f"{counts['payment_methods']} payment methods"
    )


@click.command("cleanup-receipts")
@click.option("--bucket", default=RECEIPT_BUCKET, show_default=True)
def cleanup_receipts_command(bucket):
    """Delete payment receipts older than one day."""
    result = cleanup_old_receipts(_components()["receipts"], bucket)
    click.echo(json.dumps(result, default=str))


@click.command("set-order-status")
@click.argument("order_id")
@click.argument("status")
def set_order_status_command(order_id, status):
    try:
        order = _components()["orders"].update_status(order_id, status)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="status")
    except OrderStoreError as exc:
        raise click.ClickException(str(exc))
    if order is None:
        raise click.ClickException(f"order {order_id} not found")
    click.echo(f"{order['id']} -> {order['status']}")


@click.command("track-order")
@click.argument("order_id")
@click.option("--max-ticks", type=int, default=None)
def track_order_command(order_id, max_ticks):
    """Poll an order until it is approved or rejected."""
    settings = current_app.config["SHOP_SETTINGS"]
    poller = OrderStatusPoller(_components()["orders"], MemorySessionStore(), interval=settings.order_poll_interval)
    if poller.open(order_id) is None:
        raise click.ClickException(poller.last_error or f"order {order_id} not found")
    click.echo(f"{order_id}: {poller.status_text()}")
    ticks = 0
    while poller.should_poll() and (max_ticks is None or ticks < max_ticks):
        previous = poller.status
        poller.run(max_ticks=1)
        ticks += 1
        if poller.status != previous:
            click.echo(f"{order_id}: {poller.status_text()}")
    poller.close()


def register_cli(app):
    app.cli.add_command(import_menu_command)
    app.cli.add_command(cleanup_receipts_command)
    app.cli.add_command(set_order_status_command)
    app.cli.add_command(track_order_command)
