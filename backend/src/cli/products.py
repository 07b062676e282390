"""Product management commands backed by the REST API."""

from typing import Any, Dict, List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from backend.src.api.schemas.product_schemas import MAX_PRICE, MAX_STOCK, ProductResponse
from backend.src.core.config import settings
from backend.src.services.product_client import (
    ProductApiClient,
    ProductApiError,
    ProductNotFoundError,
)

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 255

console = Console()

products_app = typer.Typer(help="List, create, edit and delete products", no_args_is_help=True)


def open_client(api_url: str, token: Optional[str]) -> ProductApiClient:
    """Client for the API at ``api_url``."""
    return ProductApiClient(base_url=api_url, token=token)


def format_price(price: float) -> str:
    return f"${price:,.2f}"


def product_table(products: List[ProductResponse], title: str) -> Table:
    """Rich table with one row per product."""
    table = Table(title=title)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="green")
    table.add_column("Price", style="magenta", justify="right")
    table.add_column("Stock", style="yellow", justify="right")
    table.add_column("Updated", style="dim")

    for product in products:
        table.add_row(
            str(product.id),
            escape(product.name),
            format_price(product.price),
            f"{product.stock:,}",
            product.updated_at.strftime("%b %d, %Y %H:%M"),
        )
    return table


def _check_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if len(value) < MIN_NAME_LENGTH:
        raise typer.BadParameter(f"Product name must be at least {MIN_NAME_LENGTH} characters")
    if len(value) > MAX_NAME_LENGTH:
        raise typer.BadParameter(f"Product name must not exceed {MAX_NAME_LENGTH} characters")
    return value


def _client(ctx: typer.Context) -> ProductApiClient:
    return open_client(ctx.obj["api_url"], ctx.obj["token"])


def _require_token(ctx: typer.Context) -> None:
    if not ctx.obj["token"]:
        console.print("[red]❌ A token is required (--token or API_TOKEN)[/red]")
        raise typer.Exit(code=1)


def _fail(action: str, error: ProductApiError) -> NoReturn:
    if isinstance(error, ProductNotFoundError):
        console.print("[red]❌ Product not found[/red]")
    else:
        console.print(f"[red]❌ Failed to {action}: {escape(error.message)}[/red]")
        for detail in error.errors:
            field = ".".join(str(part) for part in detail.get("loc", [])[1:]) or "body"
            console.print(f"   [red]{field}: {escape(str(detail.get('msg')))}[/red]")
    raise typer.Exit(code=1) from error


@products_app.callback()
def products_callback(
    ctx: typer.Context,
    api_url: str = typer.Option(settings.API_URL, "--api-url", help="Base URL of the Stockroom API"),
    token: Optional[str] = typer.Option(
        settings.API_TOKEN, "--token", "-t", help="Bearer token for create, update and delete"
    ),
) -> None:
    """Manage products through the Stockroom API."""
    ctx.obj = {"api_url": api_url, "token": token}


@products_app.command("list")
def list_products(ctx: typer.Context) -> None:
    """List all products, most recently updated first."""
    try:
        with _client(ctx) as api:
            products = api.list_products()
    except ProductApiError as e:
        _fail("fetch products", e)

    if not products:
        console.print("[yellow]No products found[/yellow]")
        return

    console.print(product_table(products, title="Products"))
    console.print(f"\n[green]Found {len(products)} products[/green]")


@products_app.command("get")
def get_product(
    ctx: typer.Context,
    product_id: int = typer.Argument(..., min=1, help="Product ID"),
) -> None:
    """Show one product."""
    try:
        with _client(ctx) as api:
            product = api.get_product(product_id)
    except ProductApiError as e:
        _fail("fetch product", e)

    console.print(product_table([product], title=escape(product.name)))


@products_app.command("create")
def create_product(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", callback=_check_name, help="Product name"),
    price: float = typer.Option(..., "--price", "-p", min=0, max=MAX_PRICE, help="Unit price"),
    stock: int = typer.Option(..., "--stock", "-s", min=0, max=MAX_STOCK, help="Units in stock"),
) -> None:
    """Create a product."""
    _require_token(ctx)
    try:
        with _client(ctx) as api:
            product = api.create_product(name, price, stock)
    except ProductApiError as e:
        _fail("create product", e)

    console.print(f"[green]✅ Created product '{escape(product.name)}' (ID {product.id})[/green]")
    console.print(product_table([product], title="Created"))


@products_app.command("update")
def update_product(
    ctx: typer.Context,
    product_id: int = typer.Argument(..., min=1, help="Product ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n", callback=_check_name, help="New name"),
    price: Optional[float] = typer.Option(None, "--price", "-p", min=0, max=MAX_PRICE, help="New price"),
    stock: Optional[int] = typer.Option(None, "--stock", "-s", min=0, max=MAX_STOCK, help="New stock"),
) -> None:
    """Change some fields of a product; fields left out keep their value."""
    changes: Dict[str, Any] = {
        field: value
        for field, value in (("name", name), ("price", price), ("stock", stock))
        if value is not None
    }
    if not changes:
        console.print("[red]❌ Nothing to update: pass --name, --price or --stock[/red]")
        raise typer.Exit(code=1)

    _require_token(ctx)
    try:
        with _client(ctx) as api:
            product = api.update_product(product_id, changes)
    except ProductApiError as e:
        _fail("update product", e)

    console.print(f"[green]✅ Updated product '{escape(product.name)}'[/green]")
    console.print(product_table([product], title="Updated"))


@products_app.command("delete")
def delete_product(
    ctx: typer.Context,
    product_id: int = typer.Argument(..., min=1, help="Product ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Delete a product."""
    _require_token(ctx)
    try:
        with _client(ctx) as api:
            product = api.get_product(product_id)
            if not yes and not Confirm.ask(
                f'Are you sure you want to delete "{escape(product.name)}"? This action cannot be undone.',
                console=console,
            ):
                console.print("[yellow]Deletion cancelled[/yellow]")
                return
            api.delete_product(product_id)
    except ProductApiError as e:
        _fail("delete product", e)

    console.print(f"[green]✅ Deleted product '{escape(product.name)}'[/green]")
