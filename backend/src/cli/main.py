"""Main CLI application module."""

import typer

from backend.src.cli.activity_feed import watch
from backend.src.cli.products import products_app

app = typer.Typer(
    help="Stockroom command line: manage products and watch their activity",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("watch")(watch)
app.add_typer(products_app, name="products")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
