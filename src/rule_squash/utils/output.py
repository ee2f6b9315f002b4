"""Rich console output utilities."""

from rich.console import Console
from rich.markup import escape


console = Console()


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}", style="red")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_warnings(warnings: list[str]) -> None:
    """Print every collected warning, one per line, without markup."""
    for warning in warnings:
        print_warning(escape(warning))
