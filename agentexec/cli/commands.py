"""CLI commands for agentexec."""

import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from agentexec import __logo__, __version__
from agentexec.exec.approvals import derive_command_key
from agentexec.exec.platform_commands import adapt_command_for_platform
from agentexec.exec.runner import exec_apply_patch

app = typer.Typer(
    name="agentexec",
    help=f"{__logo__} agentexec - execution core for coding agents",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} agentexec v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logs on stderr"),
):
    """agentexec - execution core for coding agents."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


# ============================================================================
# Patch Commands
# ============================================================================


@app.command("apply-patch")
def apply_patch_cmd(
    cwd: Path = typer.Option(Path("."), "--cwd", help="Directory patch paths are relative to"),
):
    """Apply a patch read from stdin."""
    patch_text = sys.stdin.read()
    if not patch_text:
        err_console.print("[red]Please pass patch text through stdin[/red]")
        raise typer.Exit(1)

    result = exec_apply_patch(patch_text, str(cwd.resolve()))
    if result.exit_code != 0:
        err_console.print(result.stderr, style="red", markup=False)
        raise typer.Exit(result.exit_code)

    console.print(result.stdout, markup=False)


# ============================================================================
# Inspection Commands
# ============================================================================


@app.command("key")
def key_cmd(
    command: list[str] = typer.Argument(help="Command argv (use -- before it)"),
):
    """Show the approval key a command is cached under."""
    console.print(derive_command_key(command), markup=False)


@app.command("adapt")
def adapt_cmd(
    command: list[str] = typer.Argument(help="Command argv (use -- before it)"),
    platform: str = typer.Option(sys.platform, "--platform", help="Target platform, e.g. win32"),
):
    """Show how a command is rewritten for a platform."""
    adapted, needs_shell = adapt_command_for_platform(command, platform)

    table = Table(title=f"Command adaptation ({platform})")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("original", " ".join(command))
    table.add_row("adapted", " ".join(adapted))
    table.add_row("needs shell", "yes" if needs_shell else "no")
    console.print(table)


if __name__ == "__main__":
    app()
