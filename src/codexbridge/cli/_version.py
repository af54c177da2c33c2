"""Version information CLI command."""

from __future__ import annotations

import click
from rich.console import Console

from codexbridge import __version__

console = Console()


@click.command()
@click.option("--json", "as_json", is_flag=True, default=False)
def version_cmd(as_json: bool) -> None:
    """Show version information."""
    import importlib.metadata
    import platform
    import shutil

    def _dist_version(name: str) -> str:
        try:
            return importlib.metadata.version(name)
        except importlib.metadata.PackageNotFoundError:
            return "not installed"

    info = {
        "codexbridge": __version__,
        "python": platform.python_version(),
        "platform": platform.system().lower(),
        "slack_sdk": _dist_version("slack-sdk"),
        "codex_cli": shutil.which("codex") or "not found",
    }

    if as_json:
        import json

        click.echo(json.dumps(info, indent=2))
        return

    console.print(f"[bold]codexbridge[/bold] {info['codexbridge']}")
    for key in ("python", "platform", "slack_sdk", "codex_cli"):
        console.print(f"  {key:<10} {info[key]}")
