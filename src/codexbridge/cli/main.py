"""
CodexBridge CLI entry point.

Commands:
  codexbridge start         — run the Slack bot in the foreground
  codexbridge check-config  — validate configuration and print it (secrets redacted)
  codexbridge version       — show version information
"""

from __future__ import annotations

import asyncio
import shutil

import click
from rich.console import Console
from rich.table import Table

from codexbridge import __version__
from codexbridge.cli._version import version_cmd
from codexbridge.core.constants import ExitCode

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="codexbridge %(version)s")
@click.option("--log-level", default=None, help="Log level (overrides the config file).")
@click.option("--log-json", is_flag=True, default=False, help="Emit JSON log lines.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_json: bool) -> None:
    """CodexBridge — run the Codex CLI from Slack threads."""
    from codexbridge.core.logging import configure_logging

    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["log_json"] = log_json
    configure_logging(level=log_level or "INFO", json_output=log_json)


cli.add_command(version_cmd, name="version")


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.toml (default: $CODEXBRIDGE_CONFIG or the platform config dir).",
)
@click.option("--env-file", default=".env", show_default=True, help="dotenv file to load.")
@click.pass_context
def start(ctx: click.Context, config_path: str | None, env_file: str) -> None:
    """Run the Slack bot in the foreground until interrupted."""
    from codexbridge.core.config import load_config
    from codexbridge.core.daemon.manager import BotDaemon
    from codexbridge.core.exceptions import ConfigError
    from codexbridge.core.logging import configure_logging

    try:
        cfg = load_config(config_path, env_file=env_file)
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc

    if ctx.obj.get("log_level") is None:
        configure_logging(
            level=cfg.logging.level,
            json_output=ctx.obj.get("log_json") or cfg.logging.format == "json",
        )

    if shutil.which(cfg.codex.command) is None:
        err_console.print(
            f"[red]Error:[/red] '{cfg.codex.command}' not found on PATH. "
            "Install it with: npm install -g @openai/codex"
        )
        raise SystemExit(ExitCode.DEPENDENCY_MISSING)

    console.print(
        f"[bold]CodexBridge[/bold] {__version__} — provider [cyan]{cfg.codex.provider}[/cyan]"
        + (f", model [cyan]{cfg.codex.model}[/cyan]" if cfg.codex.model else "")
    )
    console.print("Listening for mentions. Press Ctrl+C to stop.")
    asyncio.run(BotDaemon(cfg).run())


# ---------------------------------------------------------------------------
# check-config
# ---------------------------------------------------------------------------


@cli.command("check-config")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.toml.",
)
@click.option("--env-file", default=".env", show_default=True, help="dotenv file to load.")
def check_config(config_path: str | None, env_file: str) -> None:
    """Validate the configuration and print it with secrets redacted."""
    from codexbridge.core.config import load_config
    from codexbridge.core.exceptions import ConfigError

    try:
        cfg = load_config(config_path, env_file=env_file)
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc

    table = Table(title="CodexBridge configuration", show_header=True)
    table.add_column("Section", style="cyan")
    table.add_column("Key")
    table.add_column("Value")
    for section, values in cfg.redacted().items():
        for key, value in values.items():
            table.add_row(section, key, str(value))
    console.print(table)
    console.print("[green]Configuration OK[/green]")
