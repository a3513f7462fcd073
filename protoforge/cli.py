"""Command-line entry point for ``protoforge`` / ``python -m protoforge``."""

from __future__ import annotations

import argparse
import asyncio
import sys
import webbrowser
from pathlib import Path
from typing import Any

from protoforge import __version__
from protoforge.config import CONFIG_KEYS, ConfigStore
from protoforge.parser.models import Category
from protoforge.pipeline import GenerationSuccess, ProgressEvent, generate_prototype
from protoforge.providers import PROVIDERS, available_providers, test_connection
from protoforge.tui import TerminalUI, render_result, run_setup_wizard
from protoforge.utils import (
    configure_logging,
    console,
    create_progress,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

EPILOG = (
    "Examples:\n"
    "  protoforge                                   interactive mode\n"
    '  protoforge build "Smart plant monitor" -t hardware\n'
    '  protoforge build "Todo API" -t software -p openai --zip\n'
    "  protoforge config --set provider groq\n"
    "  protoforge web --port 8080\n"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protoforge",
        description="ProtoForge -- AI-powered prototype builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--version", action="version", version=f"protoforge {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command")

    start = commands.add_parser("start", aliases=["run"], help="Start the interactive interface (default)")
    start.add_argument("--provider", "-p", help="AI provider to use (saved to config)")
    start.add_argument("--model", "-m", help="Model name to use (saved to config)")

    build = commands.add_parser(
        "build", aliases=["generate", "create"], help="Generate a prototype non-interactively"
    )
    build.add_argument("description", help="Project description")
    build.add_argument(
        "--type", "-t",
        default=Category.HYBRID.value,
        help="Project type: hardware, software or hybrid (default: hybrid)",
    )
    build.add_argument("--provider", "-p", help="AI provider for this run")
    build.add_argument("--model", "-m", help="Model name for this run")
    build.add_argument("--output", "-o", help="Output directory (default: from config)")
    build.add_argument("--zip", action="store_true", help="Also create a ZIP archive")
    build.add_argument("--web", action="store_true", help="Open the web dashboard afterwards")

    commands.add_parser("setup", help="Run the setup wizard")

    web = commands.add_parser("web", help="Start the web dashboard")
    web.add_argument("--port", type=int, help="Port (default: from config)")
    web.add_argument("--host", help="Bind address (default: from config)")

    config = commands.add_parser("config", help="Show or change configuration")
    group = config.add_mutually_exclusive_group()
    group.add_argument("--get", metavar="KEY", choices=sorted(CONFIG_KEYS), help="Print one value")
    group.add_argument("--set", nargs=2, metavar=("KEY", "VALUE"), help="Set a value")
    group.add_argument("--reset", action="store_true", help="Restore defaults")

    commands.add_parser("providers", help="List available AI providers")
    commands.add_parser("check", help="Test the connection to the configured provider")

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _provider_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if getattr(args, "provider", None):
        provider_id = args.provider.strip().lower()
        if provider_id not in PROVIDERS:
            print_error(f"Unknown provider: {args.provider}. Available: {', '.join(PROVIDERS)}")
            sys.exit(1)
        overrides["provider_id"] = provider_id
    if getattr(args, "model", None):
        overrides["model_name"] = args.model
    return overrides


def cmd_start(store: ConfigStore, args: argparse.Namespace) -> None:
    overrides = _provider_overrides(args)
    if "provider_id" in overrides:
        store.set("provider", overrides["provider_id"])
    if "model_name" in overrides:
        store.set("model", overrides["model_name"])
    TerminalUI(store).run()


def cmd_build(store: ConfigStore, args: argparse.Namespace) -> None:
    if not Category.is_known(args.type):
        print_warning(f"Unknown project type '{args.type}', using hybrid")

    settings = store.settings
    provider_config = settings.provider.model_copy(update=_provider_overrides(args))
    output_root = Path(args.output) if args.output else settings.output_dir

    with create_progress() as progress:
        task = progress.add_task("Generating prototype...", total=100)

        def on_progress(event: ProgressEvent) -> None:
            progress.update(task, description=event.message, completed=event.progress)

        result = asyncio.run(
            generate_prototype(
                args.description,
                provider_config,
                output_root,
                category=args.type,
                on_progress=on_progress,
                create_archive=args.zip,
            )
        )
        progress.update(task, completed=100)

    render_result(result)
    if not isinstance(result, GenerationSuccess):
        sys.exit(1)

    if args.web:
        _launch_web(store, open_browser=True)


def cmd_setup(store: ConfigStore, args: argparse.Namespace) -> None:
    run_setup_wizard(store)


def cmd_web(store: ConfigStore, args: argparse.Namespace) -> None:
    _launch_web(store, host=args.host, port=args.port, open_browser=store.settings.web.auto_open)


def _launch_web(
    store: ConfigStore,
    host: str | None = None,
    port: int | None = None,
    open_browser: bool = False,
) -> None:
    from protoforge.web.server import serve

    settings = store.settings
    url = f"http://{host or settings.web.host}:{port or settings.web.port}"
    console.print(f"Web interface running at [cyan]{url}[/cyan] (Ctrl+C to stop)")
    if open_browser:
        webbrowser.open(url)
    try:
        serve(settings, host=host, port=port)
    except KeyboardInterrupt:
        console.print("[dim]Web interface stopped.[/dim]")


def cmd_config(store: ConfigStore, args: argparse.Namespace) -> None:
    if args.reset:
        store.reset()
        print_success("Configuration reset to defaults")
        return
    if args.get:
        value = store.as_dict()[args.get]
        console.print("" if value is None else str(value))
        return
    if args.set:
        key, value = args.set
        try:
            store.set(key, value)
        except (KeyError, ValueError) as exc:
            print_error(str(exc.args[0]) if exc.args else str(exc))
            sys.exit(1)
        print_success(f"Set {key}")
        return

    print_summary_table(store.as_dict(), title=f"Configuration ({store.path})")


def cmd_providers(store: ConfigStore, args: argparse.Namespace) -> None:
    current = store.settings.provider.provider_id
    rows = {
        info.name + (" *" if info.name == current else ""): (
            f"{info.label} - model {info.default_model}"
            + (" (API key required)" if info.requires_key else "")
        )
        for info in available_providers()
    }
    print_summary_table(rows, title="AI Providers (* = configured)")


def cmd_check(store: ConfigStore, args: argparse.Namespace) -> None:
    provider = store.settings.provider
    console.print(f"Testing connection to [cyan]{provider.provider_id}[/cyan]...")
    if asyncio.run(test_connection(provider)):
        print_success("Connection successful")
    else:
        print_error("Connection failed")
        sys.exit(1)


COMMANDS = {
    "start": cmd_start,
    "run": cmd_start,
    "build": cmd_build,
    "generate": cmd_build,
    "create": cmd_build,
    "setup": cmd_setup,
    "web": cmd_web,
    "config": cmd_config,
    "providers": cmd_providers,
    "check": cmd_check,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        store = ConfigStore()
    except ValueError as exc:
        print_error(f"Could not read configuration: {exc}")
        sys.exit(1)

    command = args.command or "start"
    if args.command is None:
        args.provider = None
        args.model = None
    COMMANDS[command](store, args)


if __name__ == "__main__":
    main()
