"""Interactive terminal interface and setup wizard.

A small menu-driven loop built on Rich prompts::

    welcome -> menu -> (new prototype: category -> description -> generating -> result)
                    -> recent projects
                    -> web interface
                    -> settings (setup wizard)
                    -> help / quit

The screens only collect a ``GenerationRequest`` and render the
``GenerationResult``; all work is done by ``protoforge.pipeline``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from protoforge.config import ConfigStore
from protoforge.parser.models import Category, GenerationRequest
from protoforge.pipeline import GenerationFailure, GenerationSuccess, generate_prototype
from protoforge.providers import PROVIDERS, available_providers, test_connection
from protoforge.scaffolder.materializer import list_projects, load_project
from protoforge.utils import console as default_console
from protoforge.utils import print_banner

CATEGORY_CHOICES: list[tuple[str, str]] = [
    (Category.HARDWARE.value, "Hardware (Arduino/ESP32/Raspberry Pi)"),
    (Category.SOFTWARE.value, "Software (Web/API/Mobile)"),
    (Category.HYBRID.value, "Hybrid (Hardware + Software)"),
]

MENU_CHOICES: list[tuple[str, str]] = [
    ("new", "New Prototype"),
    ("recent", "Recent Projects"),
    ("web", "Web Interface"),
    ("setup", "Settings"),
    ("help", "Help"),
    ("quit", "Quit"),
]

HELP_TEXT = """\
[bold]New Prototype[/bold]   pick a category, describe the idea, get a scaffolded project
[bold]Recent Projects[/bold] browse prototypes in the output directory
[bold]Web Interface[/bold]   start the dashboard (Ctrl+C to stop)
[bold]Settings[/bold]        choose the AI provider, API key, model and output directory

Non-interactive use: [cyan]protoforge build "<description>" --type hardware[/cyan]"""


def choose(
    title: str,
    options: Sequence[tuple[str, str]],
    console: Console = default_console,
    default: str | None = None,
) -> str:
    """Show a numbered menu and return the chosen option's value."""
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    for index, (_, label) in enumerate(options, start=1):
        console.print(f"  [yellow]{index}[/yellow]. {label}")
    values = [value for value, _ in options]
    default_index = str(values.index(default) + 1) if default in values else None
    picked = Prompt.ask(
        "Select",
        choices=[str(i) for i in range(1, len(options) + 1)],
        default=default_index,
        console=console,
    )
    return values[int(picked) - 1]


# ---------------------------------------------------------------------------
# Setup wizard
# ---------------------------------------------------------------------------


def run_setup_wizard(store: ConfigStore, console: Console = default_console) -> None:
    """Interactively configure provider, credentials and output settings."""
    console.print("\n[bold cyan]SETUP WIZARD[/bold cyan]")
    console.print("[dim]Configure ProtoForge settings[/dim]")

    infos = available_providers()
    provider_id = choose(
        "Select AI Provider:",
        [(i.name, i.label + (" (API Key required)" if i.requires_key else "")) for i in infos],
        console=console,
        default=store.get("provider"),
    )
    info = next(i for i in infos if i.name == provider_id)
    values: dict[str, object] = {"provider": provider_id}

    if not info.requires_key:
        values["base_url"] = Prompt.ask(
            f"{info.label} base URL", default=info.default_base_url, console=console
        )
        values["model"] = Prompt.ask("Model name", default=info.default_model, console=console)
    else:
        api_key = Prompt.ask(f"Enter your {info.label} API key", password=True, console=console)
        model = Prompt.ask(
            "Model name (optional, press Enter for default)", default="", console=console
        )
        values["api_key"] = api_key or None
        values["model"] = model or None
        values["base_url"] = None

    store.update(values)

    console.print("\n[dim]Testing connection...[/dim]")
    if asyncio.run(test_connection(store.settings.provider)):
        console.print("[green]Connection successful[/green]")
    else:
        console.print(
            "[yellow]Could not verify connection (this is normal for some providers)[/yellow]"
        )

    output_dir = Prompt.ask(
        "Default output directory", default=str(store.get("output_dir")), console=console
    )
    auto_open = Confirm.ask(
        "Auto-open web interface after generation?",
        default=bool(store.get("auto_open_web")),
        console=console,
    )
    store.update({"output_dir": output_dir, "auto_open_web": auto_open})

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print(f"[dim]Configuration saved to: {store.path}[/dim]")


# ---------------------------------------------------------------------------
# Result rendering
# ---------------------------------------------------------------------------


def render_result(
    result: GenerationSuccess | GenerationFailure,
    console: Console = default_console,
) -> None:
    """Print the outcome of a generation."""
    if isinstance(result, GenerationFailure):
        console.print(
            Panel(
                f"{result.message}\n\n[dim]reason: {result.reason.value}[/dim]",
                title="[bold red]GENERATION FAILED[/bold red]",
                border_style="red",
            )
        )
        return

    overview = result.document.overview
    table = Table(show_header=False, box=None)
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Project", overview.project_name or result.output_path.name)
    table.add_row("Category", overview.category.value)
    if overview.difficulty:
        table.add_row("Difficulty", overview.difficulty)
    if overview.estimated_time:
        table.add_row("Estimated time", overview.estimated_time)
    table.add_row("Output", str(result.output_path))
    if result.archive_path:
        table.add_row("Archive", str(result.archive_path))
    console.print(
        Panel(table, title="[bold green]GENERATION COMPLETE[/bold green]", border_style="green")
    )

    if result.document.code_snippets:
        console.print("Files generated:")
        for snippet in result.document.code_snippets:
            console.print(f"  [dim]-[/dim] {snippet.filename}")


# ---------------------------------------------------------------------------
# Terminal UI
# ---------------------------------------------------------------------------


class TerminalUI:
    """Menu loop over the generation pipeline."""

    def __init__(self, store: ConfigStore, console: Console = default_console) -> None:
        self.store = store
        self.console = console

    def run(self) -> None:
        print_banner()
        while True:
            action = choose("MAIN MENU", MENU_CHOICES, console=self.console)
            if action == "quit":
                return
            if action == "new":
                self.new_prototype()
            elif action == "recent":
                self.recent_projects()
            elif action == "web":
                self.web_interface()
            elif action == "setup":
                run_setup_wizard(self.store, console=self.console)
            elif action == "help":
                self.console.print(Panel(HELP_TEXT, title="HELP", border_style="cyan"))

    # -- Screens -----------------------------------------------------------

    def new_prototype(self) -> GenerationSuccess | GenerationFailure | None:
        """Category -> description -> generate -> result. Empty input goes back."""
        category = choose("SELECT PROJECT TYPE", CATEGORY_CHOICES, console=self.console)
        self.console.print('[dim]Example: "A weather station using ESP32 that..."[/dim]')
        description = Prompt.ask(
            "Describe your project (empty to go back)", default="", console=self.console
        )
        if not description.strip():
            return None

        request = GenerationRequest(description=description, category=category)
        settings = self.store.settings
        provider_id = settings.provider.provider_id
        label = PROVIDERS[provider_id].label if provider_id in PROVIDERS else provider_id
        with self.console.status(
            f"Generating {category} prototype with {label}... (this may take 30-60 seconds)"
        ):
            result = asyncio.run(
                generate_prototype(request, settings.provider, settings.output_dir)
            )
        render_result(result, console=self.console)
        return result

    def recent_projects(self) -> None:
        projects = list_projects(self.store.settings.output_dir)
        if not projects:
            self.console.print("[dim]No projects yet.[/dim]")
            return
        options = [(p["path"], f"{p['name']}  [dim]{p['created'][:19]}[/dim]") for p in projects[:10]]
        options.append(("", "Back"))
        picked = choose("RECENT PROJECTS", options, console=self.console)
        if picked:
            self.show_project(Path(picked))

    def show_project(self, project_dir: Path) -> None:
        document = load_project(project_dir)
        overview = document.overview
        body = Table(show_header=False, box=None)
        body.add_column(style="dim")
        body.add_column()
        body.add_row("Description", overview.description)
        body.add_row("Category", f"{overview.category.value} {overview.domain}".strip())
        body.add_row("Files", "\n".join(document.filenames) or "-")
        if document.next_steps:
            body.add_row("Next steps", "\n".join(document.next_steps))
        self.console.print(
            Panel(body, title=overview.project_name or project_dir.name, border_style="cyan")
        )

    def web_interface(self) -> None:
        from protoforge.web.server import serve

        settings = self.store.settings
        self.console.print(
            f"\nStarting web interface on http://{settings.web.host}:{settings.web.port}"
        )
        try:
            serve(settings)
        except KeyboardInterrupt:
            self.console.print("[dim]Web interface stopped.[/dim]")
