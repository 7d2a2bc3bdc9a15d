"""
Command-line entry point for the multi-agent housing system.
Rich output, Typer commands.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.align import Align
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from housing_multi_agent.logging_manager import ROOT_LOGGER_NAME
from housing_multi_agent.models import OrchestratedResult
from housing_multi_agent.observers import LoggingObserver
from housing_multi_agent.system import MultiAgentHousingSystem

console = Console()
app = typer.Typer(
    name="housing-multi-agent",
    help="🏠 Multi-Agent Housing Search with AWS Bedrock/Claude",
    add_completion=False,
    rich_markup_mode="rich"
)

DEMO_QUERIES = [
    "Find apartments under $2000 near downtown",
    "Private room with private bath, female only, in Mission",
    "Show me a market summary",
    "Find a studio with a short commute to 1 Market St, San Francisco",
    "Draft a message for listing 1234567890123",
]


def create_header() -> Panel:
    """Create the application header."""
    header_text = Text.assemble(
        ("🏠 ", "bold blue"),
        ("Multi-Agent Housing Search", "bold white"),
        ("\nPowered by AWS Bedrock & Claude", "dim white")
    )
    return Panel(Align.center(header_text), box=box.DOUBLE, border_style="cyan", padding=(1, 2))


def create_welcome_message() -> Panel:
    """Create the welcome panel."""
    welcome_md = """
## Welcome! 👋

Describe the place you are looking for and the agents will search, score and rank listings.

### Commands:
- `help` - Show available commands
- `info` - Display system information
- `status` - Show every agent's status
- `quit`, `exit`, `bye` - Exit the application

### Example Queries:
- *Find apartments under $2000 near downtown*
- *Room with private bath close to my office at 1 Market St*
- *Show me a market summary*
"""
    return Panel(Markdown(welcome_md), title="[bold cyan]Getting Started[/bold cyan]", border_style="green")


def show_system_info(system: MultiAgentHousingSystem) -> None:
    """Display configuration and agents."""
    info = system.get_system_info()

    table = Table(title="🔧 System Configuration", box=box.ROUNDED)
    table.add_column("Property", style="cyan", width=20)
    table.add_column("Value", style="white")

    table.add_row("Model", f"[green]{info['config']['model']}[/green]")
    table.add_row("Region", f"[yellow]{info['config']['region']}[/yellow]")
    table.add_row("Temperature", f"[blue]{info['config']['temperature']}[/blue]")
    table.add_row("Max Tokens", f"[magenta]{info['config']['max_tokens']}[/magenta]")
    table.add_row("Location Scoring", "✅ On" if info['config']['location_scoring'] else "Off")
    table.add_row("Listings", str(info['listings']))
    table.add_row("Sources", ", ".join(info['sources']))

    agents_table = Table(title="🤖 Agents", box=box.ROUNDED)
    agents_table.add_column("Role", style="cyan")
    agents_table.add_column("Name", style="green")
    for role, agent_name in info['agents'].items():
        agents_table.add_row(role.title(), agent_name)

    console.print(table)
    console.print()
    console.print(agents_table)


async def show_status(system: MultiAgentHousingSystem) -> None:
    """Display the per-agent status snapshot."""
    status = await system.get_system_status()

    table = Table(title="📡 Agent Status", box=box.ROUNDED)
    table.add_column("Agent", style="cyan")
    table.add_column("Tools", style="yellow")
    table.add_column("Uptime", style="white")
    table.add_column("Inference", style="green")

    for name, agent_status in status["agents"].items():
        if "error" in agent_status:
            table.add_row(name, f"[red]{agent_status['error']}[/red]", "-", "-")
            continue
        table.add_row(
            name,
            str(len(agent_status.get("tools", []))),
            f"{agent_status['uptime_seconds']:.0f}s",
            "✅" if agent_status["inference_available"] else "❌",
        )
    console.print(table)


def show_help() -> None:
    """Display help information."""
    help_md = """
## 📋 Available Commands

- `help` - Show this help message
- `info` - Display system information
- `status` - Show every agent's status
- `quit`, `exit`, `bye` - Exit the application

### Query Examples:

#### 🔍 Search:
- *Find apartments under $2000 near downtown*
- *Private room for a female student, available in September*

#### 🚗 Commute:
- *Studio with a short drive to 1 Market St, San Francisco*

#### 📊 Market:
- *Give me a market summary*

#### ✉️ Messaging:
- *Draft a message for listing 1234567890123*
- *Send "Is this still available?" to listing 1234567890123*
- *Check my messenger session*
"""
    console.print(Panel(Markdown(help_md), title="[bold cyan]Help[/bold cyan]", border_style="blue"))


def _results_table(results: list) -> Table:
    table = Table(title="🏠 Matches", box=box.SIMPLE)
    table.add_column("#", style="dim")
    table.add_column("Listing", style="white")
    table.add_column("Price", style="green")
    table.add_column("Location", style="yellow")
    table.add_column("Score", style="magenta")
    table.add_column("Why", style="cyan")

    for position, item in enumerate(results, 1):
        listing = item.get("listing", {})
        score = item.get("combinedScore", item.get("matchPercentage"))
        why = item.get("explanation", "")
        commute = item.get("commuteAnalysis")
        if commute:
            why = f"{why}\n🚗 {commute['duration']['text']} ({commute['rating']}/10)"
        table.add_row(
            str(position),
            listing.get("title", "?"),
            f"${listing.get('price', 0):,.0f}",
            listing.get("location") or "",
            "" if score is None else f"{score:g}",
            why,
        )
    return table


def format_agent_response(result: OrchestratedResult) -> None:
    """Render an orchestrated result."""
    if not result.success:
        console.print(Panel(
            f"[red]{result.reasoning or 'Unknown error'}[/red]",
            title=f"[bold red]❌ {result.intent}[/bold red]",
            border_style="red",
            padding=(1, 2)
        ))
        return

    console.print(Panel(
        result.reasoning,
        title=f"[bold green]✅ {result.intent}[/bold green]",
        border_style="green",
        padding=(1, 2)
    ))

    results = result.results
    if isinstance(results, list) and results and isinstance(results[0], dict) and "listing" in results[0]:
        console.print(_results_table(results))
    elif results:
        console.print(Panel(json.dumps(results, indent=2, default=str), border_style="blue"))

    details = Table(title="📊 Processing Details", box=box.SIMPLE)
    details.add_column("Detail", style="cyan")
    details.add_column("Value", style="white")
    details.add_row("Agents Used", f"[cyan]{' → '.join(result.agents_used)}[/cyan]")
    for key, value in result.metadata.items():
        details.add_row(key, str(value))
    console.print()
    console.print(details)


async def interactive_mode(system: MultiAgentHousingSystem, work_location: Optional[str]) -> None:
    """Run the interactive REPL."""
    console.clear()
    console.print(create_header())
    console.print()
    console.print(create_welcome_message())
    console.print()

    while True:
        try:
            user_input = Prompt.ask("\n[bold cyan]💬 Your query[/bold cyan]", default="", show_default=False).strip()

            if not user_input:
                console.print("[yellow]⚠️ Please enter a query or command.[/yellow]")
                continue

            command = user_input.lower()
            if command in ['quit', 'exit', 'bye']:
                console.print(Panel("[bold green]👋 Happy house hunting![/bold green]", border_style="green"))
                break
            if command == 'help':
                show_help()
                continue
            if command == 'info':
                show_system_info(system)
                continue
            if command == 'status':
                await show_status(system)
                continue

            with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                          console=console, transient=True) as progress:
                task = progress.add_task("🔄 Searching...", total=None)
                result = await system.process_query(user_input, work_location)
                progress.update(task, completed=True)

            console.print()
            format_agent_response(result)

        except KeyboardInterrupt:
            console.print(Panel("[bold green]👋 Goodbye![/bold green]", border_style="green"))
            break
        except Exception as e:
            console.print(Panel(
                f"[red]❌ An unexpected error occurred: {str(e)}[/red]",
                title="[bold red]Error[/bold red]",
                border_style="red"
            ))


async def batch_mode(system: MultiAgentHousingSystem, queries: List[str], work_location: Optional[str]) -> None:
    """Run several queries and summarize the outcome."""
    console.print(Panel(f"[bold cyan]🔄 Processing {len(queries)} queries in batch mode[/bold cyan]",
                        border_style="cyan"))

    results = []
    for i, query in enumerate(queries, 1):
        console.print(f"\n[bold yellow]📝 Query {i}/{len(queries)}:[/bold yellow] {query}")
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                      console=console, transient=True) as progress:
            task = progress.add_task(f"Processing: {query[:50]}...", total=None)
            result = await system.process_query(query, work_location)
            progress.update(task, completed=True)
        results.append(result)
        format_agent_response(result)

    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful

    summary_table = Table(title="📈 Batch Summary", box=box.ROUNDED)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Count", style="white")
    summary_table.add_column("Percentage", style="green")
    summary_table.add_row("Total Queries", str(len(results)), "100%")
    summary_table.add_row("Successful", str(successful), f"{(successful / len(results) * 100):.1f}%")
    summary_table.add_row("Failed", str(failed), f"{(failed / len(results) * 100):.1f}%")

    console.print()
    console.print(summary_table)


def _config_error(config: str) -> None:
    console.print(Panel(
        f"[red]❌ Configuration file not found: {config}[/red]",
        title="[bold red]Configuration Error[/bold red]",
        border_style="red"
    ))
    raise typer.Exit(1)


def build_system(config: str, verbose: bool = False) -> MultiAgentHousingSystem:
    """Create the system behind a spinner."""
    if not Path(config).exists():
        _config_error(config)

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                  console=console, transient=True) as progress:
        task = progress.add_task("🚀 Initializing agents...", total=None)
        observer = None
        if verbose:
            observer = LoggingObserver(logging.getLogger(f"{ROOT_LOGGER_NAME}.trace"))
        system = MultiAgentHousingSystem(config, observer=observer, console_logging=verbose)
        if verbose:
            system.logging_manager.update_log_level("DEBUG")
        progress.update(task, completed=True)

    console.print(Panel(
        f"[bold green]✅ System initialized with {len(system.store)} listings[/bold green]",
        border_style="green"
    ))
    return system


@app.command()
def search(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to configuration file"),
    demo: bool = typer.Option(False, "--demo", "-d", help="Run sample queries"),
    batch: Optional[List[str]] = typer.Option(None, "--batch", "-b", help="Run the given queries and exit"),
    work_location: Optional[str] = typer.Option(None, "--work", "-w", help="Work address for commute scoring"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """
    🏠 Search housing with the multi-agent system (interactive by default).
    """
    try:
        system = build_system(config, verbose)
        if demo:
            asyncio.run(batch_mode(system, DEMO_QUERIES, work_location))
        elif batch:
            asyncio.run(batch_mode(system, batch, work_location))
        else:
            asyncio.run(interactive_mode(system, work_location))
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        console.print(Panel("[bold green]👋 Goodbye![/bold green]", border_style="green"))
        raise typer.Exit(0)
    except Exception as e:
        console.print(Panel(
            f"[red]❌ Failed to initialize system: {str(e)}[/red]\n\n"
            f"[yellow]Please check your configuration and listing data.[/yellow]",
            title="[bold red]Initialization Error[/bold red]",
            border_style="red"
        ))
        raise typer.Exit(1)


@app.command()
def tools(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to configuration file")
):
    """
    🛠️ List every agent's tools.
    """
    system = build_system(config)
    agent_tools = asyncio.run(system.list_agent_tools())

    table = Table(title="🛠️ Agent Tools", box=box.ROUNDED)
    table.add_column("Agent", style="cyan")
    table.add_column("Tools", style="yellow")
    for agent_name, names in agent_tools.items():
        table.add_row(agent_name, "\n".join(names))
    console.print(table)


@app.command()
def serve(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to configuration file"),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (defaults to config)")
):
    """
    🌐 Serve the HTTP API.
    """
    if not Path(config).exists():
        _config_error(config)

    from housing_multi_agent.config import ConfigManager
    from housing_multi_agent.server import run

    server_config = ConfigManager(config).load_config().server
    host = host or server_config.host
    port = port or server_config.port
    console.print(Panel(f"[bold cyan]🌐 Serving on http://{host}:{port}[/bold cyan]", border_style="cyan"))
    run(host, port, config)


if __name__ == "__main__":
    app()
