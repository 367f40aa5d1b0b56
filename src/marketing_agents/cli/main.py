"""Main CLI for marketing agents."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Dict, Tuple

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..core.agents_catalog import AGENT_DEFINITIONS
from ..core.config import SystemConfig, load_config
from ..core.orchestrator import Orchestrator
from ..core.task import CardCreationRequest
from ..errors import ConfigurationError, ErrorTranslator, ValidationError
from ..utils.rich_logging import setup_rich_logging
from ..utils.validators import (
    validate_card_id,
    validate_domain,
    validate_priority,
    validate_stage,
)

console = Console()
translator = ErrorTranslator()

STATUS_REFRESH_SECONDS = 60.0


def _load(ctx, component: str, use_file: bool = False) -> SystemConfig:
    """Load configuration and logging, exiting with a readable message on failure."""
    try:
        config = load_config(ctx.obj["config_path"])
    except ConfigurationError as e:
        console.print(translator.format_for_cli(translator.translate(e)))
        if e.missing:
            console.print(f"\n[bold]Missing:[/] {', '.join(e.missing)}")
        else:
            console.print(f"\n[dim]{e}[/]")
        sys.exit(1)
    level = "DEBUG" if ctx.obj["verbose"] else config.log_level
    setup_rich_logging(component, config.workspace, log_level=level, use_file=use_file)
    return config


def _fail(error: Exception) -> None:
    console.print(translator.format_for_cli(translator.translate(error)))
    sys.exit(1)


def _parse_context(pairs: Tuple[str, ...]) -> Dict[str, str]:
    context = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="--context")
        context[key.strip()] = value.strip()
    return context


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), help="Config YAML file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Marketing Agents - Trello cards handled by specialist AI agents."""
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


async def _serve(orchestrator: Orchestrator) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await orchestrator.start()
    try:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=STATUS_REFRESH_SECONDS)
            except asyncio.TimeoutError:
                _print_running(orchestrator)
    finally:
        console.print("\n[yellow]Stopping orchestrator...[/]")
        await orchestrator.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def _print_running(orchestrator: Orchestrator) -> None:
    running = orchestrator.get_status()
    if not running:
        return
    table = Table(title="Running tasks")
    table.add_column("Card")
    table.add_column("Task")
    table.add_column("Agent")
    table.add_column("Running for", justify="right")
    for status in running:
        table.add_row(status.card_id, status.task_title, status.agent, f"{status.running_for:.0f}s")
    console.print(table)


@cli.command()
@click.pass_context
def start(ctx):
    """Poll the board continuously until interrupted."""
    config = _load(ctx, "orchestrator", use_file=True)
    console.print("[bold green]Starting Marketing Agents[/]")
    console.print(
        f"  Board: {config.trello.board_id}  "
        f"Poll interval: {config.orchestrator.poll_interval:g}s  "
        f"Max concurrent: {config.orchestrator.max_concurrent_agents}"
    )
    console.print("[bold]Press Ctrl+C to stop.[/]\n")

    try:
        asyncio.run(_serve(Orchestrator.from_config(config)))
    except Exception as e:
        _fail(e)
    console.print("[green]✓ Stopped[/]")


@cli.command()
@click.pass_context
def poll(ctx):
    """Run a single poll cycle and exit."""
    config = _load(ctx, "orchestrator")
    orchestrator = Orchestrator.from_config(config)

    async def _once():
        await orchestrator.board.initialize()
        return await orchestrator.poll()

    try:
        dispatched = asyncio.run(_once())
    except Exception as e:
        _fail(e)

    if not dispatched:
        console.print("[yellow]Nothing to dispatch[/]")
        return
    console.print(f"[green]✓ Dispatched {len(dispatched)} task(s)[/]")
    for task in dispatched:
        console.print(f"  • [{task.priority.value}] {task.title} → {task.domain.value}")


@cli.command()
@click.argument("card_id")
@click.pass_context
def run(ctx, card_id):
    """Run one card through its agent, bypassing the poll filters."""
    try:
        card_id = validate_card_id(card_id)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="CARD_ID")

    config = _load(ctx, "orchestrator")
    orchestrator = Orchestrator.from_config(config)
    console.print(f"[bold]Running card {card_id}...[/]")

    try:
        result = asyncio.run(orchestrator.run_single(card_id))
    except Exception as e:
        _fail(e)

    console.print(f"[green]✓ {result.deliverable.title}[/] ({result.status.value})")
    console.print(result.summary)
    if result.delegated_cards:
        console.print(f"\n[bold]{len(result.delegated_cards)} sub-task(s) created:[/]")
        for card in result.delegated_cards:
            console.print(f"  • {card.title} → {card.target_domain.value}  {card.card_url}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show the Todo cards in the order the next poll would take them."""
    config = _load(ctx, "orchestrator")
    orchestrator = Orchestrator.from_config(config)

    async def _todo():
        await orchestrator.board.initialize()
        cards = await orchestrator.board.get_available_tasks()
        return [orchestrator.board.parse_card(card) for card in cards]

    try:
        tasks = asyncio.run(_todo())
    except Exception as e:
        _fail(e)

    if not tasks:
        console.print("[yellow]Todo list is empty[/]")
        return

    table = Table(title=f"Todo ({len(tasks)})")
    table.add_column("#", justify="right")
    table.add_column("Card")
    table.add_column("Title")
    table.add_column("Domain")
    table.add_column("Priority")
    table.add_column("Deliverable")
    table.add_column("Due")
    for i, task in enumerate(sorted(tasks, key=lambda t: t.priority.rank), 1):
        agent = orchestrator.agents.get(task.domain)
        domain = task.domain.value if agent else f"[red]{task.domain.value} (disabled)[/]"
        table.add_row(
            str(i),
            task.card_id,
            task.title,
            domain,
            task.priority.value,
            task.deliverable_type.value,
            task.due_date.date().isoformat() if task.due_date else "-",
        )
    console.print(table)


@cli.command()
@click.pass_context
def agents(ctx):
    """List the domain agents and whether they are enabled."""
    config = _load(ctx, "cli")
    enabled = set(config.orchestrator.enabled_domains)

    table = Table()
    table.add_column("Domain")
    table.add_column("Agent")
    table.add_column("Label colour")
    table.add_column("Capabilities")
    table.add_column("Enabled")
    for definition in AGENT_DEFINITIONS:
        table.add_row(
            definition.domain.value,
            definition.name,
            definition.label_color,
            ", ".join(definition.capabilities),
            "[green]yes[/]" if definition.domain in enabled else "[dim]no[/]",
        )
    console.print(table)


@cli.command("create-card")
@click.option("--title", "-t", required=True, help="Card title")
@click.option("--description", "-d", default="", help="Card description")
@click.option("--domain", required=True, help="Target agent domain")
@click.option("--priority", "-p", default="medium", help="low|medium|high|urgent")
@click.option("--stage", "-s", default="todo", help="List to create the card in")
@click.option("--due", type=click.DateTime(), help="Due date (YYYY-MM-DD)")
@click.option("--checklist", multiple=True, help="Acceptance criterion (repeatable)")
@click.option("--parent", help="Parent card id")
@click.pass_context
def create_card(ctx, title, description, domain, priority, stage, due, checklist, parent):
    """Create a card for an agent."""
    try:
        request = CardCreationRequest(
            title=title,
            description=description,
            target_domain=validate_domain(domain),
            priority=validate_priority(priority),
            stage=validate_stage(stage),
            due_date=due,
            checklist=list(checklist),
            parent_card_id=validate_card_id(parent) if parent else None,
            delegation_depth=1 if parent else 0,
        )
    except ValidationError as e:
        raise click.UsageError(str(e))

    config = _load(ctx, "cli")
    orchestrator = Orchestrator.from_config(config)
    try:
        result = asyncio.run(orchestrator.create_card(request))
    except Exception as e:
        _fail(e)
    console.print(f"[green]✓ Created[/] {result.title} → {result.target_domain.value}")
    console.print(f"  {result.card_url}")


@cli.command()
@click.argument("objective")
@click.option("--domain", "domains", multiple=True, help="Restrict to these domains (repeatable)")
@click.option("--context", "context_pairs", multiple=True, help="KEY=VALUE context (repeatable)")
@click.option("--parent", help="Parent card id for the generated cards")
@click.option("--dry-run", is_flag=True, help="Show the generated prompts without creating cards")
@click.pass_context
def generate(ctx, objective, domains, context_pairs, parent, dry_run):
    """Break an objective into one card per relevant agent."""
    try:
        target_domains = [validate_domain(d) for d in domains] or None
        if parent:
            validate_card_id(parent)
    except ValidationError as e:
        raise click.UsageError(str(e))
    context = _parse_context(context_pairs)

    config = _load(ctx, "cli")
    orchestrator = Orchestrator.from_config(config)

    try:
        if dry_run:
            prompts = asyncio.run(orchestrator.generate_prompts(objective, context, target_domains))
            created = []
        else:
            prompts, created = asyncio.run(
                orchestrator.generate_and_create_cards(objective, context, target_domains, parent)
            )
    except Exception as e:
        _fail(e)

    table = Table(title=f"{len(prompts)} generated task(s)")
    table.add_column("Domain")
    table.add_column("Title")
    table.add_column("Deliverable")
    table.add_column("Criteria", justify="right")
    for prompt in prompts:
        table.add_row(
            prompt.target_domain.value,
            prompt.title,
            prompt.expected_deliverable.value,
            str(len(prompt.acceptance_criteria)),
        )
    console.print(table)

    if created:
        console.print(f"[green]✓ Created {len(created)} card(s) in Review[/]")
        for card in created:
            console.print(f"  • {card.title}  {card.card_url}")


@cli.command()
@click.argument("domain")
@click.argument("objective")
@click.option("--context", "context_pairs", multiple=True, help="KEY=VALUE context (repeatable)")
@click.option("--parent", help="Parent card id when the card is created")
@click.option("--create", is_flag=True, help="Create the card in Review after drafting")
@click.pass_context
def draft(ctx, domain, objective, context_pairs, parent, create):
    """Draft the instructions for one agent; optionally turn them into a card."""
    try:
        target = validate_domain(domain)
        if parent:
            validate_card_id(parent)
    except ValidationError as e:
        raise click.UsageError(str(e))
    context = _parse_context(context_pairs)

    config = _load(ctx, "cli")
    orchestrator = Orchestrator.from_config(config)

    async def _draft():
        prompt = await orchestrator.generate_prompt_for_agent(target, objective, context)
        created = await orchestrator.create_cards_from_prompts([prompt], parent) if create else []
        return prompt, created

    try:
        prompt, created = asyncio.run(_draft())
    except Exception as e:
        _fail(e)

    console.print(f"[bold]{prompt.title}[/] → {prompt.target_domain.value} ({prompt.expected_deliverable.value})")
    console.rule("Instructions")
    console.print(prompt.instructions, markup=False)
    if prompt.acceptance_criteria:
        console.rule("Acceptance criteria")
        for criterion in prompt.acceptance_criteria:
            console.print(f"  • {criterion}", markup=False)
    for card in created:
        console.print(f"[green]✓ Created[/] {card.title}  {card.card_url}")


@cli.command()
@click.argument("card_id")
@click.pass_context
def preview(ctx, card_id):
    """Print the prompt an agent would receive for a card, without calling the model."""
    try:
        card_id = validate_card_id(card_id)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="CARD_ID")

    config = _load(ctx, "cli")
    orchestrator = Orchestrator.from_config(config)

    async def _find():
        await orchestrator.board.initialize()
        for card in await orchestrator.board.get_all_cards():
            if card.id == card_id:
                return orchestrator.board.parse_card(card)
        return None

    try:
        task = asyncio.run(_find())
    except Exception as e:
        _fail(e)
    if task is None:
        console.print(f"[red]Card not found: {card_id}[/]")
        sys.exit(1)

    agent = orchestrator.agents.get(task.domain)
    if agent is None:
        console.print(f"[red]No enabled agent for domain '{task.domain.value}'[/]")
        sys.exit(1)

    console.print(f"[bold]{agent.name}[/] · {task.priority.value} · {task.deliverable_type.value}")
    if task.delegation_depth:
        console.print(f"[dim]Delegated card, depth {task.delegation_depth} (parent {task.parent_card_id})[/]")
    console.rule("System prompt")
    console.print(agent.definition.system_prompt, markup=False)
    console.rule("Prompt")
    console.print(agent.build_prompt(task), markup=False)


if __name__ == "__main__":
    cli()
