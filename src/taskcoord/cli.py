"""CLI entry point for the task coordinator."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from taskcoord import __version__
from taskcoord.config import ENV_AGENT_ID, ENV_DATA_DIR, load_settings
from taskcoord.engine.manager import AgentContext, TaskManager
from taskcoord.engine.recommender import RankedTask
from taskcoord.errors import TaskCoordError
from taskcoord.models import AgentType, Priority, RiskLevel, Task

console = Console()

_STATUS_STYLE = {
    "todo": "white",
    "in-progress": "yellow",
    "blocked": "red",
    "review": "magenta",
    "completed": "green",
    "cancelled": "dim",
}


class CoordGroup(click.Group):
    """Group that renders coordination errors instead of tracebacks."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except TaskCoordError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            ctx.exit(1)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group(cls=CoordGroup)
@click.version_option(version=__version__, prog_name="taskcoord")
@click.option(
    "--data-dir",
    type=click.Path(path_type=Path, file_okay=False),
    envvar=ENV_DATA_DIR,
    help="Directory holding task-tracker.json and agents.json",
)
@click.option("--agent", "agent_id", envvar=ENV_AGENT_ID, help="Current agent id")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None, agent_id: str | None, verbose: bool) -> None:
    """Coordinate tasks between human and AI agents."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(data_dir=data_dir, agent_id=agent_id)


def _get_manager(ctx: click.Context) -> TaskManager:
    obj = ctx.find_root().obj
    if "manager" not in obj:
        obj["manager"] = TaskManager.open(settings=obj["settings"])
    return obj["manager"]


def _context(ctx: click.Context) -> AgentContext:
    return _get_manager(ctx).context()


# ═══════════════════════════════════════════════════════════════════════════
# RENDERING
# ═══════════════════════════════════════════════════════════════════════════


def _task_table(tasks: list[Task], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", max_width=36)
    table.add_column("Status", no_wrap=True)
    table.add_column("Priority")
    table.add_column("Phase")
    table.add_column("Assignees", max_width=24)

    for task in tasks:
        style = _STATUS_STYLE.get(task.status, "white")
        table.add_row(
            task.id,
            task.title,
            f"[{style}]{task.status}[/{style}]",
            task.priority,
            task.phase,
            ", ".join(a.name for a in task.assignees) or "-",
        )
    return table


def _print_tasks(tasks: list[Task], title: str, empty: str = "No tasks found.") -> None:
    if not tasks:
        console.print(f"[dim]{empty}[/dim]")
        return
    console.print(_task_table(tasks, title))


def _print_recommendations(ranked: list[RankedTask], title: str) -> None:
    if not ranked:
        console.print("[dim]No recommendations available.[/dim]")
        return

    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", max_width=32)
    table.add_column("Score", style="bold", justify="right")
    table.add_column("Reason", max_width=40)

    for i, rec in enumerate(ranked, 1):
        table.add_row(str(i), rec.task.id, rec.task.title, str(rec.score), rec.reason)
    console.print(table)


def _print_workload(report: dict[str, Any]) -> None:
    agent = report["agent"]
    load = report["workload"]
    console.print(f"[bold]{agent['name']}[/bold] ({agent['id']}, {agent['type']})")
    console.print(
        f"Active: {load['active_tasks']} | Completed: {load['completed_tasks']} | "
        f"Score: {load['total_score']}"
    )
    for bucket in ("active", "completed", "blocked"):
        tasks = report["tasks"][bucket]
        if tasks:
            console.print(f"\n[bold]{bucket.title()}[/bold]")
            for task in tasks:
                console.print(f"  {task['id']}  {task['title']}")


# ═══════════════════════════════════════════════════════════════════════════
# PROJECT
# ═══════════════════════════════════════════════════════════════════════════


@main.command()
@click.option("--name", default="New Project", help="Project name")
@click.pass_context
def init(ctx: click.Context, name: str) -> None:
    """Initialize the data directory."""
    from taskcoord.storage.json_store import JsonStore

    settings = ctx.obj["settings"]
    store = JsonStore(settings.data_dir)
    created = store.initialize(name, settings.max_recommendations)
    if created:
        console.print(f"[green]Task manager initialized at {store.data_dir}[/green]")
    else:
        console.print(f"[yellow]Task manager already initialized at {store.data_dir}[/yellow]")
    console.print(f"  Tracker: {store.tracker_path}")
    console.print(f"  Agents:  {store.agents_path}")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show project progress."""
    report = _get_manager(ctx).project_status()
    progress = report["progress"]

    console.print(f"[bold]{report['project'].get('name', 'Project')}[/bold]")
    console.print(f"Active phase: {report['active_phase']}")
    console.print(
        f"Progress: {progress['completed']}/{progress['total_tasks']} "
        f"({progress['completion_percentage']}%)"
    )

    table = Table(title="Tasks by status")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for name, count in report["tasks"]["by_status"].items():
        table.add_row(name, str(count))
    console.print(table)

    agents = report["agents"]
    console.print(
        f"Agents: {agents['total']} | Active: {agents['active']} | "
        f"AI: {agents['by_type']['ai']} | Human: {agents['by_type']['human']}"
    )


@main.command()
@click.argument("phase", required=False)
@click.option("--advance", is_flag=True, help="Complete the active phase and move to the next")
@click.pass_context
def phase(ctx: click.Context, phase: str | None, advance: bool) -> None:
    """Show phase progress, set the active phase, or advance to the next one."""
    if phase and advance:
        raise click.UsageError("Pass either PHASE or --advance, not both")
    manager = _get_manager(ctx)
    if phase:
        manager.set_active_phase(phase)
        console.print(f"[green]Active phase set to {phase}[/green]")
        return
    if advance:
        previous = manager.state.active_phase
        new_phase = manager.advance_phase()
        if new_phase is None:
            console.print(f"[green]Phase {previous} completed. All phases completed.[/green]")
        else:
            console.print(f"[green]Phase {previous} completed. Active phase: {new_phase}[/green]")
        return

    table = Table(title="Phases")
    table.add_column("Phase")
    table.add_column("Name")
    table.add_column("Done", justify="right")
    table.add_column("%", justify="right")
    for phase_id, info in manager.phase_progress().items():
        marker = "* " if info["active"] else "  "
        table.add_row(
            f"{marker}{phase_id}",
            info["name"] or "",
            f"{info['completed']}/{info['total_tasks']}",
            str(info["completion_percentage"]),
        )
    console.print(table)


@main.command()
@click.option("--output", "-o", type=click.Path(path_type=Path, dir_okay=False))
@click.pass_context
def export(ctx: click.Context, output: Path | None) -> None:
    """Export project data to JSON."""
    data = _get_manager(ctx).export_project()
    output = output or Path(f"project-export-{date.today().isoformat()}.json")
    output.write_text(json.dumps(data, indent=2))
    console.print(f"[green]Project data exported to {output}[/green]")


# ═══════════════════════════════════════════════════════════════════════════
# TASKS
# ═══════════════════════════════════════════════════════════════════════════


@main.command("list")
@click.option("--agent", "agent_filter", help="Only tasks assigned to this agent")
@click.option("--status", "status_filter", help="Only tasks with this status")
@click.option("--priority", type=click.Choice([p.value for p in Priority]))
@click.option("--phase", "phase_filter")
@click.pass_context
def list_tasks(
    ctx: click.Context,
    agent_filter: str | None,
    status_filter: str | None,
    priority: str | None,
    phase_filter: str | None,
) -> None:
    """List tasks."""
    tasks = _get_manager(ctx).list_tasks(
        agent=agent_filter, status=status_filter, priority=priority, phase=phase_filter
    )
    _print_tasks(tasks, "Tasks")


@main.command()
@click.argument("title")
@click.option("--id", "task_id", help="Explicit task id (default: next TASK-NNN)")
@click.option("--description", default="")
@click.option("--category", default="general")
@click.option("--priority", type=click.Choice([p.value for p in Priority]), default="medium")
@click.option("--risk", "risk_level", type=click.Choice([r.value for r in RiskLevel]), default="medium")
@click.option("--phase", "task_phase", help="Defaults to the active phase")
@click.option("--depends-on", multiple=True, help="Task id this task depends on")
@click.option("--blocks", multiple=True, help="Task id this task blocks")
@click.option("--assignee", multiple=True, help="Agent id to assign")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    task_id: str | None,
    description: str,
    category: str,
    priority: str,
    risk_level: str,
    task_phase: str | None,
    depends_on: tuple[str, ...],
    blocks: tuple[str, ...],
    assignee: tuple[str, ...],
) -> None:
    """Create a task."""
    task = _get_manager(ctx).create_task(
        title,
        task_id,
        description=description,
        category=category,
        priority=priority,
        risk_level=risk_level,
        phase=task_phase,
        dependencies=depends_on,
        blocks=blocks,
        assignees=assignee,
    )
    console.print(f"[green]Task {task.id} created:[/green] {task.title}")


@main.command()
@click.argument("task_id")
@click.option("--status", "new_status")
@click.option("--priority", type=click.Choice([p.value for p in Priority]))
@click.option("--risk", "risk_level", type=click.Choice([r.value for r in RiskLevel]))
@click.option("--title")
@click.option("--phase", "task_phase")
@click.pass_context
def update(
    ctx: click.Context,
    task_id: str,
    new_status: str | None,
    priority: str | None,
    risk_level: str | None,
    title: str | None,
    task_phase: str | None,
) -> None:
    """Update a task."""
    updates = {
        k: v
        for k, v in {
            "status": new_status,
            "priority": priority,
            "risk_level": risk_level,
            "title": title,
            "phase": task_phase,
        }.items()
        if v is not None
    }
    if not updates:
        console.print("[yellow]Nothing to update.[/yellow]")
        return
    task = _get_manager(ctx).update_task(task_id, **updates)
    console.print(f"[green]Task {task.id} updated[/green] (status: {task.status})")


@main.command()
@click.argument("task_id")
@click.pass_context
def delete(ctx: click.Context, task_id: str) -> None:
    """Delete a task and detach it from dependency edges."""
    _get_manager(ctx).delete_task(task_id)
    console.print(f"[green]Task {task_id} deleted[/green]")


@main.command()
@click.argument("task_id")
@click.argument("agent_id")
@click.pass_context
def assign(ctx: click.Context, task_id: str, agent_id: str) -> None:
    """Assign an agent to a task."""
    manager = _get_manager(ctx)
    task = manager.assign(task_id, agent_id, assigned_by=manager.settings.agent_id)
    console.print(f"[green]Assignees of {task.id}:[/green] {', '.join(a.id for a in task.assignees)}")


@main.command()
@click.argument("task_id")
@click.argument("agent_id")
@click.pass_context
def unassign(ctx: click.Context, task_id: str, agent_id: str) -> None:
    """Remove an agent from a task."""
    _get_manager(ctx).unassign(task_id, agent_id)
    console.print(f"[green]Agent {agent_id} unassigned from {task_id}[/green]")


@main.command()
@click.argument("task_id")
@click.argument("from_agent")
@click.argument("to_agent")
@click.pass_context
def transfer(ctx: click.Context, task_id: str, from_agent: str, to_agent: str) -> None:
    """Move a task from one agent to another."""
    manager = _get_manager(ctx)
    manager.transfer(task_id, from_agent, to_agent, assigned_by=manager.settings.agent_id)
    console.print(f"[green]Task {task_id} transferred from {from_agent} to {to_agent}[/green]")


@main.command()
@click.argument("agent_id", required=False)
@click.option("--limit", type=click.IntRange(min=1), help="Number of recommendations")
@click.pass_context
def recommend(ctx: click.Context, agent_id: str | None, limit: int | None) -> None:
    """Recommend tasks for an agent (defaults to the current agent)."""
    manager = _get_manager(ctx)
    target = agent_id or _context(ctx).require()
    _print_recommendations(manager.recommend(target, limit), f"Recommendations for {target}")


@main.command()
@click.argument("agent_id", required=False)
@click.pass_context
def workload(ctx: click.Context, agent_id: str | None) -> None:
    """Show an agent's workload (defaults to the current agent)."""
    manager = _get_manager(ctx)
    target = agent_id or _context(ctx).require()
    _print_workload(manager.agent_workload(target))


@main.command()
@click.argument("task_id")
@click.pass_context
def explain(ctx: click.Context, task_id: str) -> None:
    """Explain how a task scores and what it is waiting on."""
    report = _get_manager(ctx).explain_task(task_id)
    task = report["task"]
    breakdown = report["breakdown"]

    console.print(f"[bold]{task['id']}[/bold] {task['title']}")
    console.print(f"Status: {task['status']} | Phase: {task['phase']} (active: {report['active_phase']})")
    console.print(f"  Priority ({task['priority']}):   {breakdown['priority']}")
    console.print(f"  Dependencies:        {breakdown['dependency']}")
    console.print(f"  Risk ({task['risk_level']}):      {breakdown['risk']}")
    console.print(f"  Phase:               {breakdown['phase']}")
    console.print(f"  [bold]Total: {report['score']}[/bold]  {report['reason']}")

    if report["dependencies"]:
        console.print("Depends on:")
        for dep in report["dependencies"]:
            mark = "[green]met[/green]" if dep["met"] else "[red]unmet[/red]"
            console.print(f"  {dep['id']} {dep['title'] or '(missing)'} ({dep['status']}) {mark}")
    if report["blocks"]:
        console.print("Blocks:")
        for block in report["blocks"]:
            console.print(f"  {block['id']} {block['title'] or '(missing)'} ({block['status']})")


# ═══════════════════════════════════════════════════════════════════════════
# AGENTS
# ═══════════════════════════════════════════════════════════════════════════


@main.group(invoke_without_command=True)
@click.pass_context
def agents(ctx: click.Context) -> None:
    """List or manage agents."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(agents_list)


@agents.command("list")
@click.pass_context
def agents_list(ctx: click.Context) -> None:
    """List agents."""
    registered = _get_manager(ctx).list_agents()
    if not registered:
        console.print("[dim]No agents found.[/dim]")
        return

    table = Table(title="Agents")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type", style="green")
    table.add_column("Capabilities", max_width=30)
    table.add_column("Active", justify="right")
    table.add_column("Done", justify="right")

    for agent in registered:
        table.add_row(
            agent.id,
            agent.name,
            agent.type,
            ", ".join(agent.capabilities) or "-",
            str(agent.workload.active_tasks),
            str(agent.workload.completed_tasks),
        )
    console.print(table)


@agents.command("add")
@click.argument("name")
@click.option("--id", "agent_id", help="Agent id (default: agent-<timestamp>)")
@click.option("--type", "agent_type", type=click.Choice([t.value for t in AgentType]), default="ai")
@click.option("--capability", "capabilities", multiple=True)
@click.option("--role")
@click.pass_context
def agents_add(
    ctx: click.Context,
    name: str,
    agent_id: str | None,
    agent_type: str,
    capabilities: tuple[str, ...],
    role: str | None,
) -> None:
    """Register an agent."""
    agent = _get_manager(ctx).add_agent(
        name, agent_id=agent_id, type=agent_type, capabilities=capabilities, role=role
    )
    console.print(f"[green]Agent {agent.name} ({agent.id}) added[/green]")


@agents.command("remove")
@click.argument("agent_id")
@click.pass_context
def agents_remove(ctx: click.Context, agent_id: str) -> None:
    """Remove an agent and unassign it everywhere."""
    _get_manager(ctx).remove_agent(agent_id)
    console.print(f"[green]Agent {agent_id} removed[/green]")


# ═══════════════════════════════════════════════════════════════════════════
# TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════


@main.group()
def template() -> None:
    """Project templates."""


@template.command("list")
def template_list() -> None:
    """List available templates."""
    from taskcoord.templates import list_templates

    table = Table(title="Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Agents", justify="right")
    table.add_column("Tasks", justify="right")
    table.add_column("Phases", justify="right")
    for t in list_templates():
        table.add_row(t["id"], t["name"], str(t["agents"]), str(t["tasks"]), str(t["phases"]))
    console.print(table)


@template.command("create")
@click.argument("template_id")
@click.option("--name", help="Project name")
@click.option("--large-team", is_flag=True, help="Include the extended agent roster")
@click.pass_context
def template_create(ctx: click.Context, template_id: str, name: str | None, large_team: bool) -> None:
    """Seed the project from a template."""
    from taskcoord.templates import create_from_template

    try:
        result = create_from_template(_get_manager(ctx), template_id, name=name, large_team=large_team)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="TEMPLATE_ID") from exc
    summary = result.to_dict()
    console.print(
        f"[green]{summary['project']} created:[/green] {summary['tasks']} tasks, "
        f"{summary['agents']} agents, {summary['phases']} phases"
    )


# ═══════════════════════════════════════════════════════════════════════════
# CURRENT AGENT
# ═══════════════════════════════════════════════════════════════════════════


@main.command("my-tasks")
@click.option("--status", "status_filter")
@click.pass_context
def my_tasks(ctx: click.Context, status_filter: str | None) -> None:
    """List tasks assigned to the current agent."""
    agent_ctx = _context(ctx)
    tasks = _get_manager(ctx).my_tasks(agent_ctx, status=status_filter)
    _print_tasks(tasks, f"Tasks for {agent_ctx.agent_id}", empty="No tasks assigned.")


@main.command("my-recommendations")
@click.option("--limit", type=click.IntRange(min=1))
@click.pass_context
def my_recommendations(ctx: click.Context, limit: int | None) -> None:
    """Recommendations for the current agent."""
    agent_ctx = _context(ctx)
    ranked = _get_manager(ctx).my_recommendations(agent_ctx, limit)
    _print_recommendations(ranked, f"Recommendations for {agent_ctx.agent_id}")


@main.command("my-workload")
@click.pass_context
def my_workload(ctx: click.Context) -> None:
    """Workload of the current agent."""
    _print_workload(_get_manager(ctx).my_workload(_context(ctx)))


@main.command("check-in")
@click.pass_context
def check_in(ctx: click.Context) -> None:
    """Summary of the current agent's work."""
    report = _get_manager(ctx).check_in(_context(ctx))
    counts = report["status"]
    console.print(f"[bold]Checked in as {report['agent']['name']}[/bold]")
    console.print(
        f"Active: {counts['active_tasks']} | Todo: {counts['todo_tasks']} | "
        f"Recommended: {counts['pending_recommendations']}"
    )
    for rec in report["recommendations"]:
        console.print(f"  → {rec['id']}  {rec['title']} ({rec['recommendation_score']})")


@main.command()
@click.argument("task_id")
@click.pass_context
def start(ctx: click.Context, task_id: str) -> None:
    """Start a task assigned to the current agent."""
    task = _get_manager(ctx).start_task(_context(ctx), task_id)
    console.print(f"[green]Started {task.id}:[/green] {task.title}")


@main.command()
@click.argument("task_id")
@click.pass_context
def complete(ctx: click.Context, task_id: str) -> None:
    """Complete a task assigned to the current agent."""
    task = _get_manager(ctx).complete_task(_context(ctx), task_id)
    console.print(f"[green]Completed {task.id}:[/green] {task.title}")


@main.command()
@click.argument("task_id")
@click.pass_context
def take(ctx: click.Context, task_id: str) -> None:
    """Self-assign the current agent to a task."""
    task = _get_manager(ctx).take_task(_context(ctx), task_id)
    console.print(f"[green]Took {task.id}:[/green] {task.title}")


@main.command()
@click.pass_context
def notifications(ctx: click.Context) -> None:
    """Show the current agent's notifications."""
    queue = _get_manager(ctx).notifications(_context(ctx))
    if not queue:
        console.print("[dim]No new notifications.[/dim]")
        return
    for note in queue:
        console.print(
            f"[cyan]{note.task_id}[/cyan] {note.message} "
            f"(by {note.assigned_by}, {note.priority})"
        )


@main.command("clear-notifications")
@click.pass_context
def clear_notifications(ctx: click.Context) -> None:
    """Clear the current agent's notifications."""
    count = _get_manager(ctx).clear_notifications(_context(ctx))
    console.print(f"[green]Cleared {count} notification(s)[/green]")
