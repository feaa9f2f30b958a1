"""Project templates - pre-configured agents, phases and task graphs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from taskcoord.engine.manager import TaskManager
from taskcoord.errors import DuplicateAgentError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateAgent:
    id: str
    name: str
    type: str
    capabilities: tuple[str, ...]


@dataclass(frozen=True)
class TemplatePhase:
    id: str
    name: str
    priority: str
    deliverables: tuple[str, ...]
    depends_on: tuple[str, ...] = ()


@dataclass(frozen=True)
class TemplateTask:
    """Task blueprint. ``after`` names other blueprint keys, not task ids."""

    key: str
    title: str
    category: str
    priority: str
    phase: str | None = None
    assignees: tuple[str, ...] = ()
    after: tuple[str, ...] = ()
    risk_level: str = "medium"
    completion_criteria: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProjectTemplate:
    id: str
    name: str
    description: str
    agents: tuple[TemplateAgent, ...]
    tasks: tuple[TemplateTask, ...]
    phases: tuple[TemplatePhase, ...] = ()
    large_team_agents: tuple[TemplateAgent, ...] = field(default=())


@dataclass
class TemplateResult:
    template_id: str
    project_name: str
    agents_added: list[str]
    task_ids: dict[str, str]  # blueprint key -> created task id
    phases: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template_id,
            "project": self.project_name,
            "agents": len(self.agents_added),
            "tasks": len(self.task_ids),
            "phases": self.phases,
        }


WEB_APP = ProjectTemplate(
    id="web-app",
    name="Web Application Project",
    description="Full-stack web application development",
    agents=(
        TemplateAgent("frontend-dev", "Frontend Developer", "ai", ("coding", "testing", "design")),
        TemplateAgent("backend-dev", "Backend Developer", "ai", ("coding", "testing", "database")),
        TemplateAgent("qa-tester", "QA Tester", "ai", ("testing", "documentation")),
        TemplateAgent("tech-lead", "Tech Lead", "human", ("all",)),
    ),
    large_team_agents=(
        TemplateAgent("devops-engineer", "DevOps Engineer", "ai", ("deployment", "monitoring", "security")),
        TemplateAgent("ui-designer", "UI Designer", "ai", ("design", "documentation")),
    ),
    phases=(
        TemplatePhase("phase-1", "Project Setup", "high",
                      ("Project structure", "Development environment", "CI/CD pipeline")),
        TemplatePhase("phase-2", "Backend Development", "high",
                      ("API endpoints", "Database schema", "Authentication"), ("phase-1",)),
        TemplatePhase("phase-3", "Frontend Development", "high",
                      ("User interface", "API integration", "Responsive design"), ("phase-2",)),
        TemplatePhase("phase-4", "Testing & QA", "medium",
                      ("Test suite", "Performance tests", "Security audit"), ("phase-3",)),
        TemplatePhase("phase-5", "Deployment", "medium",
                      ("Production deployment", "Monitoring setup", "Documentation"), ("phase-4",)),
    ),
    tasks=(
        TemplateTask("init", "Initialize project structure", "setup", "critical", "phase-1",
                     ("backend-dev",), completion_criteria=(
                         "Create project directories", "Configure build tools",
                         "Initialize git repository")),
        TemplateTask("env", "Setup development environment", "setup", "high", "phase-1",
                     ("backend-dev",), ("init",)),
        TemplateTask("ci", "Configure CI/CD pipeline", "devops", "high", "phase-1",
                     after=("init",)),
        TemplateTask("schema", "Design database schema", "database", "critical", "phase-2",
                     ("backend-dev",), ("init",), risk_level="high"),
        TemplateTask("auth", "Implement user authentication", "coding", "high", "phase-2",
                     ("backend-dev",), ("schema",), risk_level="high"),
        TemplateTask("api", "Build REST API endpoints", "coding", "high", "phase-2",
                     after=("schema",)),
        TemplateTask("ui", "Build user interface components", "feature", "high", "phase-3",
                     ("frontend-dev",), ("api",)),
        TemplateTask("e2e", "Write end-to-end tests", "testing", "medium", "phase-4",
                     ("qa-tester",), ("ui", "auth")),
        TemplateTask("docs", "Write deployment documentation", "documentation", "medium",
                     "phase-5", after=("e2e",)),
    ),
)

API = ProjectTemplate(
    id="api",
    name="REST API Project",
    description="Backend API development",
    agents=(
        TemplateAgent("api-developer", "API Developer", "ai",
                      ("coding", "testing", "database", "documentation")),
        TemplateAgent("qa-engineer", "QA Engineer", "ai", ("testing", "security", "performance")),
        TemplateAgent("tech-architect", "Technical Architect", "human", ("all",)),
    ),
    tasks=(
        TemplateTask("design", "Design API architecture", "architecture", "critical",
                     assignees=("tech-architect",), completion_criteria=(
                         "Define API endpoints", "Design data models",
                         "Plan authentication strategy")),
        TemplateTask("foundation", "Setup project foundation", "setup", "high",
                     assignees=("api-developer",), after=("design",)),
        TemplateTask("endpoints", "Implement core API endpoints", "coding", "high",
                     assignees=("api-developer",), after=("foundation",)),
        TemplateTask("tests", "Write API test suite", "testing", "high",
                     assignees=("qa-engineer",), after=("endpoints",)),
        TemplateTask("docs", "Document the API", "documentation", "medium",
                     after=("endpoints",)),
    ),
)

TEMPLATES: dict[str, ProjectTemplate] = {t.id: t for t in (WEB_APP, API)}


def list_templates() -> list[dict[str, Any]]:
    return [
        {
            "id": t.id,
            "name": t.name,
            "description": t.description,
            "agents": len(t.agents),
            "tasks": len(t.tasks),
            "phases": len(t.phases),
        }
        for t in TEMPLATES.values()
    ]


def create_from_template(
    manager: TaskManager,
    template_id: str,
    name: str | None = None,
    description: str | None = None,
    large_team: bool = False,
) -> TemplateResult:
    """Seed a project from a template.

    Agents that already exist are kept as they are. Blueprint ordering
    edges become ``dependencies`` on the later task and ``blocks`` on the
    earlier one.
    """
    template = TEMPLATES.get(template_id)
    if template is None:
        raise ValueError(
            f"Unknown template {template_id!r}; choose from {', '.join(sorted(TEMPLATES))}"
        )

    project_name = name or template.name
    manager.update_project(name=project_name, description=description or template.description)

    added: list[str] = []
    agents = template.agents + (template.large_team_agents if large_team else ())
    for member in agents:
        try:
            manager.add_agent(
                member.name, agent_id=member.id, type=member.type, capabilities=member.capabilities
            )
            added.append(member.id)
        except DuplicateAgentError:
            log.info("Agent %s already exists, keeping it", member.id)

    for phase in template.phases:
        manager.define_phase(
            phase.id,
            name=phase.name,
            priority=phase.priority,
            deliverables=list(phase.deliverables),
            dependencies=list(phase.depends_on),
        )

    task_ids: dict[str, str] = {}
    for blueprint in template.tasks:
        missing = [key for key in blueprint.after if key not in task_ids]
        if missing:
            raise ValueError(f"Template {template_id}: {blueprint.key} refers to {missing}")
        task = manager.create_task(
            blueprint.title,
            category=blueprint.category,
            priority=blueprint.priority,
            risk_level=blueprint.risk_level,
            phase=blueprint.phase,
            assignees=[a for a in blueprint.assignees if manager.find_agent(a) is not None],
            dependencies=[task_ids[key] for key in blueprint.after],
            completion_criteria=list(blueprint.completion_criteria),
        )
        task_ids[blueprint.key] = task.id
        for key in blueprint.after:
            upstream = manager.get_task(task_ids[key])
            manager.update_task(upstream.id, blocks=[*upstream.blocks, task.id])

    log.info("Project %s created from template %s", project_name, template_id)
    return TemplateResult(
        template_id=template_id,
        project_name=project_name,
        agents_added=added,
        task_ids=task_ids,
        phases=len(template.phases),
    )
