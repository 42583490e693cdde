"""StoryDeck CLI - typer application entry point."""

from __future__ import annotations

import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from storydeck.observability import (
    bind_project_context,
    bind_session_context,
    close_file_logging,
    configure_logging,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from storydeck.config import ProjectConfig
    from storydeck.graph import StoryGraph
    from storydeck.models import PlaySession, Slide, StoryDefinition

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="storydeck",
    help="StoryDeck: branching slide stories with quests.",
    no_args_is_help=True,
)
console = Console()

# Default directory for projects
DEFAULT_PROJECTS_DIR = Path("projects")

QUEST_TYPES = ("scoreThreshold", "sceneReached")

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_projects_dir: Path = DEFAULT_PROJECTS_DIR

ProjectOption = Annotated[
    Path | None,
    typer.Option(
        "--project",
        "-p",
        help="Project directory. Can be a path or name (looks in --projects-dir).",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {project}/logs/debug.jsonl.",
        ),
    ] = False,
    projects_dir: Annotated[
        Path,
        typer.Option(
            "--projects-dir",
            "-d",
            help="Base directory for projects (default: ./projects).",
            envvar="STORYDECK_PROJECTS_DIR",
        ),
    ] = DEFAULT_PROJECTS_DIR,
) -> None:
    """StoryDeck: branching slide stories with quests."""
    global _verbose, _log_enabled, _projects_dir
    _verbose = verbose
    _log_enabled = log_file
    _projects_dir = projects_dir

    # Console logging now; file logging once the project is known
    configure_logging(verbosity=verbose)


def _configure_project_logging(project_path: Path) -> None:
    """Configure file logging if --log flag was set."""
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=project_path)
        atexit.register(close_file_logging)


def _resolve_project_path(project: Path | None) -> Path:
    """Resolve project path from argument.

    Resolution order:
    1. If project is None, use current directory
    2. If project exists as given, use it
    3. If project is a name (no path separators), look in _projects_dir
    """
    if project is None:
        return Path()

    if project.exists():
        return project

    if len(project.parts) == 1:
        projects_path = _projects_dir / project
        if projects_path.exists():
            return projects_path

    # Return as-is (will fail in _require_project with helpful error)
    return project


def _require_project(project_path: Path) -> None:
    """Verify storydeck.yaml exists, exit with error if not."""
    from storydeck.config import CONFIG_FILE_NAME

    if not (project_path / CONFIG_FILE_NAME).exists():
        console.print(
            f"[red]Error:[/red] No {CONFIG_FILE_NAME} found. "
            "Run 'storydeck init <name>' first or use --project."
        )
        raise typer.Exit(1)


def _load_project(project: Path | None) -> tuple[Path, ProjectConfig, StoryGraph]:
    """Resolve, configure logging for, and load a project and its story.

    A project whose story file does not exist yet gets an empty story.
    """
    from storydeck.config import ProjectConfigError, load_project_config
    from storydeck.graph import StoryGraph

    project_path = _resolve_project_path(project)
    _require_project(project_path)
    _configure_project_logging(project_path)

    try:
        config = load_project_config(project_path)
    except ProjectConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    bind_project_context(config.name, project_path)

    story_path = project_path / config.story_file
    if not story_path.exists():
        return project_path, config, StoryGraph.empty(config.name)

    try:
        graph = StoryGraph.load(story_path)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Error:[/red] Invalid story file ({story_path}): {e}")
        raise typer.Exit(1) from e
    return project_path, config, graph


def _save_story(project_path: Path, config: ProjectConfig, graph: StoryGraph) -> Path:
    story_path = project_path / config.story_file
    graph.save(story_path)
    return story_path


def _print_slides(slides: Sequence[Slide], title: str) -> None:
    table = Table(title=title)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Slide", style="cyan")
    table.add_column("Phase", style="magenta")
    table.add_column("Image", style="dim")
    table.add_column("Choices")
    table.add_column("Text")
    for index, slide in enumerate(slides, start=1):
        choices = (
            ", ".join(f"{c.id}->{c.next_slide_id or 'end'}" for c in slide.choices)
            or "[dim]terminal[/dim]"
        )
        text = slide.text if len(slide.text) <= 60 else slide.text[:57] + "..."
        table.add_row(
            str(index),
            slide.id,
            slide.phase.value if slide.phase else "-",
            slide.image_label,
            choices,
            text,
        )
    console.print()
    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Show version information."""
    from storydeck import __version__

    console.print(f"StoryDeck v{__version__}")


def _init_project(name: str, parent_dir: Path, base_url: str | None = None) -> Path:
    """Create a new project directory with config and an empty story.

    Raises:
        typer.Exit: If the directory already exists.
    """
    from storydeck.config import create_default_config, save_project_config
    from storydeck.graph import StoryGraph

    parent_dir.mkdir(parents=True, exist_ok=True)

    project_path = parent_dir / name
    if project_path.exists():
        console.print(f"[red]Error:[/red] Project directory already exists: {project_path}")
        raise typer.Exit(1)

    project_path.mkdir(parents=True)

    config = create_default_config(name, base_url=base_url)
    save_project_config(project_path, config)
    StoryGraph.empty(name).save(project_path / config.story_file)

    return project_path


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Project name")],
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            help="Parent directory for the project (default: --projects-dir).",
        ),
    ] = None,
    base_url: Annotated[
        str | None,
        typer.Option("--base-url", help="Site root used for share links."),
    ] = None,
) -> None:
    """Initialize a new story project.

    Creates a project directory with:
    - storydeck.yaml: Project configuration
    - story.json: An empty story
    """
    parent_dir = path if path is not None else _projects_dir
    project_path = _init_project(name, parent_dir, base_url=base_url)

    console.print(f"[green]✓[/green] Created project: [bold]{name}[/bold]")
    console.print(f"  Location: {project_path.absolute()}")
    console.print()
    console.print("Next steps:")
    console.print(f"  storydeck generate story.txt --project {name}")
    console.print(f"  storydeck play --project {name}")


@app.command()
def status(project: ProjectOption = None) -> None:
    """Show a summary of the project's story."""
    from storydeck.models import ScoreThresholdQuest

    _, config, graph = _load_project(project)
    story = graph.story

    table = Table(title=f"Story: {story.title or config.name}")
    table.add_column("Item", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Slides", str(len(story.slides)))
    table.add_row("Terminal slides", str(sum(1 for s in story.slides if s.is_terminal)))
    table.add_row(
        "Variables",
        ", ".join(f"{v.name}={v.initial}" for v in story.variables) or "-",
    )
    table.add_row("Images", ", ".join(story.image_labels) or "-")
    violations = graph.validate_invariants()
    table.add_row(
        "Integrity",
        "[green]ok[/green]" if not violations else f"[red]{len(violations)} problem(s)[/red]",
    )

    console.print()
    console.print(table)

    if story.quests:
        quests = Table(title="Quests")
        quests.add_column("#", style="dim", justify="right")
        quests.add_column("Id", style="cyan")
        quests.add_column("Type")
        quests.add_column("Goal")
        quests.add_column("Enabled")
        for index, quest in enumerate(story.quests, start=1):
            if isinstance(quest, ScoreThresholdQuest):
                goal = f"{quest.target_variable} >= {quest.target_score}"
            else:
                goal = f"reach {quest.target_slide_id}"
            quests.add_row(
                str(index),
                quest.id,
                quest.type,
                goal,
                "[green]yes[/green]" if quest.enabled else "[dim]no[/dim]",
            )
        console.print(quests)
    console.print()


@app.command()
def validate(project: ProjectOption = None) -> None:
    """Check the story's referential integrity."""
    _, _, graph = _load_project(project)
    violations = graph.validate_invariants()
    if not violations:
        console.print(f"[green]✓[/green] Story is consistent ({len(graph.slides)} slides)")
        return

    console.print(f"[red]✗[/red] {len(violations)} problem(s) found:")
    for violation in violations:
        console.print(f"  [red]•[/red] {violation}")
    raise typer.Exit(1)


@app.command()
def normalize(
    batch_file: Annotated[
        Path,
        typer.Argument(help="File holding a slide batch (JSON, optionally in a code fence)."),
    ],
    project: ProjectOption = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show the normalized slides without saving."),
    ] = False,
) -> None:
    """Normalize a slide batch and make it the story's slides."""
    from storydeck.generation import MalformedBatchError, extract_slide_batch
    from storydeck.graph import StoryGraphError, normalize_slides

    project_path, config, graph = _load_project(project)

    if not batch_file.exists():
        console.print(f"[red]Error:[/red] File not found: {batch_file}")
        raise typer.Exit(1)

    try:
        records = extract_slide_batch(batch_file.read_text(encoding="utf-8"))
        slides = normalize_slides(
            records,
            image_labels=graph.story.image_labels,
            default_image_label=config.default_image_label,
        )
        if not dry_run:
            graph.replace_slides(slides)
    except MalformedBatchError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except StoryGraphError as e:
        console.print(f"[red]Error:[/red] {e.to_feedback()}")
        raise typer.Exit(1) from e

    if dry_run:
        _print_slides(slides, "Preview (not saved)")
        return

    story_path = _save_story(project_path, config, graph)
    _print_slides(slides, "Normalized slides")
    console.print(f"[green]✓[/green] Saved {len(slides)} slides to {story_path}")


@app.command()
def generate(
    narrative_file: Annotated[
        Path,
        typer.Argument(help="Narrative text; each paragraph becomes a slide."),
    ],
    project: ProjectOption = None,
) -> None:
    """Generate slides from a narrative with the offline generator."""
    from storydeck.generation import (
        MalformedBatchError,
        PlaceholderSlideGenerator,
        generate_slides,
    )
    from storydeck.graph import StoryGraphError

    project_path, config, graph = _load_project(project)

    if not narrative_file.exists():
        console.print(f"[red]Error:[/red] File not found: {narrative_file}")
        raise typer.Exit(1)

    try:
        slides = generate_slides(
            PlaceholderSlideGenerator(),
            narrative_file.read_text(encoding="utf-8"),
            graph.story,
            default_image_label=config.default_image_label,
        )
        graph.replace_slides(slides)
    except MalformedBatchError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except StoryGraphError as e:
        console.print(f"[red]Error:[/red] {e.to_feedback()}")
        raise typer.Exit(1) from e

    story_path = _save_story(project_path, config, graph)
    _print_slides(slides, "Generated slides")
    console.print(f"[green]✓[/green] Saved {len(slides)} slides to {story_path}")


@app.command("add-variable")
def add_variable(
    name: Annotated[str, typer.Argument(help="Variable name")],
    initial: Annotated[int, typer.Option("--initial", help="Starting value.")] = 0,
    project: ProjectOption = None,
) -> None:
    """Declare a player variable."""
    from storydeck.graph import StoryGraphError
    from storydeck.models import Variable

    project_path, config, graph = _load_project(project)
    try:
        graph.add_variable(Variable(name=name, initial=initial))
    except StoryGraphError as e:
        console.print(f"[red]Error:[/red] {e.to_feedback()}")
        raise typer.Exit(1) from e

    _save_story(project_path, config, graph)
    console.print(f"[green]✓[/green] Added variable [bold]{name}[/bold] (initial {initial})")


@app.command("add-quest")
def add_quest(
    quest_type: Annotated[
        str,
        typer.Option("--type", "-t", help="scoreThreshold or sceneReached."),
    ],
    title: Annotated[str, typer.Option("--title", help="Quest title shown to players.")] = "",
    variable: Annotated[
        str | None,
        typer.Option("--variable", help="Target variable (scoreThreshold)."),
    ] = None,
    score: Annotated[
        int | None,
        typer.Option("--score", help="Target score (scoreThreshold)."),
    ] = None,
    slide: Annotated[
        str | None,
        typer.Option("--slide", help="Target slide id (sceneReached)."),
    ] = None,
    disabled: Annotated[
        bool,
        typer.Option("--disabled", help="Create the quest switched off."),
    ] = False,
    project: ProjectOption = None,
) -> None:
    """Add a quest that gates the story's ending."""
    from storydeck.graph import SlideNotFoundError, VariableNotFoundError

    if quest_type not in QUEST_TYPES:
        console.print(
            f"[red]Error:[/red] Unknown quest type '{quest_type}'. "
            f"Use one of: {', '.join(QUEST_TYPES)}"
        )
        raise typer.Exit(1)

    project_path, config, graph = _load_project(project)
    story = graph.story

    if quest_type == "scoreThreshold":
        if variable is None or score is None:
            console.print("[red]Error:[/red] scoreThreshold quests need --variable and --score")
            raise typer.Exit(1)
        if variable not in story.variable_names:
            error = VariableNotFoundError(variable, available=story.variable_names)
            console.print(f"[red]Error:[/red] {error.to_feedback()}")
            raise typer.Exit(1)
        data = {
            "type": quest_type,
            "title": title,
            "targetVariable": variable,
            "targetScore": score,
            "enabled": not disabled,
        }
    else:
        if slide is None:
            console.print("[red]Error:[/red] sceneReached quests need --slide")
            raise typer.Exit(1)
        if not graph.has_slide(slide):
            error = SlideNotFoundError(slide, available=graph.slide_ids(), context="add-quest")
            console.print(f"[red]Error:[/red] {error.to_feedback()}")
            raise typer.Exit(1)
        data = {
            "type": quest_type,
            "title": title,
            "targetSlideId": slide,
            "enabled": not disabled,
        }

    quest_id = graph.add_quest(data)
    _save_story(project_path, config, graph)
    console.print(f"[green]✓[/green] Added quest [bold]{quest_id}[/bold]")


def _render_slide(story: StoryDefinition, session: PlaySession) -> None:
    from storydeck.engine import current_slide, outstanding_quests

    slide = current_slide(story, session)
    if slide is None:
        return
    subtitle = ", ".join(f"{k}={v}" for k, v in session.player_variables.items())
    console.print(
        Panel(slide.text or "[dim](no text)[/dim]", title=slide.image_label, subtitle=subtitle)
    )
    for index, choice in enumerate(slide.choices, start=1):
        console.print(f"  [cyan]{index}[/cyan]. {choice.text or choice.id}")
    open_quests = outstanding_quests(story, session)
    if open_quests:
        console.print(
            "[dim]Quests: " + ", ".join(q.title or q.id for q in open_quests) + "[/dim]"
        )
    console.print("[dim]b = back, r = restart, q = quit[/dim]")


def _finish(
    story: StoryDefinition,
    session: PlaySession,
    config: ProjectConfig,
    project_path: Path,
    nickname: str | None,
) -> None:
    from storydeck.export import ResultStore, build_result, format_elapsed

    console.print("[green]✓[/green] [bold]The End[/bold]")
    if nickname is None:
        nickname = typer.prompt("Nickname", default=config.play.default_nickname)
    result = build_result(
        story, session, nickname, default_nickname=config.play.default_nickname
    )
    ResultStore(project_path / config.play.results_file).append(result)
    console.print(
        f"Recorded [bold]{result.nickname}[/bold]: {format_elapsed(result.total_elapsed_time)}"
    )


@app.command()
def play(
    project: ProjectOption = None,
    nickname: Annotated[
        str | None,
        typer.Option("--nickname", "-n", help="Nickname for the result (prompted otherwise)."),
    ] = None,
) -> None:
    """Play the story in the terminal."""
    from storydeck.engine import (
        SessionError,
        apply_choice,
        can_exit,
        current_slide,
        init_session,
        is_terminal,
        outstanding_quests,
        request_back,
    )

    project_path, config, graph = _load_project(project)
    story = graph.story

    if not story.slides:
        console.print("[yellow]This story has no slides yet.[/yellow]")
        return

    session = init_session(story)
    bind_session_context(session.session_id)
    while True:
        if is_terminal(story, session):
            _render_slide(story, session)
            if can_exit(story, session):
                _finish(story, session, config, project_path, nickname)
                return
            titles = ", ".join(q.title or q.id for q in outstanding_quests(story, session))
            console.print(f"[yellow]The story ended, but quests remain:[/yellow] {titles}")
        else:
            _render_slide(story, session)

        answer = typer.prompt("Choice").strip().lower()
        if answer == "r":
            session = init_session(story)
            bind_session_context(session.session_id)
            console.print("[dim]Restarted.[/dim]")
            continue
        if answer in ("b", "q"):
            decision = request_back(story, session)
            if decision.allowed:
                console.print("Left the story.")
                return
            console.print(f"[yellow]{decision.reason}.[/yellow]")
            continue

        slide = current_slide(story, session)
        if slide is None or not answer.isdigit() or not 1 <= int(answer) <= len(slide.choices):
            console.print("[red]Invalid choice.[/red]")
            continue
        try:
            transition = apply_choice(story, session, slide.choices[int(answer) - 1])
        except SessionError as e:
            console.print(f"[red]Error:[/red] {e}")
            continue
        session = transition.session
        for delta in transition.quest_deltas:
            quest = story.get_quest(delta.quest_id)
            label = quest.title if quest and quest.title else delta.quest_id
            console.print(f"[green]✓ Quest complete:[/green] {label}")


@app.command()
def share(
    project: ProjectOption = None,
    reference: Annotated[
        str | None,
        typer.Option("--reference", "-r", help="Storage reference used if the story is too big."),
    ] = None,
    base_url: Annotated[
        str | None,
        typer.Option("--base-url", help="Override the configured site root."),
    ] = None,
) -> None:
    """Print a play URL for the story."""
    from storydeck.export import ShareLinkError, build_share_url

    _, config, graph = _load_project(project)
    try:
        url = build_share_url(
            graph.story,
            base_url or config.share.get_base_url(),
            reference=reference,
            max_length=config.share.max_url_length,
        )
    except ShareLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(url, soft_wrap=True)


@app.command()
def results(
    project: ProjectOption = None,
    limit: Annotated[int, typer.Option("--limit", help="Rows to show.")] = 20,
) -> None:
    """Show the results ranking, fastest first."""
    from storydeck.export import ResultStore, format_elapsed

    project_path, config, graph = _load_project(project)
    ranked = ResultStore(project_path / config.play.results_file).ranked()
    if not ranked:
        console.print("[dim]No results yet.[/dim]")
        return

    table = Table(title=f"Results: {graph.title or config.name}")
    table.add_column("Rank", justify="right", style="bold")
    table.add_column("Nickname", style="cyan")
    table.add_column("Total")
    table.add_column("Quests")
    table.add_column("Score")
    table.add_column("Submitted", style="dim")
    known_quests = {quest.id for quest in graph.quests}
    for rank, result in enumerate(ranked[:limit], start=1):
        quests = ", ".join(
            f"#{graph.quest_index(quest_id) + 1 if quest_id in known_quests else quest_id}"
            f" {format_elapsed(seconds)}"
            for quest_id, seconds in result.per_quest_elapsed_time.items()
        )
        score = ", ".join(f"{k}={v}" for k, v in result.final_variables.items())
        table.add_row(
            str(rank),
            result.nickname,
            format_elapsed(result.total_elapsed_time),
            quests or "-",
            score or "-",
            result.submitted_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print()
    console.print(table)
    console.print()
