"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from storydeck import __version__
from storydeck.cli import _resolve_project_path, app
from storydeck.config import load_project_config, save_project_config
from storydeck.export import ResultStore
from storydeck.graph import StoryGraph
from tests.fixtures.stories import make_branching_story, make_single_slide_story

if TYPE_CHECKING:
    from pathlib import Path

    from storydeck.models import StoryDefinition

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An initialized, empty project."""
    result = runner.invoke(app, ["-d", str(tmp_path), "init", "demo"])
    assert result.exit_code == 0, result.output
    return tmp_path / "demo"


def _write_story(project: Path, story: StoryDefinition) -> None:
    StoryGraph(story).save(project / "story.json")


def _load_story(project: Path) -> StoryGraph:
    return StoryGraph.load(project / "story.json")


def test_version_command() -> None:
    """Version command prints the package version."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.output


def test_no_args_shows_help() -> None:
    """Running without arguments shows help."""
    result = runner.invoke(app, [])
    assert "StoryDeck" in result.output


# --- Init / status / validate ---


def test_init_creates_project(tmp_path: Path) -> None:
    """Init writes a config and an empty story."""
    result = runner.invoke(app, ["init", "my_story", "--path", str(tmp_path)])

    assert result.exit_code == 0
    assert "Created project" in result.output
    project_path = tmp_path / "my_story"
    assert (project_path / "storydeck.yaml").exists()
    assert json.loads((project_path / "story.json").read_text())["gameTitle"] == "my_story"
    assert load_project_config(project_path).name == "my_story"


def test_init_with_base_url(tmp_path: Path) -> None:
    """Init stores a custom share base URL."""
    result = runner.invoke(
        app, ["init", "demo", "--path", str(tmp_path), "--base-url", "https://x.example"]
    )
    assert result.exit_code == 0
    assert load_project_config(tmp_path / "demo").share.base_url == "https://x.example"


def test_init_existing_directory_fails(project: Path) -> None:
    """Init refuses an existing directory."""
    result = runner.invoke(app, ["init", "demo", "--path", str(project.parent)])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_status_requires_project(tmp_path: Path) -> None:
    """Status fails outside a project."""
    result = runner.invoke(app, ["status", "--project", str(tmp_path / "nope")])
    assert result.exit_code == 1
    assert "storydeck.yaml" in result.output


def test_status_shows_summary(project: Path) -> None:
    """Status lists slides and quests."""
    _write_story(project, make_branching_story())

    result = runner.invoke(app, ["status", "--project", str(project)])

    assert result.exit_code == 0
    assert "Slides" in result.output
    assert "q_brave" in result.output


def test_project_resolved_by_name(tmp_path: Path, project: Path) -> None:
    """Project names resolve under --projects-dir."""
    result = runner.invoke(app, ["-d", str(tmp_path), "status", "--project", "demo"])
    assert result.exit_code == 0


def test_resolve_project_path_defaults_to_cwd() -> None:
    """No project argument means the current directory."""
    assert str(_resolve_project_path(None)) == "."


def test_validate_consistent(project: Path) -> None:
    """Validate passes a consistent story."""
    _write_story(project, make_branching_story())
    result = runner.invoke(app, ["validate", "--project", str(project)])
    assert result.exit_code == 0
    assert "consistent" in result.output


def test_validate_reports_problems(project: Path) -> None:
    """Validate lists problems and exits 1."""
    graph = StoryGraph(make_branching_story())
    graph.remove_slide("s2")
    graph.save(project / "story.json")

    result = runner.invoke(app, ["validate", "--project", str(project)])

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_invalid_story_file(project: Path) -> None:
    """A broken story file is reported."""
    (project / "story.json").write_text("{not json")
    result = runner.invoke(app, ["validate", "--project", str(project)])
    assert result.exit_code == 1
    assert "Invalid story file" in result.output


def test_log_flag_writes_to_project(project: Path) -> None:
    """--log writes JSONL logs into the project."""
    from storydeck.observability import close_file_logging

    result = runner.invoke(app, ["--log", "status", "--project", str(project)])
    close_file_logging()

    assert result.exit_code == 0
    assert (project / "logs" / "debug.jsonl").exists()


def test_log_events_tagged_with_project_and_session(project: Path) -> None:
    """Play events in the JSONL log carry the project name and session id."""
    from storydeck.observability import close_file_logging

    _write_story(project, make_single_slide_story())

    result = runner.invoke(app, ["--log", "play", "--project", str(project)], input="1\nmira\n")
    close_file_logging()

    assert result.exit_code == 0, result.output
    lines = (project / "logs" / "debug.jsonl").read_text().splitlines()
    entries = [json.loads(line) for line in lines]
    applied = next(e for e in entries if e["event"] == "choice_applied")
    stored = ResultStore(project / "results.jsonl").load()
    assert applied["project"] == "demo"
    assert applied["session_id"] == stored[0].session_id


# --- Authoring ---


def test_normalize_saves_slides(project: Path, tmp_path: Path) -> None:
    """Normalize replaces the story slides."""
    batch = tmp_path / "batch.txt"
    batch.write_text(
        '```json\n[{"text": "One", "choices": [{"text": "Go"}]}, {"text": "Two"}]\n```'
    )

    result = runner.invoke(app, ["normalize", str(batch), "--project", str(project)])

    assert result.exit_code == 0, result.output
    graph = _load_story(project)
    assert graph.slide_ids() == ["slide_1", "slide_2"]
    assert graph.get_slide("slide_1").choices[0].next_slide_id == "slide_2"


def test_normalize_dry_run_does_not_save(project: Path, tmp_path: Path) -> None:
    """--dry-run leaves the story file alone."""
    batch = tmp_path / "batch.json"
    batch.write_text('[{"text": "One"}]')

    result = runner.invoke(app, ["normalize", str(batch), "--project", str(project), "--dry-run"])

    assert result.exit_code == 0
    assert _load_story(project).slide_ids() == []


def test_normalize_malformed_batch(project: Path, tmp_path: Path) -> None:
    """Malformed batches exit with an error."""
    batch = tmp_path / "batch.json"
    batch.write_text("no slides here")

    result = runner.invoke(app, ["normalize", str(batch), "--project", str(project)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_normalize_missing_file(project: Path, tmp_path: Path) -> None:
    """A missing batch file exits with an error."""
    result = runner.invoke(app, ["normalize", str(tmp_path / "x.json"), "--project", str(project)])
    assert result.exit_code == 1


def test_generate_from_narrative(project: Path, tmp_path: Path) -> None:
    """Generate turns paragraphs into slides."""
    narrative = tmp_path / "story.txt"
    narrative.write_text("Once.\n\nTwice.\n\nThrice.")

    result = runner.invoke(app, ["generate", str(narrative), "--project", str(project)])

    assert result.exit_code == 0, result.output
    graph = _load_story(project)
    assert len(graph.slides) == 3
    assert graph.slides[-1].is_terminal


def test_add_variable_and_quest(project: Path) -> None:
    """Variables and quests can be added from the CLI."""
    _write_story(project, make_single_slide_story())

    result = runner.invoke(
        app, ["add-variable", "luck", "--initial", "2", "--project", str(project)]
    )
    assert result.exit_code == 0, result.output

    result = runner.invoke(
        app,
        [
            "add-quest",
            "--type",
            "scoreThreshold",
            "--variable",
            "luck",
            "--score",
            "5",
            "--title",
            "Get lucky",
            "--project",
            str(project),
        ],
    )
    assert result.exit_code == 0, result.output

    graph = _load_story(project)
    assert graph.story.variable_names == ["score", "luck"]
    assert graph.quests[0].title == "Get lucky"
    assert graph.quests[0].id.startswith("quest_")


def test_add_variable_duplicate(project: Path) -> None:
    """Adding an existing variable fails."""
    _write_story(project, make_single_slide_story())
    result = runner.invoke(app, ["add-variable", "score", "--project", str(project)])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_add_quest_unknown_variable(project: Path) -> None:
    """Quests on unknown variables suggest close names."""
    _write_story(project, make_single_slide_story())
    result = runner.invoke(
        app,
        [
            "add-quest",
            "--type",
            "scoreThreshold",
            "--variable",
            "scroe",
            "--score",
            "1",
            "--project",
            str(project),
        ],
    )
    assert result.exit_code == 1
    assert "score" in result.output


def test_add_quest_unknown_slide(project: Path) -> None:
    """Quests on unknown slides are rejected."""
    _write_story(project, make_single_slide_story())
    result = runner.invoke(
        app, ["add-quest", "--type", "sceneReached", "--slide", "s9", "--project", str(project)]
    )
    assert result.exit_code == 1
    assert "not found" in result.output


def test_add_quest_bad_type(project: Path) -> None:
    """Unknown quest types are rejected."""
    result = runner.invoke(app, ["add-quest", "--type", "collect", "--project", str(project)])
    assert result.exit_code == 1
    assert "Unknown quest type" in result.output


# --- Play ---


def _quest(target: int) -> list[dict]:
    return [{"id": "q", "type": "scoreThreshold", "targetVariable": "score", "targetScore": target}]


def test_play_to_the_end_records_result(project: Path) -> None:
    """Finishing the story records a result."""
    _write_story(project, make_single_slide_story(_quest(10)))

    result = runner.invoke(app, ["play", "--project", str(project)], input="1\nmira\n")

    assert result.exit_code == 0, result.output
    assert "Quest complete" in result.output
    assert "The End" in result.output
    stored = ResultStore(project / "results.jsonl").load()
    assert [r.nickname for r in stored] == ["mira"]
    assert stored[0].final_variables == {"score": 10}


def test_play_default_nickname(project: Path) -> None:
    """An empty nickname uses the configured default."""
    _write_story(project, make_single_slide_story())

    result = runner.invoke(app, ["play", "--project", str(project)], input="1\n\n")

    assert result.exit_code == 0, result.output
    assert ResultStore(project / "results.jsonl").load()[0].nickname == "anonymous"


def test_play_invalid_choice_reprompts(project: Path) -> None:
    """Invalid input asks again."""
    _write_story(project, make_single_slide_story())

    result = runner.invoke(
        app, ["play", "--project", str(project), "--nickname", "x"], input="7\nabc\n1\n"
    )

    assert result.exit_code == 0, result.output
    assert result.output.count("Invalid choice") == 2


def test_play_back_allowed_without_quests(project: Path) -> None:
    """Back leaves a story that has no quests."""
    _write_story(project, make_single_slide_story())

    result = runner.invoke(app, ["play", "--project", str(project)], input="b\n")

    assert result.exit_code == 0
    assert "Left the story" in result.output
    assert not (project / "results.jsonl").exists()


def test_play_stuck_blocks_quit(project: Path) -> None:
    """Quit and back are refused while quests remain."""
    _write_story(project, make_single_slide_story(_quest(20)))

    # Input runs out while stuck: the prompt aborts
    result = runner.invoke(app, ["play", "--project", str(project)], input="1\nq\nb\n")

    assert result.exit_code != 0
    assert "quests remain" in result.output
    assert result.output.count("Complete every quest") == 2
    assert not (project / "results.jsonl").exists()


def test_play_restart(project: Path) -> None:
    """Restart begins a fresh session."""
    _write_story(project, make_branching_story())

    result = runner.invoke(
        app,
        ["play", "--project", str(project), "--nickname", "mira"],
        input="2\nr\n1\n1\n",
    )

    assert result.exit_code == 0, result.output
    assert "Restarted" in result.output
    stored = ResultStore(project / "results.jsonl").load()
    assert stored[0].final_variables["courage"] == 3


def test_play_empty_story(project: Path) -> None:
    """Playing an empty story says so."""
    result = runner.invoke(app, ["play", "--project", str(project)])
    assert result.exit_code == 0
    assert "no slides" in result.output


# --- Share / results ---


def test_share_prints_url(project: Path) -> None:
    """Share prints a data URL."""
    _write_story(project, make_branching_story())

    result = runner.invoke(app, ["share", "--project", str(project)])

    assert result.exit_code == 0, result.output
    assert "/play?data=" in result.output


def test_share_base_url_from_env(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Share uses STORYDECK_BASE_URL."""
    monkeypatch.setenv("STORYDECK_BASE_URL", "https://env.example")
    result = runner.invoke(app, ["share", "--project", str(project)])
    assert "https://env.example/play?data=" in result.output


def test_share_too_large(project: Path) -> None:
    """Oversized stories need a reference."""
    config = load_project_config(project)
    config.share.max_url_length = 40
    save_project_config(project, config)
    _write_story(project, make_branching_story())

    result = runner.invoke(app, ["share", "--project", str(project)])
    assert result.exit_code == 1

    result = runner.invoke(app, ["share", "--project", str(project), "--reference", "doc-17"])
    assert result.exit_code == 0
    assert "/play?ref=doc-17" in result.output


def test_results_empty(project: Path) -> None:
    """Results with no submissions says so."""
    result = runner.invoke(app, ["results", "--project", str(project)])
    assert result.exit_code == 0
    assert "No results yet" in result.output


def test_results_ranked(project: Path) -> None:
    """Results lists submissions ranked."""
    _write_story(project, make_single_slide_story(_quest(10)))
    runner.invoke(app, ["play", "--project", str(project), "--nickname", "ann"], input="1\n")
    runner.invoke(app, ["play", "--project", str(project), "--nickname", "bob"], input="1\n")

    result = runner.invoke(app, ["results", "--project", str(project)])

    assert result.exit_code == 0, result.output
    assert "ann" in result.output
    assert "bob" in result.output
    assert "#1" in result.output
