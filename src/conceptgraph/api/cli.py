"""conceptgraph Command Line Interface.

Initializes and checks the graph store, and exposes the concept, knowledge,
learning path and suggestion operations for manual use.
"""

import logging
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from conceptgraph.core.config import get_settings
from conceptgraph.core.errors import ConceptGraphError
from conceptgraph.core.logging import configure_logging
from conceptgraph.graph.knowledge_graph import KnowledgeGraph
from conceptgraph.graph.models import ExerciseAttempt, LearningPath
from conceptgraph.graph.seed import seed_catalog

app = typer.Typer(
    name="conceptgraph",
    help="conceptgraph - knowledge graph of programming concepts and learning paths",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging before any command runs."""
    configure_logging(level=logging.DEBUG if verbose else None, quiet=not verbose)


def _get_graph() -> KnowledgeGraph:
    """Get configured knowledge graph instance."""
    return KnowledgeGraph.from_settings(get_settings())


def _fail(error: ConceptGraphError) -> None:
    """Print a store error and exit non-zero."""
    console.print(f"[red]Error: {error.kind}: {escape(error.message)}[/red]")
    raise typer.Exit(1)


def _not_found(what: str) -> None:
    console.print(f"[yellow]{escape(what)} not found.[/yellow]")
    raise typer.Exit(1)


def _format_timestamp(ts: Optional[datetime]) -> str:
    """Format timestamp for display."""
    if not ts:
        return "Never"
    return ts.strftime("%Y-%m-%d %H:%M")


def _print_path(path: LearningPath, title: str) -> None:
    table = Table(show_header=True, title=title)
    table.add_column("#", style="dim")
    table.add_column("Concept", style="cyan")
    table.add_column("")
    for i, concept_id in enumerate(path.concepts):
        marker = "[bold green]<- current[/bold green]" if i == path.current_index else ""
        table.add_row(str(i + 1), concept_id, marker)
    console.print(table)
    console.print(
        f"Path [bold]{path.id}[/bold]: step {path.current_index + 1} of {len(path.concepts)}, "
        f"{path.progress}% complete"
    )


@app.command("init-db")
def init_db(
    seed: bool = typer.Option(True, "--seed/--no-seed", help="Load the starter concept catalog"),
):
    """Create the graph schema, optionally seed it, and print verification counts.

    Examples:
        conceptgraph init-db             # Schema plus starter catalog
        conceptgraph init-db --no-seed   # Schema only
    """
    graph = _get_graph()
    try:
        console.print(f"[dim]Graph store: {graph.store.db_path}[/dim]")
        graph.store.ensure_schema()
        if seed:
            seeded = seed_catalog(graph)
            console.print(f"Seeded {seeded} concepts.")
        counts = graph.counts()
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    table = Table(show_header=True, title="Verifying initialization")
    table.add_column("Records", style="dim")
    table.add_column("Count", justify="right")
    table.add_row("Concepts", str(counts["concepts"]))
    table.add_row("Examples", str(counts["code_examples"]))
    table.add_row("Resources", str(counts["resources"]))
    table.add_row("Relationships", str(counts["relationships"]))
    console.print(table)
    console.print("[green]Database initialization completed successfully[/green]")


@app.command()
def check(
    concept: str = typer.Option(
        "concept-react", "--concept", "-c", help="Sample concept to fetch"
    ),
):
    """Check connectivity and read back a sample concept with its related concepts."""
    graph = _get_graph()
    try:
        connected = graph.verify_connection()
        console.print(f"Connection status: {'Connected' if connected else 'Failed'}")
        if not connected:
            raise typer.Exit(1)

        data = graph.get_graph_data()
        console.print(f"Found nodes: {len(data.nodes)}")
        console.print(f"Found relationships: {len(data.relationships)}")

        sample = graph.get_concept_by_id(concept)
        if sample is None:
            console.print(f"[yellow]Sample concept '{escape(concept)}' not found.[/yellow]")
            return
        related = graph.get_related_concepts(concept)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    console.print(Panel(f"[bold]{escape(sample.name)}[/bold] ({sample.id})", border_style="blue"))
    names = ", ".join(c.name for c in related) or "none"
    console.print(f"Related concepts: {escape(names)}")


@app.command("concept")
def show_concept(concept_id: str = typer.Argument(..., help="Concept ID")):
    """Show a concept with its prerequisites, examples and resources."""
    graph = _get_graph()
    try:
        concept = graph.get_concept_by_id(concept_id)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if concept is None:
        _not_found(f"Concept '{concept_id}'")

    console.print(
        Panel(
            f"[bold]{escape(concept.name)}[/bold]\n"
            f"Type: {concept.type.value}\n"
            f"Difficulty: {concept.difficulty}/10\n\n"
            f"{escape(concept.description)}",
            title=concept.id,
            border_style="blue",
        )
    )
    if concept.prerequisites:
        console.print(f"[bold]Requires:[/bold] {', '.join(concept.prerequisites)}")
    if concept.related_concepts:
        console.print(f"[bold]Similar to:[/bold] {', '.join(concept.related_concepts)}")
    for example in concept.examples:
        console.print(f"[bold]Example:[/bold] {escape(example.title or example.id)} ({example.language})")
    for resource in concept.resources:
        console.print(f"[bold]Resource:[/bold] {escape(resource.title)} {resource.url}")


@app.command("graph")
def graph_snapshot():
    """Print every concept node and concept-to-concept edge as JSON."""
    graph = _get_graph()
    try:
        data = graph.get_graph_data()
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()
    typer.echo(data.model_dump_json(by_alias=True, indent=2))


@app.command()
def practice(
    user: str = typer.Argument(..., help="User ID"),
    concept_id: str = typer.Argument(..., help="Concept practiced"),
    proficiency: float = typer.Argument(..., help="Proficiency score, 0 to 10"),
    exercise: Optional[str] = typer.Option(None, "--exercise", "-e", help="Exercise ID to record"),
    score: float = typer.Option(0.0, "--score", help="Exercise score"),
    completed: bool = typer.Option(False, "--completed", help="Mark the exercise completed"),
):
    """Record that a user practiced a concept.

    Examples:
        conceptgraph practice alice concept-javascript 7.5
        conceptgraph practice alice concept-react 4 -e ex-1 --score 0.6 --completed
    """
    attempt = (
        ExerciseAttempt(exercise_id=exercise, score=score, completed=completed)
        if exercise
        else None
    )
    graph = _get_graph()
    try:
        knowledge = graph.update_user_knowledge(user, concept_id, proficiency, exercise=attempt)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if knowledge is None:
        _not_found(f"Concept '{concept_id}'")
    console.print(
        f"{escape(user)} on {concept_id}: proficiency {knowledge.proficiency:g} "
        f"({len(knowledge.exercises)} exercises recorded)"
    )


@app.command()
def knowledge(user: str = typer.Argument(..., help="User ID")):
    """List a user's proficiency records."""
    graph = _get_graph()
    try:
        records = graph.get_user_knowledge(user)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if not records:
        console.print("[dim]No knowledge recorded yet.[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Concept", style="cyan")
    table.add_column("Proficiency", justify="right")
    table.add_column("Last Practiced", style="dim")
    table.add_column("Exercises", justify="right")
    for record in records:
        table.add_row(
            record.concept_id,
            f"{record.proficiency:g}",
            _format_timestamp(record.last_practiced),
            str(len(record.exercises)),
        )
    console.print(table)


@app.command()
def suggest(
    user: str = typer.Argument(..., help="User ID"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Number of suggestions"),
):
    """Suggest the concepts a user is ready to learn next."""
    graph = _get_graph()
    try:
        suggestions = graph.rank_next_concepts(user, count)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if not suggestions:
        console.print("[dim]No suggestions yet. Record some practice first.[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Concept", style="cyan")
    table.add_column("Name")
    table.add_column("Difficulty", justify="right")
    table.add_column("Score", justify="right")
    for suggestion in suggestions:
        table.add_row(
            suggestion.concept.id,
            escape(suggestion.concept.name),
            str(suggestion.concept.difficulty),
            f"{suggestion.score:.1f}",
        )
    console.print(table)


@app.command("path")
def generate_path(
    user: str = typer.Argument(..., help="User ID"),
    goal: str = typer.Argument(..., help="Goal concept ID"),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", help="Prerequisite hops to follow"),
):
    """Generate a learning path ending at a goal concept."""
    graph = _get_graph()
    try:
        path = graph.generate_learning_path(user, goal, max_depth=depth)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if path is None:
        _not_found(f"Concept '{goal}'")
    _print_path(path, f"Learning path to {goal}")


@app.command()
def paths(user: str = typer.Argument(..., help="User ID")):
    """List a user's learning paths, newest first."""
    graph = _get_graph()
    try:
        user_paths = graph.get_user_learning_paths(user)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if not user_paths:
        console.print("[dim]No learning paths yet.[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Path ID", style="cyan")
    table.add_column("Goal")
    table.add_column("Step", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Created", style="dim")
    for path in user_paths:
        table.add_row(
            path.id,
            path.concepts[-1] if path.concepts else "",
            f"{path.current_index + 1}/{len(path.concepts)}",
            f"{path.progress}%",
            _format_timestamp(path.created),
        )
    console.print(table)


@app.command()
def advance(path_id: str = typer.Argument(..., help="Learning path ID")):
    """Move a learning path to its next concept."""
    graph = _get_graph()
    try:
        path = graph.advance_path(path_id)
    except ConceptGraphError as e:
        _fail(e)
    finally:
        graph.close()

    if path is None:
        _not_found(f"Learning path '{path_id}'")
    _print_path(path, "Learning path")


if __name__ == "__main__":
    app()
