"""Command-line interface for the clinical knowledge graph."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from composition_root import KnowledgeGraphServices, bootstrap_services
from config.knowledge_config import get_config
from domain.clinical_models import MedicalIndexNode, Observation, TemporaryConceptStatus
from domain.extraction_models import ExtractionResult
from infrastructure.snapshot_repository import SnapshotRepository

# --- Environment Loading ---
load_dotenv()

logger = logging.getLogger(__name__)

# --- Typer App ---
app = typer.Typer(
    help="Clinical knowledge graph: ingestion, learning loop and inference.",
    add_completion=False,
)

# Set by the callback before any command runs
_state = {"snapshot": None}


@app.callback()
def main(
    snapshot: Optional[Path] = typer.Option(None, "--snapshot", help="Path of the knowledge store snapshot"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (defaults to config)"),
):
    """Configure logging and the snapshot location."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, (log_level or config.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    _state["snapshot"] = snapshot or Path(config.storage.snapshot_path)


def _repository() -> SnapshotRepository:
    return SnapshotRepository(_state["snapshot"] or get_config().storage.snapshot_path)


def _open() -> tuple[SnapshotRepository, KnowledgeGraphServices]:
    repository = _repository()
    return repository, bootstrap_services(repository.load(), get_config())


def _read_json(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"❌ Cannot read {path}: {e}", err=True)
        raise typer.Exit(code=1)


# --- CLI Commands ---


@app.command()
def ingest(path: Path = typer.Argument(..., help="Extraction result JSON (object or list)")):
    """Ingest structured extraction results into the knowledge graph."""
    payload = _read_json(path)
    items = payload if isinstance(payload, list) else [payload]
    try:
        extractions: List[ExtractionResult] = [ExtractionResult.model_validate(item) for item in items]
    except ValidationError as e:
        typer.echo(f"❌ Invalid extraction: {e}", err=True)
        raise typer.Exit(code=1)

    repository, services = _open()
    summary = services.graph.ingest_many(extractions)
    repository.save(services.store)

    typer.echo(f"✅ Ingested {summary.success_count} node(s)")
    for node_id in summary.ingested:
        node = services.store.get_node(node_id)
        typer.echo(f"   {node_id}: {node.display_label}")
    for label, error in summary.failures:
        typer.echo(f"   ⚠️  {label}: {error}")
    pending = services.learning.list_pending()
    if pending:
        typer.echo(f"   {len(pending)} concept(s) awaiting promotion")
    if summary.failures:
        raise typer.Exit(code=1)


@app.command()
def query(
    path: Path = typer.Argument(..., help="Observation JSON {values: [{element_id, value}], raw_text}"),
    text: Optional[str] = typer.Option(None, "--text", help="Raw narrative (overrides raw_text)"),
    limit: int = typer.Option(10, "--limit", help="Maximum number of results"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Rank knowledge nodes against an observation."""
    try:
        observation = Observation.model_validate(_read_json(path))
    except ValidationError as e:
        typer.echo(f"❌ Invalid observation: {e}", err=True)
        raise typer.Exit(code=1)
    if text is not None:
        observation.raw_text = text

    _, services = _open()
    results = [r for r in services.inference.query_graph(observation) if r.score > 0][:limit]

    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
        return
    if not results:
        typer.echo("No matching node.")
        return
    for rank, result in enumerate(results, 1):
        typer.echo(f"{rank}. {result.node.display_label} ({result.score:g})")
        for step in result.reasoning_path:
            typer.echo(f"     - {step}")


@app.command()
def promote():
    """Run a consolidation pass over quarantined concepts."""
    repository, services = _open()
    promotions = services.learning.promote_pending()
    repository.save(services.store)
    typer.echo(f"✅ Promoted {len(promotions)} concept(s)")
    for record in promotions:
        typer.echo(f"   {record.label} -> {record.concept_id} ({record.reason})")


@app.command()
def pending():
    """List quarantined concepts awaiting promotion or review."""
    _, services = _open()
    items = services.learning.list_pending()
    if not items:
        typer.echo("No pending concept.")
        return
    for temp in items:
        typer.echo(f"{temp.id}  {temp.raw_label}  [{temp.detected_type_guess.value}]  seen {temp.count_seen}x")


@app.command()
def resolve(
    temp_id: str = typer.Argument(..., help="Temporary concept id"),
    status: TemporaryConceptStatus = typer.Option(..., "--status", help="validated or rejected"),
):
    """Manually validate or reject a quarantined concept."""
    repository, services = _open()
    if not services.learning.resolve_temporary_concept(temp_id, status):
        typer.echo(f"❌ No pending concept {temp_id} resolvable as {status.value}", err=True)
        raise typer.Exit(code=1)
    repository.save(services.store)
    typer.echo(f"✅ {temp_id} {status.value}")


@app.command("delete-node")
def delete_node(node_id: str = typer.Argument(..., help="Node id")):
    """Delete a node together with its edges and inbound links."""
    repository, services = _open()
    if not services.graph.delete_node(node_id):
        typer.echo(f"❌ Unknown node {node_id}", err=True)
        raise typer.Exit(code=1)
    repository.save(services.store)
    typer.echo(f"✅ Deleted {node_id}")


@app.command("resolve-label")
def resolve_label(label: str = typer.Argument(..., help="Label to resolve")):
    """Show the semantic resolution path and concept of a label."""
    _, services = _open()
    path = services.links.resolution_path(label)
    typer.echo(" -> ".join(path))
    concept_id = services.concepts.resolve_to_concept_id(label)
    typer.echo(f"Concept: {concept_id or 'none'}")


def _echo_index(node: MedicalIndexNode, depth: int = 0):
    suffix = f" ({len(node.linked_node_ids)} node(s))" if node.linked_node_ids else ""
    typer.echo(f"{'  ' * depth}{node.label}{suffix}")
    for child in node.children:
        _echo_index(child, depth + 1)


@app.command("show-index")
def show_index():
    """Print the discipline / specialty index."""
    _, services = _open()
    _echo_index(services.graph.rebuild_medical_index().root)


if __name__ == "__main__":
    app()
