"""Command line entrypoint for tfreco."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from .patcher import PatchResult
from .reconcile import apply_iam_recommendations, apply_vm_recommendations
from .recommender import load_recommendations
from .state import ProjectNumberCache, load_state, match_iam_resources, match_vm_resources


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _json_output(data: Dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=None))


def _fail(message: str, output_json: bool, code: int = 1) -> None:
    if output_json:
        _json_output({"error": message})
    else:
        click.echo(f"❌ {message}", err=True)
    sys.exit(code)


def _load_project_numbers(path: Optional[str]):
    """Resolver backed by a JSON {project_id: project_number} file."""
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as f:
        mapping = json.load(f)
    if not isinstance(mapping, dict):
        raise ValueError(f"{path} must contain a JSON object")
    numbers = {str(k): str(v) for k, v in mapping.items()}
    return lambda project: numbers.get(project, project)


def _print_result(result: PatchResult, output_json: bool) -> None:
    if output_json:
        _json_output(result.to_dict())
        return
    if not result.claimed:
        click.echo("Nothing to apply")
        return
    for change in result.changes:
        click.echo(f"✏️  {change}")
    click.echo(f"✅ Claimed {len(result.claimed)} recommendation(s):")
    for claim in result.claimed:
        click.echo(f"  {claim.id} ({claim.etag})")


@click.group()
def main():
    """tfreco - apply cloud recommendations to Terraform manifests."""


@main.command()
@click.option("--manifests", "manifest_dir", required=True, help="Directory holding the .tf files")
@click.option("--state", "state_source", default=None, help="State file path or gs://bucket/object")
@click.option("--recommendations", "recommendations_path", required=True, help="Recommendations JSON file")
@click.option("--write-dir", default=None, help="Write changed files here instead of in place")
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def vm(manifest_dir, state_source, recommendations_path, write_dir, output_json, verbose):
    """Apply VM rightsizing recommendations."""
    _configure_logging(verbose)
    if not Path(manifest_dir).is_dir():
        _fail(f"Manifest directory not found: {manifest_dir}", output_json, code=2)
    try:
        recommendations = load_recommendations(recommendations_path, "vm")
        if not recommendations:
            result = PatchResult()
        else:
            state = load_state(state_source)
            result = apply_vm_recommendations(manifest_dir, state, recommendations, write_dir)
    except Exception as e:
        _fail(f"VM recommendations failed: {e}", output_json)
    _print_result(result, output_json)


@main.command()
@click.option("--manifests", "manifest_dir", required=True, help="Directory holding the .tf files")
@click.option("--state", "state_source", default=None, help="State file path or gs://bucket/object")
@click.option("--recommendations", "recommendations_path", required=True, help="Recommendations JSON file")
@click.option("--project-numbers", default=None, help="JSON file mapping project ids to project numbers")
@click.option("--write-dir", default=None, help="Write changed files here instead of in place")
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def iam(manifest_dir, state_source, recommendations_path, project_numbers, write_dir, output_json, verbose):
    """Apply IAM member removal recommendations."""
    _configure_logging(verbose)
    if not Path(manifest_dir).is_dir():
        _fail(f"Manifest directory not found: {manifest_dir}", output_json, code=2)
    try:
        recommendations = load_recommendations(recommendations_path, "iam")
        if not recommendations:
            result = PatchResult()
        else:
            state = load_state(state_source)
            result = apply_iam_recommendations(
                manifest_dir, state, recommendations,
                resolve_project_number=_load_project_numbers(project_numbers),
                write_dir=write_dir,
            )
    except Exception as e:
        _fail(f"IAM recommendations failed: {e}", output_json)
    _print_result(result, output_json)


@main.command()
@click.option("--kind", type=click.Choice(["vm", "iam"]), required=True, help="Recommendation kind")
@click.option("--state", "state_source", default=None, help="State file path or gs://bucket/object")
@click.option("--recommendations", "recommendations_path", required=True, help="Recommendations JSON file")
@click.option("--project-numbers", default=None, help="JSON file mapping project ids to project numbers")
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def match(kind, state_source, recommendations_path, project_numbers, output_json, verbose):
    """Show which declarations recommendations map to, without editing."""
    _configure_logging(verbose)
    try:
        recommendations = load_recommendations(recommendations_path, kind)
        state = load_state(state_source)
        if kind == "vm":
            rows = [
                {"resource": f"google_compute_instance.{m.tf_resource_name}",
                 "recommendation": m.recommendation.recommendation_id,
                 "change": f"machine_type -> {m.size}"}
                for m in match_vm_resources(state, recommendations)
            ]
        else:
            cache = ProjectNumberCache(_load_project_numbers(project_numbers))
            rows = [
                {"resource": f"google_project_iam_binding.{m.resource_name}",
                 "recommendation": m.recommendation.recommendation_id,
                 "change": f"remove {m.member} from {m.role}" + (f", add to {m.add}" if m.add else "")}
                for m in match_iam_resources(state, recommendations, cache)
            ]
    except Exception as e:
        _fail(f"Matching failed: {e}", output_json)

    if output_json:
        _json_output({"matches": rows})
    elif not rows:
        click.echo("No recommendations match the state")
    else:
        for row in rows:
            click.echo(f"{row['resource']}: {row['change']} ({row['recommendation']})")


if __name__ == "__main__":
    main()
