"""CLI entrypoint for the blocks-world planner."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml

from blocksworld.core.config import AppConfig, load_config
from blocksworld.core.exceptions import BlocksWorldError, ConfigError
from blocksworld.core.validation import normalize_goal_chain, normalize_token
from blocksworld.orchestrator.observability import PlanningObservability
from blocksworld.orchestrator.service import PlanningService
from blocksworld.planning.decomposer import decompose


def _setup_logging(verbose: bool = False, config: Optional[AppConfig] = None) -> None:
    """Apply logging configuration from config/default.yaml."""
    try:
        config = config or load_config()
        level_name = config.logging.level
        fmt = config.logging.format
    except ConfigError:
        level_name = "INFO"
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr)


def _load_request(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Could not parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise click.ClickException("Request must be a JSON/YAML object.")
    return data


def _parse_goal_arg(raw: str) -> tuple[str, ...]:
    tokens = [normalize_token(token) for token in raw.split(",") if token.strip()]
    known = {token for token in tokens if token != "Table"}
    return normalize_goal_chain(tokens, known)


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose (DEBUG) logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Two-agent blocks-world planner."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose=verbose)


@cli.command("plan")
@click.option(
    "--request",
    "request_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to JSON or YAML planning request.",
)
@click.option(
    "--out",
    "out_path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the JSON result here instead of stdout.",
)
@click.option("--seed", type=int, default=None, help="Seed for negotiation tie-breaks.")
@click.option(
    "--events-out",
    "events_path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append deliberation events to this JSONL file.",
)
@click.option(
    "--config-dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory holding default.yaml and environment overlays.",
)
@click.option("--env", "env_name", default=None, help="Config overlay name, e.g. 'ci' for ci.yaml.")
def plan_cmd(
    request_path: Path,
    out_path: Optional[Path],
    seed: Optional[int],
    events_path: Optional[Path],
    config_dir: Optional[Path],
    env_name: Optional[str],
) -> None:
    """Plan a request and write the result as JSON."""
    try:
        config = load_config(config_dir=config_dir, env=env_name)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    payload = _load_request(request_path)
    if seed is not None:
        payload.setdefault("options", {})["random_seed"] = seed

    listeners = []
    sink: Optional[PlanningObservability] = None
    if events_path is not None:
        metrics_path = events_path.with_name(events_path.stem + "_metrics.json")
        sink = PlanningObservability(jsonl_path=events_path, metrics_path=metrics_path)
    elif config.observability.enabled:
        sink = PlanningObservability(
            jsonl_path=Path(config.observability.events_jsonl_path),
            metrics_path=Path(config.observability.metrics_path),
        )
    if sink is not None:
        listeners.append(sink)

    service = PlanningService(config, listeners=listeners)
    try:
        result = service.plan(payload)
    except BlocksWorldError as exc:
        raise click.ClickException(str(exc)) from exc

    if sink is not None:
        sink.flush_metrics(result.statistics.deliberation)

    body = result.model_dump_json(indent=2)
    if out_path is None:
        click.echo(body)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(body, encoding="utf-8")
    click.echo(
        f"Goal achieved in {result.iterations} iteration(s), {result.total_moves} move(s). "
        f"Wrote result to {out_path}"
    )


@cli.command("decompose")
@click.option("--goal", required=True, help="Comma-separated goal chain, e.g. 'A,B,C,Table'.")
def decompose_cmd(goal: str) -> None:
    """Show how a goal chain splits into foundation and assembly chains."""
    try:
        chain = _parse_goal_arg(goal)
    except BlocksWorldError as exc:
        raise click.ClickException(str(exc)) from exc
    result = decompose(chain)
    click.echo(f"Goal:       {' → '.join(chain)}")
    click.echo(f"Foundation: {' → '.join(result.foundation_chain)}")
    click.echo(f"Assembly:   {' → '.join(result.assembly_chain)}")
    click.echo(f"Pivot:      {result.pivot}")


def main() -> None:
    """Entry point used by `blocksworld` console script."""
    from dotenv import load_dotenv
    load_dotenv(Path.cwd() / ".env", override=False)
    cli()


if __name__ == "__main__":
    main()
