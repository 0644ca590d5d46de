"""Command line interface for running batches and workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import ValidationError as PydanticValidationError

from batchflow import (
    BatchOptions,
    BatchRequest,
    BatchflowError,
    WorkflowTriggerRequest,
    build_runtime,
    load_config,
)
from batchflow.config import BatchflowConfig
from batchflow.contracts import TARGET_TYPES, BatchOperation, WorkflowExecution
from batchflow.gateway import EntityGateway

app = typer.Typer(help="CLI for batchflow batch operations and workflows")

# Command groups
batch_app = typer.Typer(help="Commands for batch operations")
workflow_app = typer.Typer(help="Commands for workflows")

app.add_typer(batch_app, name="batch")
app.add_typer(workflow_app, name="workflow")

SEED_OPTION = typer.Option(
    None,
    "--seed",
    help="YAML file of entities created before running, keyed by epic/story/task/instruction",
)


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="YAML configuration file"
    ),
) -> None:
    """Batchflow CLI entry point."""
    config = load_config(str(config_path) if config_path else None)
    ctx.obj = config
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _config(ctx: typer.Context, definitions: Optional[Path] = None) -> BatchflowConfig:
    config = (ctx.obj or load_config()).model_copy(deep=True)
    if definitions is not None:
        config.workflows.definitions_path = str(definitions)
    return config


def _read_yaml(path: Path) -> Any:
    # JSON documents are valid YAML too
    with open(path) as f:
        return yaml.safe_load(f)


def _load_items(path: Path) -> list:
    data = _read_yaml(path)
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} must contain a list of items")
    return data


async def _seed(gateway: EntityGateway, path: Optional[Path]) -> None:
    """Create parents first so children can reference them."""
    if path is None:
        return
    data = _read_yaml(path) or {}
    for kind in TARGET_TYPES:
        for payload in data.get(kind, []):
            await getattr(gateway, f"create_{kind}")(payload)


def _echo_operation(operation: BatchOperation) -> None:
    typer.echo(f"Batch {operation.id}: {operation.status}")
    typer.echo(
        f"  {operation.successful_items}/{operation.total_items} succeeded, "
        f"{operation.failed_items} failed, {operation.skipped_items} skipped"
    )
    for error in operation.errors:
        typer.echo(f"  - item {error.item_index}: {error.message}")


def _echo_execution(execution: WorkflowExecution) -> None:
    typer.echo(f"Execution {execution.id} ({execution.workflow_id}): {execution.status}")
    for result in execution.step_results:
        line = f"- {result.step_id} [{result.step_type}]: {result.status}"
        if result.error:
            line += f" ({result.error})"
        typer.echo(line)


@batch_app.command("run")
def batch_run(
    ctx: typer.Context,
    items_path: Path,
    op_type: str = typer.Option("create", "--type", help="create, update or delete"),
    target: str = typer.Option(..., "--target", help="epic, story, task or instruction"),
    max_concurrency: Optional[int] = typer.Option(None, min=1),
    continue_on_error: Optional[bool] = typer.Option(
        None, "--continue-on-error/--stop-on-error"
    ),
    validate_first: Optional[bool] = typer.Option(
        None, "--validate-first/--no-validate-first"
    ),
    delay: Optional[float] = typer.Option(None, min=0.0, help="Seconds between items"),
    created_by: str = typer.Option("cli", help="Actor recorded on the operation"),
    seed: Optional[Path] = SEED_OPTION,
) -> None:
    """
    Run one batch operation against the in-memory gateway and wait for it.

    Items are read from a YAML or JSON list (or a mapping with an ``items`` key).
    Options left out fall back to the configured batch defaults.

    Example:
        batchflow batch run epics.yaml --target epic --max-concurrency 4
        batchflow batch run tasks.json --target task --seed stories.yaml --continue-on-error
    """
    items = _load_items(items_path)
    overrides = {
        "max_concurrency": max_concurrency,
        "continue_on_error": continue_on_error,
        "validate_first": validate_first,
        "delay": delay,
    }
    options = BatchOptions(**{k: v for k, v in overrides.items() if v is not None})
    config = _config(ctx)

    async def _run() -> BatchOperation:
        runtime = build_runtime(config)
        await _seed(runtime.gateway, seed)
        operation_id = await runtime.batches.create_batch_operation(
            BatchRequest(
                type=op_type,
                target_type=target,
                items=items,
                options=options,
                created_by=created_by,
            )
        )
        operation = await runtime.batches.wait_for_operation(operation_id)
        await runtime.shutdown()
        return operation

    try:
        operation = asyncio.run(_run())
    except BatchflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    _echo_operation(operation)
    if operation.status == "failed":
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list(
    ctx: typer.Context,
    definitions: Optional[Path] = typer.Option(
        None, help="YAML file with custom workflow definitions"
    ),
) -> None:
    """List registered workflows (built-ins plus any custom definitions)."""
    try:
        runtime = build_runtime(_config(ctx, definitions))
    except BatchflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    workflows = runtime.workflows.get_all_workflows()
    if not workflows:
        typer.echo("No workflows registered")
        return
    for workflow in workflows:
        state = "active" if workflow.is_active else "inactive"
        typer.echo(f"{workflow.id}\t{state}\t{workflow.name}")


@workflow_app.command("run")
def workflow_run(
    ctx: typer.Context,
    workflow_id: str,
    context: Optional[str] = typer.Option(None, help="JSON object passed as context"),
    definitions: Optional[Path] = typer.Option(
        None, help="YAML file with custom workflow definitions"
    ),
    seed: Optional[Path] = SEED_OPTION,
) -> None:
    """
    Execute a workflow and print its step results.

    Example:
        batchflow workflow run epic-to-stories --seed epics.yaml \\
            --context '{"epic": {"id": "epic-1", "title": "Checkout"}}'
    """
    try:
        request = WorkflowTriggerRequest(
            workflow_id=workflow_id, context=json.loads(context) if context else {}
        )
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        raise typer.BadParameter(f"--context must be a JSON object: {exc}")
    config = _config(ctx, definitions)

    async def _run() -> WorkflowExecution:
        runtime = build_runtime(config)
        await _seed(runtime.gateway, seed)
        execution_id = await runtime.workflows.execute_workflow(request)
        execution = await runtime.workflows.wait_for_execution(execution_id)
        await runtime.shutdown()
        return execution

    try:
        execution = asyncio.run(_run())
    except BatchflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    _echo_execution(execution)
    if execution.status == "failed":
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
