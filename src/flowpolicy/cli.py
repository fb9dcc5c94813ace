from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from click.core import ParameterSource
import typer

from flowpolicy.config import PolicySettings, resolve_settings
from flowpolicy.evaluation import evaluate_units, load_graph, render_report, report_to_dto
from flowpolicy.evaluation.budget import DEFAULT_MAX_STEPS
from flowpolicy.exceptions import (
    BindingError,
    BudgetExhausted,
    ConfigError,
    ContextQueryError,
    FlowPolicyError,
    NestingTooDeepError,
    PolicyParseError,
    UnsupportedScopeError,
)
from flowpolicy.language import BindingFinding, CompiledPolicy, compile_policy, render_policy
from flowpolicy.language.render import policy_to_payload

app = typer.Typer(add_completion=False)

EXIT_OK = 0
EXIT_VIOLATED = 1
EXIT_ERROR = 2


def _position(text: str, offset: int) -> str:
    if offset < 0:
        return ""
    prefix = text[:offset]
    line = prefix.count("\n") + 1
    column = offset - (prefix.rfind("\n") + 1) + 1
    return f"{line}:{column}"


def _param_is_command_line(ctx: typer.Context, param: str) -> bool:
    return ctx.get_parameter_source(param) is ParameterSource.COMMANDLINE


def _read_policy(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        typer.secho(f"cannot read policy file {path}: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_ERROR)


def _emit_error(path: Path, text: str, exc: FlowPolicyError) -> None:
    match exc:
        case PolicyParseError():
            typer.secho(f"{path}: parse error", err=True, fg=typer.colors.RED)
            typer.echo(exc.render_trace(), err=True)
        case BindingError():
            typer.secho(
                f"{path}:{_position(text, exc.offset)}: binding error: {exc}",
                err=True,
                fg=typer.colors.RED,
            )
        case (
            UnsupportedScopeError()
            | ContextQueryError()
            | BudgetExhausted()
            | NestingTooDeepError()
            | ConfigError()
        ):
            typer.secho(f"{path}: {exc}", err=True, fg=typer.colors.RED)
        case _:
            typer.secho(f"{path}: unexpected error: {exc}", err=True, fg=typer.colors.RED)


def _emit_warnings(path: Path, text: str, warnings: tuple[BindingFinding, ...]) -> None:
    for finding in warnings:
        typer.echo(
            f"{path}:{_position(text, finding.offset)}: warning: {finding.message}",
            err=True,
        )


def _settings(
    *,
    root: Path,
    config: Optional[Path],
    shadowing: Optional[str],
    max_steps: Optional[int] = None,
    units: Optional[List[str]] = None,
) -> PolicySettings:
    try:
        return resolve_settings(
            root=root,
            config_path=config,
            overrides={"shadowing": shadowing, "max_steps": max_steps, "units": units},
        )
    except ConfigError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_ERROR)


def _compile(path: Path, text: str, settings: PolicySettings) -> CompiledPolicy:
    try:
        compiled = compile_policy(text, shadowing=settings.shadowing)
    except FlowPolicyError as exc:
        _emit_error(path, text, exc)
        raise typer.Exit(code=EXIT_ERROR)
    _emit_warnings(path, text, compiled.warnings)
    return compiled


@app.command("parse")
def parse(
    policy_path: Path = typer.Argument(..., help="Policy text file."),
    as_json: bool = typer.Option(False, "--json", help="Print the AST as JSON."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    shadowing: Optional[str] = typer.Option(
        None, "--shadowing", help="Re-bound variable names: allow|warn|reject."
    ),
) -> None:
    """Parse and binding-check a policy, then print it in canonical form."""
    settings = _settings(root=root, config=config, shadowing=shadowing)
    text = _read_policy(policy_path)
    compiled = _compile(policy_path, text, settings)
    if as_json:
        typer.echo(json.dumps(policy_to_payload(compiled.policy), indent=2))
    else:
        typer.echo(render_policy(compiled.policy), nl=False)


@app.command("check")
def check(
    ctx: typer.Context,
    policy_path: Path = typer.Argument(..., help="Policy text file."),
    graph: Path = typer.Option(..., "--graph", help="Flow graph JSON file."),
    unit: List[str] = typer.Option([], "--unit", help="Only evaluate these controllers."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    shadowing: Optional[str] = typer.Option(None, "--shadowing"),
    max_steps: int = typer.Option(DEFAULT_MAX_STEPS, "--max-steps", min=1),
) -> None:
    """Evaluate a policy against every controller of a flow graph."""
    settings = _settings(
        root=root,
        config=config,
        shadowing=shadowing,
        max_steps=max_steps if _param_is_command_line(ctx, "max_steps") else None,
        units=unit if _param_is_command_line(ctx, "unit") else None,
    )
    text = _read_policy(policy_path)
    compiled = _compile(policy_path, text, settings)
    try:
        flow_graph = load_graph(graph)
        report = evaluate_units(
            compiled.policy,
            flow_graph,
            units=settings.units or None,
            max_steps=settings.max_steps,
        )
    except FlowPolicyError as exc:
        _emit_error(policy_path, text, exc)
        raise typer.Exit(code=EXIT_ERROR)
    if as_json:
        typer.echo(report_to_dto(report, compiled.warnings).model_dump_json(indent=2))
    else:
        typer.echo(render_report(report))
    raise typer.Exit(code=EXIT_OK if report.satisfied else EXIT_VIOLATED)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
