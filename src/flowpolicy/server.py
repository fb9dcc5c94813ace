from __future__ import annotations

from pathlib import Path
from typing import Callable

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    Diagnostic,
    DiagnosticSeverity,
    Position,
    PublishDiagnosticsParams,
    Range,
)
from pydantic import ValidationError
from pygls.lsp.server import LanguageServer

from flowpolicy import __version__
from flowpolicy.config import resolve_settings
from flowpolicy.evaluation import evaluate_units, load_graph, report_to_dto
from flowpolicy.exceptions import ConfigError, FlowPolicyError, PolicyParseError
from flowpolicy.invariants import never
from flowpolicy.language import ShadowingMode, check_bindings, compile_policy, parse_policy
from flowpolicy.schema import CheckPolicyRequest, PolicyReportDTO

server = LanguageServer("flowpolicy", __version__)
CHECK_POLICY_COMMAND = "flowpolicy.checkPolicy"
_SOURCE = "flowpolicy"


def _position(text: str, offset: int) -> Position:
    offset = max(0, min(offset, len(text)))
    prefix = text[:offset]
    line = prefix.count("\n")
    return Position(line=line, character=offset - (prefix.rfind("\n") + 1))


def _token_range(text: str, offset: int) -> Range:
    start = _position(text, offset)
    end_offset = offset
    while end_offset < len(text) and not text[end_offset].isspace():
        end_offset += 1
    if end_offset == offset:
        end_offset = min(offset + 1, len(text))
    return Range(start=start, end=_position(text, end_offset))


def diagnostics_for_text(
    text: str, shadowing: ShadowingMode = ShadowingMode.WARN
) -> list[Diagnostic]:
    try:
        policy = parse_policy(text)
    except PolicyParseError as exc:
        rules = " > ".join(frame.rule for frame in reversed(exc.trace))
        message = str(exc) if not rules else f"{exc} (in {rules})"
        return [
            Diagnostic(
                range=_token_range(text, exc.offset),
                message=message,
                severity=DiagnosticSeverity.Error,
                source=_SOURCE,
            )
        ]
    diagnostics: list[Diagnostic] = []
    for finding in check_bindings(policy):
        if not finding.is_error and shadowing is ShadowingMode.ALLOW:
            continue
        severity = DiagnosticSeverity.Warning
        if finding.is_error or shadowing is ShadowingMode.REJECT:
            severity = DiagnosticSeverity.Error
        diagnostics.append(
            Diagnostic(
                range=_token_range(text, max(finding.offset, 0)),
                message=finding.message,
                severity=severity,
                source=_SOURCE,
            )
        )
    return diagnostics


def _workspace_root(ls: LanguageServer) -> Path | None:
    root_path = ls.workspace.root_path
    return Path(root_path) if root_path else None


def document_diagnostics(text: str, root: Path | None) -> list[Diagnostic]:
    """Diagnostics for one policy document, including a broken workspace config."""
    diagnostics: list[Diagnostic] = []
    try:
        shadowing = resolve_settings(root=root).shadowing
    except ConfigError as exc:
        diagnostics.append(
            Diagnostic(
                range=Range(start=Position(line=0, character=0), end=Position(line=0, character=0)),
                message=str(exc),
                severity=DiagnosticSeverity.Error,
                source=_SOURCE,
            )
        )
        shadowing = ShadowingMode.WARN
    diagnostics.extend(diagnostics_for_text(text, shadowing))
    return diagnostics


def _publish(ls: LanguageServer, uri: str) -> None:
    document = ls.workspace.get_text_document(uri)
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(
            uri=uri,
            diagnostics=document_diagnostics(document.source, _workspace_root(ls)),
        )
    )


def _require_payload(payload: object, *, command: str) -> dict[str, object]:
    if isinstance(payload, list) and len(payload) == 1:
        payload = payload[0]
    if payload is None:
        never("missing command payload", command=command)
    if not isinstance(payload, dict):
        never(
            "invalid command payload type",
            command=command,
            payload_type=type(payload).__name__,
        )
    return payload


def run_check(request: CheckPolicyRequest, *, root: Path | None = None) -> PolicyReportDTO:
    try:
        settings = resolve_settings(
            root=root,
            config_path=Path(request.config) if request.config else None,
            overrides={"units": request.units or None},
        )
        text = Path(request.policy_path).read_text(encoding="utf-8")
        compiled = compile_policy(text, shadowing=settings.shadowing)
        report = evaluate_units(
            compiled.policy,
            load_graph(Path(request.graph_path)),
            units=settings.units or None,
            max_steps=settings.max_steps,
        )
    except (FlowPolicyError, OSError) as exc:
        return PolicyReportDTO(satisfied=False, errors=[str(exc)])
    return report_to_dto(report, compiled.warnings)


@server.command(CHECK_POLICY_COMMAND)
def execute_check(ls: LanguageServer, payload: object = None) -> dict:
    payload = _require_payload(payload, command=CHECK_POLICY_COMMAND)
    try:
        request = CheckPolicyRequest.model_validate(payload)
    except ValidationError as exc:
        return PolicyReportDTO(satisfied=False, errors=[str(exc)]).model_dump()
    return run_check(request, root=_workspace_root(ls)).model_dump()


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server on stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
