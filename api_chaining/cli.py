import argparse
import json
import logging
import sys
from pathlib import Path

from api_chaining.config.settings import Settings, load_settings
from api_chaining.executor.api_client import HttpRequestExecutor
from api_chaining.executor.workflow_engine import WorkflowEngine
from api_chaining.models.execution import ExecutionStatus, StepExecutionResult
from api_chaining.serialization.workflow_io import export_workflow, import_workflow
from api_chaining.storage.json_store import JsonStore
from api_chaining.utils.exceptions import WorkflowImportError


def _store(args, settings: Settings) -> JsonStore:
    return JsonStore(args.data_dir or settings.data_dir)


def cmd_serve(args, settings: Settings):
    import uvicorn

    from api_chaining.api.app import create_app

    app = create_app(data_dir=args.data_dir, settings=settings)
    uvicorn.run(app, host=args.host, port=args.port)


def cmd_import(args, settings: Settings):
    try:
        definition = import_workflow(Path(args.file).read_text())
    except WorkflowImportError as e:
        print(f"Import failed: {e}", file=sys.stderr)
        sys.exit(1)
    doc = _store(args, settings).create_workflow(definition)
    print(f"Imported workflow: {doc.id} ({doc.name})")


def cmd_export(args, settings: Settings):
    doc = _store(args, settings).get_workflow(args.workflow_id)
    if doc is None:
        print(f"Workflow '{args.workflow_id}' not found", file=sys.stderr)
        sys.exit(1)
    text = export_workflow(doc)
    if args.output:
        Path(args.output).write_text(text)
        print(f"Exported {doc.name} to {args.output}")
    else:
        print(text)


def cmd_list(args, settings: Settings):
    for doc in _store(args, settings).get_all_workflows():
        print(f"{doc.id}  {doc.name}  ({len(doc.steps)} steps)")


def cmd_run(args, settings: Settings):
    store = _store(args, settings)
    doc = store.get_workflow(args.workflow_id)
    if doc is None:
        print(f"Workflow '{args.workflow_id}' not found", file=sys.stderr)
        sys.exit(1)

    steps = doc.sorted_steps()

    def on_step_complete(index: int, result: StepExecutionResult):
        print(f"[{index + 1}/{len(steps)}] {steps[index].name or result.step_id}: {result.status.value}", file=sys.stderr)

    engine = WorkflowEngine(HttpRequestExecutor(settings.http))
    execution = engine.execute(doc, on_step_complete=on_step_complete)
    store.save_execution(execution)
    print(json.dumps(execution.model_dump(mode="json", by_alias=True), indent=2))
    if execution.status != ExecutionStatus.COMPLETED:
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(prog="apichain", description="API chaining workflow engine")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--data-dir", default=None)
    sub = parser.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="Start the web server")
    serve_p.add_argument("--host", default="127.0.0.1")
    serve_p.add_argument("--port", type=int, default=8000)

    import_p = sub.add_parser("import", help="Import a workflow from exported JSON")
    import_p.add_argument("file", help="Path to workflow JSON file")

    export_p = sub.add_parser("export", help="Export a stored workflow as JSON")
    export_p.add_argument("workflow_id")
    export_p.add_argument("-o", "--output", help="Write to this file instead of stdout")

    sub.add_parser("list", help="List stored workflows")

    run_p = sub.add_parser("run", help="Execute a stored workflow")
    run_p.add_argument("workflow_id")

    args = parser.parse_args()
    settings = load_settings(args.config)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "serve": cmd_serve,
        "import": cmd_import,
        "export": cmd_export,
        "list": cmd_list,
        "run": cmd_run,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)
    command(args, settings)


if __name__ == "__main__":
    main()
