"""CLI entrypoint for the enrichment pipeline."""

import argparse
import asyncio
import json
import logging
import os
import sys
import warnings
from pathlib import Path

from enricher.core.config import API_KEY_ENV_VAR, AssetConfig, FAST_MODEL, SMART_MODEL

# Suppress LiteLLM's direct prints (must be before import)
os.environ["LITELLM_LOG"] = "ERROR"

warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
warnings.filterwarnings("ignore", message="PydanticSerializationUnexpectedValue")
warnings.filterwarnings("ignore", message="Unclosed client session")
warnings.filterwarnings("ignore", category=ResourceWarning)

# Suppress noisy loggers (HTTP clients, LiteLLM internals)
for logger_name in ["httpx", "httpcore", "litellm", "LiteLLM", "aiohttp", "asyncio"]:
    logging.getLogger(logger_name).setLevel(logging.ERROR)

from dotenv import load_dotenv  # noqa: E402 - must be after logging config

load_dotenv()

import litellm  # noqa: E402

litellm.suppress_debug_info = True

from enricher.collaborators.crm_import import import_crm_export, load_crm_export  # noqa: E402
from enricher.core.errors import CheckpointCorrupt  # noqa: E402
from enricher.pydantic_models.work import STAGE_ORDER, StageFlag  # noqa: E402
from enricher.scheduler import Scheduler, build_local_scheduler  # noqa: E402

DEFAULT_STATE_DIR = ".enricher"

STAGE_OPTIONS = {
    "docs": StageFlag.DOCUMENT_EXTRACTION,
    "web": StageFlag.WEB_ENRICHMENT,
    "synthesis": StageFlag.SYNTHESIS,
    "report": StageFlag.REPORT_GENERATION,
}


def _scheduler(args) -> Scheduler:
    state_dir = Path(args.state_dir)
    return build_local_scheduler(
        state_dir=state_dir,
        records_path=args.records or state_dir / "records.json",
        documents_dir=args.documents,
        reports_dir=args.reports,
        verbose=args.verbose,
    )


def _require_api_key() -> bool:
    if os.environ.get(API_KEY_ENV_VAR):
        return True
    print(f"Error: {API_KEY_ENV_VAR} not set")
    print(f"Set it in .env or export {API_KEY_ENV_VAR}=...")
    return False


def _selected_stages(args) -> list[StageFlag]:
    if args.all:
        return list(STAGE_ORDER)
    return [flag for option, flag in STAGE_OPTIONS.items() if getattr(args, option)]


def cmd_submit(args) -> int:
    stages = _selected_stages(args)
    if not stages:
        print("Error: choose at least one stage (--docs, --web, --synthesis, --report or --all)")
        return 1

    scheduler = _scheduler(args)
    entities = list(args.entities)
    if args.cohort:
        store = scheduler.executor.context.store
        entities += [e.name for e in store.entities() if e.cohort == args.cohort]
    if not entities:
        print("Error: no entities given and none found for that cohort")
        return 1

    print(scheduler.submit(entities, stages, template_id=args.template))
    return 0


def cmd_resume(args) -> int:
    if not _require_api_key():
        return 1
    status = asyncio.run(_scheduler(args).resume())
    print(status.value)
    return 0


def cmd_worker(args) -> int:
    if not _require_api_key():
        return 1

    print(f"\n{'='*50}")
    print("Enrichment worker")
    print(f"{'='*50}")
    print(f"  Smart model: {SMART_MODEL}")
    print(f"  Fast model: {FAST_MODEL}")
    print()

    scheduler = _scheduler(args)
    invocations = asyncio.run(scheduler.run_worker(max_invocations=args.max_invocations))
    pending = scheduler.status()["pending_entities"]
    print(f"\n[WORKER] {invocations} invocation(s), {pending} entities pending")
    return 0


def cmd_status(args) -> int:
    print(json.dumps(_scheduler(args).status(), indent=2, ensure_ascii=False))
    return 0


def cmd_clear(args) -> int:
    dropped = _scheduler(args).clear()
    print(f"Cleared checkpoint, {dropped} entities dropped")
    return 0


def cmd_import_crm(args) -> int:
    export_path = Path(args.export)
    if not export_path.exists():
        print(f"Error: File not found: {export_path}")
        return 1

    scheduler = _scheduler(args)
    context = scheduler.executor.context
    result = import_crm_export(load_crm_export(export_path), context.store, context.schema)

    print(f"Imported {len(result.imported)} companies ({result.skipped} skipped)")
    for cohort, names in sorted(result.cohorts.items()):
        print(f"  {cohort}: {len(names)}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Organization Enrichment Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  uv run enrich import-crm hubspot_export.json
  uv run enrich submit --all "Acme" "Globex"
  uv run enrich submit --web --synthesis --cohort "Fintech 2024"
  uv run enrich worker --documents uploads/ --reports reports/
  uv run enrich status
        """,
    )
    parser.add_argument(
        "--state-dir",
        default=DEFAULT_STATE_DIR,
        help=f"Checkpoint, triggers and logs (default: {DEFAULT_STATE_DIR})",
    )
    parser.add_argument("--records", default=None, help="Record store JSON file (default: <state-dir>/records.json)")
    parser.add_argument("--documents", default=None, help="Root folder of per-entity document folders")
    parser.add_argument("--reports", default="reports", help="Report output directory (default: reports)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output with DEBUG level logging")

    commands = parser.add_subparsers(dest="command", required=True)

    submit = commands.add_parser("submit", help="Queue entities for enrichment")
    submit.add_argument("entities", nargs="*", help="Entity names")
    submit.add_argument("--cohort", default=None, help="Also queue every entity in this cohort")
    submit.add_argument("--docs", action="store_true", help="Document extraction")
    submit.add_argument("--web", action="store_true", help="Web enrichment")
    submit.add_argument("--synthesis", action="store_true", help="Synthesis")
    submit.add_argument("--report", action="store_true", help="Report generation once the batch drains")
    submit.add_argument("--all", action="store_true", help="Every stage")
    submit.add_argument(
        "--template",
        default=None,
        help=f"Report template id (default: {AssetConfig.DEFAULT_TEMPLATE_ID})",
    )
    submit.set_defaults(handler=cmd_submit)

    resume = commands.add_parser("resume", help="Run one time-boxed invocation")
    resume.set_defaults(handler=cmd_resume)

    worker = commands.add_parser("worker", help="Call resume every trigger period until the queue drains")
    worker.add_argument("--max-invocations", type=int, default=None, help="Stop after N invocations")
    worker.set_defaults(handler=cmd_worker)

    status = commands.add_parser("status", help="Show the queue and recent stage outcomes")
    status.set_defaults(handler=cmd_status)

    clear = commands.add_parser("clear", help="Abandon all queued work")
    clear.set_defaults(handler=cmd_clear)

    import_crm = commands.add_parser("import-crm", help="Import a CRM company export into the CRM partition")
    import_crm.add_argument("export", help="CRM export JSON file")
    import_crm.set_defaults(handler=cmd_import_crm)

    args = parser.parse_args()

    try:
        code = args.handler(args)
    except CheckpointCorrupt as e:
        print(f"\n[ERROR] {e}")
        print("Inspect the checkpoint or run `enrich clear` to abandon it.")
        code = 2
    except ValueError as e:
        print(f"\n[ERROR] {e}")
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
