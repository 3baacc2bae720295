"""
Graph Import Runner.

Reconciles the store schema with a workload, then bulk-loads a directory of
LDBC SNB CSV shards.

Usage:
    python run_import.py --input-dir data/social_network --threads 8
    python run_import.py --backend memory --report outputs/import_report.md
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from graph_importer.errors import ConnectionFailure, ImporterError
from graph_importer.graph import create_store
from graph_importer.loading import BulkImporter, ImportReport
from graph_importer.schema import TypeRegistry, load_workload
from graph_importer.utils.config import ImporterConfig, load_config
from graph_importer.utils.logging import setup_logging
from graph_importer.utils.report import generate_import_report


def run_import(
    config: ImporterConfig,
    report_path: Optional[Path] = None,
) -> ImportReport:
    """
    Run one import with the given configuration.

    Args:
        config: Loaded importer configuration
        report_path: Where to write the markdown report, or None to skip

    Returns:
        The run's ImportReport

    Raises:
        ConnectionFailure: if the store cannot be reached
        ImporterError: if schema reconciliation fails
    """
    log = logger.bind(component="Import")

    log.info("=" * 70)
    log.info("GRAPH BULK IMPORT")
    log.info("=" * 70)

    schema = load_workload(config.data.workload)
    log.info(
        f"Workload '{schema.name}': {len(schema.vertices)} vertex labels, "
        f"{len(schema.edges)} edge labels"
    )

    store = create_store(config.store.backend, config.surreal.connection())
    try:
        importer = BulkImporter(store, schema, config.loading, TypeRegistry())
        report = importer.run(config.data.input_dir)
    finally:
        store.close()

    if report_path is not None:
        generate_import_report(report, report_path)

    log.info("=" * 70)
    log.info("IMPORT COMPLETE" if report.success else "IMPORT FINISHED WITH FAILURES")
    log.info("=" * 70)
    return report


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Bulk-load LDBC SNB CSV shards into a graph store")
    parser.add_argument("--config", type=Path, help="Path to the YAML config file")
    parser.add_argument("--input-dir", type=Path, help="Directory holding the CSV shards")
    parser.add_argument("--workload", help="Bundled workload name or workload YAML path")
    parser.add_argument("--threads", type=int, help="Writer threads per phase")
    parser.add_argument("--transaction-size", type=int, help="Rows per commit")
    parser.add_argument(
        "--backend",
        choices=["surreal", "memory"],
        help="Graph store backend (memory for a dry run)",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Where to write the markdown import report (default: <output_dir>/import_report.md)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    overrides = {
        "data": {
            "input_dir": args.input_dir,
            "workload": args.workload,
        },
        "loading": {
            "num_threads": args.threads,
            "transaction_size": args.transaction_size,
        },
        "store": {"backend": args.backend},
    }
    try:
        config = load_config(args.config)
        for section, values in overrides.items():
            values = {k: v for k, v in values.items() if v is not None}
            if values:
                current = getattr(config, section)
                setattr(config, section, current.model_validate({**current.model_dump(), **values}))
    except ValidationError as e:
        print(f"\n✗ Import aborted: invalid configuration\n{e}")
        sys.exit(1)

    report_path = args.report or config.report_path

    level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(
        config.logs_dir,
        level=level,
        log_format=config.logging.format,
        console=config.logging.console,
        file=config.logging.file,
    )

    try:
        report = run_import(config, report_path)
    except (ConnectionFailure, ImporterError, FileNotFoundError) as e:
        logger.error(f"Import aborted: {e}")
        print(f"\n✗ Import aborted: {e}")
        sys.exit(1)

    if report.success:
        print("\n✓ Import completed successfully")
    else:
        print(f"\n✗ Import finished with {len(report.failed_tasks)} failed file(s)")
    print(f"  Vertices: {report.vertices:,}")
    print(f"  Edges: {report.edges:,}")
    print(f"  Properties: {report.properties:,}")
    print(f"  Report → {report_path}")

    if not report.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
