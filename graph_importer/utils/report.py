"""
Import Report Generator.

Generates a markdown report from an ImportReport.
"""

from pathlib import Path

from loguru import logger


def generate_import_report(report, output_path: Path) -> Path:
    """
    Generate a markdown import report.

    Args:
        report: ImportReport from BulkImporter.run
        output_path: Path to write the report

    Returns:
        Path to the generated report
    """
    log = logger.bind(component="ImportReport")

    lines = []
    lines.append("# Graph Import Report")
    lines.append(f"\n**Generated:** {report.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"\n**Workload:** {report.workload}")
    lines.append(f"\n**Input:** `{report.input_dir}`")
    lines.append(f"\n**Status:** {'✓ success' if report.success else '✗ failed'}")
    lines.append("")

    # --- Totals ---
    lines.append("---")
    lines.append("\n## Totals")
    lines.append("")
    lines.append("| Vertices | Edges | Properties | Files | Failed | Duration |")
    lines.append("|----------|-------|------------|-------|--------|----------|")
    lines.append(
        f"| {report.vertices:,} | {report.edges:,} | {report.properties:,} | "
        f"{len(report.tasks)} | {len(report.failed_tasks)} | {report.duration:.1f}s |"
    )
    lines.append("")

    # --- Schema ---
    lines.append("---")
    lines.append("\n## Schema Reconciliation")
    lines.append("")
    reconcile = report.reconcile
    if reconcile is None:
        lines.append("Schema was not reconciled.")
    else:
        lines.append("| Vertex Labels | Edge Labels | Property Keys | Indexes | Skipped |")
        lines.append("|---------------|-------------|---------------|---------|---------|")
        lines.append(
            f"| {len(reconcile.vertex_labels)} | {len(reconcile.edge_labels)} | "
            f"{len(reconcile.property_keys)} | {len(reconcile.indexes)} | "
            f"{len(reconcile.skipped)} |"
        )
        if reconcile.skipped:
            lines.append("")
            lines.append(f"Skipped (unsupported type): {', '.join(reconcile.skipped)}")
    lines.append("")

    # --- Files ---
    lines.append("---")
    lines.append("\n## Files")
    lines.append("")
    if report.tasks:
        lines.append("| File | Kind | Target | Rows | Commits | Status |")
        lines.append("|------|------|--------|------|---------|--------|")
        for task in sorted(report.tasks, key=lambda t: (t.kind.value, t.path.name)):
            status = "✓" if task.success else "✗"
            lines.append(
                f"| {task.path.name} | {task.kind.value} | {task.label} | "
                f"{task.rows_loaded:,} | {task.commits} | {status} |"
            )
    else:
        lines.append("No input files matched the workload.")
    lines.append("")

    # --- Failures ---
    if report.failed_tasks or report.pool_errors:
        lines.append("---")
        lines.append("\n## Failures")
        lines.append("")
        if report.failed_tasks:
            lines.append("| File | Row | Error Type | Error |")
            lines.append("|------|-----|------------|-------|")
            for task in report.failed_tasks:
                row = task.failed_row if task.failed_row is not None else ""
                error = (task.error or task.state.value).replace("|", "\\|")
                lines.append(f"| {task.path.name} | {row} | {task.error_type or ''} | {error} |")
            lines.append("")
        for error in report.pool_errors:
            lines.append(f"- Pool: {error}")
        lines.append("")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text("\n".join(lines), encoding="utf-8")
    log.info(f"Import report written to {output_path}")

    return output_path
