"""Output formatting helpers for CLI."""

from __future__ import annotations

import json
from typing import Iterable, List, Sequence

import click

from src.ab_testing.models import Experiment, ExperimentResults


def format_table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Format a simple table with padded columns."""
    rows_list: List[List[str]] = [list(map(str, row)) for row in rows]
    widths = [len(str(h)) for h in headers]
    for row in rows_list:
        for idx, cell in enumerate(row):
            if idx >= len(widths):
                widths.append(len(cell))
            else:
                widths[idx] = max(widths[idx], len(cell))

    header_line = " ".join(str(h).ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-" * len(header_line)
    body_lines = [
        " ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row))
        for row in rows_list
    ]
    return "\n".join([header_line, separator] + body_lines)


def echo_table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    """Echo a simple table."""
    click.echo(format_table(headers, rows))


def echo_json(data) -> None:
    """Echo JSON with UTF-8 characters preserved."""
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def experiment_rows(experiments: Iterable[Experiment]) -> List[List[str]]:
    """Rows for the experiment list table."""
    rows = []
    for exp in experiments:
        results = exp.results
        rows.append([
            exp.id,
            exp.name,
            exp.status.value,
            f"{exp.traffic_allocation}%",
            str(results.variant_a.visitors + results.variant_b.visitors),
            results.winner or "-",
        ])
    return rows


def format_results(experiment: Experiment, results: ExperimentResults) -> str:
    """Human-readable result summary for one experiment."""
    lines = [f"実験: {experiment.name} ({experiment.id}) [{experiment.status.value}]", ""]
    for label, variant, counts in (
        ("A", experiment.control, results.variant_a),
        ("B", experiment.treatment, results.variant_b),
    ):
        lines.append(
            f"  {label} {variant.id} ({variant.name}): "
            f"{counts.conversions}/{counts.visitors} = {counts.conversion_rate * 100:.1f}%"
        )
    lines.append("")
    lines.append(f"  chi²: {results.chi_square:.3f}")
    if results.p_value is not None:
        lines.append(f"  p値: {results.p_value:.4f}")
    lines.append(f"  confidence: {results.confidence:.1f}")
    lines.append(f"  有意差: {'あり' if results.statistical_significance else 'なし'}")
    lines.append(f"  勝者: {results.winner or '-'}")
    return "\n".join(lines)
