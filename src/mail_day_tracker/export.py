"""Export scan results to CSV or JSON."""

import csv
import json

from .models import ScanSummary


def export_days(summary: ScanSummary, countries, format: str, output_path: str) -> None:
    """Export the day records of a scan to a file.

    Args:
        summary: The scan summary to export.
        countries: Tracked countries, in column order.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.
    """
    if format == "csv":
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=["day", *countries])
            writer.writeheader()
            for day, record in sorted(summary.records.items()):
                writer.writerow(
                    {"day": day.isoformat(), **{c: int(record.country_flags.get(c, False)) for c in countries}}
                )
    elif format == "json":
        with open(output_path, "w") as f:
            json.dump(summary.to_dict(), f, indent=2)
    else:
        raise ValueError(f"unsupported export format: {format}")
