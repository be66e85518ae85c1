"""
Main Execution Script for the office assignment engine.

Loads a JSON snapshot (offices, rules, clinicians, preferences, appointments),
runs the daily summary for one date and prints a short report.
"""

import argparse
import asyncio
import json
import logging
from datetime import date

from office_models import AlertSeverity, DailyScheduleSummary
from office_scheduler.errors import DataStoreError
from office_scheduler.store import JsonSnapshotStore, SnapshotCache, StoreAppointmentSource
from office_scheduler.summary import DailySummaryService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")


def export_summary(summary: DailyScheduleSummary, filename: str) -> None:
    """Write the summary with wire (camelCase) field names for dashboards."""
    with open(filename, 'w') as f:
        json.dump(summary.to_payload(), f, indent=2)
    logger.info(f"Exported summary to {filename}")


def print_report(summary: DailyScheduleSummary) -> None:
    print("\n" + "=" * 50)
    print(f"DAILY SCHEDULE SUMMARY - {summary.date.isoformat()}")
    print("=" * 50)
    print(f"Appointments: {len(summary.appointments)}")
    print(f"Conflicts:    {len(summary.conflicts)}")
    print(f"Alerts:       {len(summary.alerts)} "
          f"({len(summary.alerts_by_severity(AlertSeverity.HIGH))} high)")

    if summary.alerts:
        print("\nALERTS")
        for alert in summary.alerts:
            print(f"[{alert.severity.value.upper()}] {alert.type.value}: {alert.message}")

    print("\nOFFICE UTILIZATION")
    for office_id, usage in sorted(summary.office_utilization.items()):
        notes = ", ".join(usage.special_notes)
        print(f"{office_id:<6} {usage.booked_slots:>2}/{usage.total_slots:<2} "
              f"{usage.utilization:>5.0%}  {notes}")


async def run(snapshot: str, day: date) -> DailyScheduleSummary:
    store = SnapshotCache(JsonSnapshotStore(snapshot))
    service = DailySummaryService(store, StoreAppointmentSource(store))
    return await service.generate_daily_summary(day)


def main():
    parser = argparse.ArgumentParser(description="Assign offices and summarize one practice day.")
    parser.add_argument("--snapshot", required=True, help="JSON snapshot of the data store")
    parser.add_argument("--date", type=date.fromisoformat, default=date.today(), help="YYYY-MM-DD")
    parser.add_argument("--export", help="Write the summary JSON to this file")
    args = parser.parse_args()

    try:
        summary = asyncio.run(run(args.snapshot, args.date))
    except DataStoreError as e:
        logger.error(f"Failed to read snapshot: {e}")
        raise SystemExit(1)

    print_report(summary)
    if args.export:
        export_summary(summary, args.export)


if __name__ == "__main__":
    main()
