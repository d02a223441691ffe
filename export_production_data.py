#!/usr/bin/env python3
"""
Export the competition database for backup or offline review
Writes the results workbook plus a raw CSV dump of every collection
"""

import argparse
import sys

import pandas as pd

from config import settings, setup_logging
from database import COLLECTIONS, ChangeFeed, DatabaseManager
from services import ReportingService


def export_production_data(db_path=settings.db_path, export_prefix="production_export",
                           workbook_path=settings.export_filename):
    """Export results and raw collections. Returns True on success"""
    db_manager = DatabaseManager(db_path)
    db_manager.initialize_database()
    feed = ChangeFeed(db_manager)
    reporting = ReportingService()

    print("🔄 Exporting competition database...")

    counts = {}
    for collection in COLLECTIONS:
        rows = db_manager.fetch_collection(collection)
        frame = pd.DataFrame(rows)
        export_file = f"{export_prefix}_{collection}.csv"
        frame.to_csv(export_file, index=False)
        counts[collection] = len(frame)
        print(f"✅ {collection} exported: {export_file} ({len(frame)} records)")

    table = reporting.build_results_table(feed.load("teams"), feed.load("team_scores"))
    with open(workbook_path, "wb") as f:
        f.write(reporting.export_to_excel(table, sheet_name=settings.export_sheet_name))
    print(f"✅ Results workbook: {workbook_path} ({len(table)} teams)")

    status_counts = reporting.get_status_counts(feed.load("teams"))
    print(f"\n📊 EXPORT SUMMARY:")
    for collection, count in counts.items():
        print(f"{collection}: {count}")
    print("\nTeams by status:")
    for status, count in status_counts.items():
        print(f"  {status}: {count}")

    return True


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Export competition data to CSV files and an Excel workbook",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--db", default=settings.db_path, help="SQLite database file path (env: DB_PATH)")
    parser.add_argument("--prefix", default="production_export", help="Prefix for the CSV files")
    parser.add_argument("--workbook", default=settings.export_filename, help="Results workbook path")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)

    try:
        success = export_production_data(args.db, args.prefix, args.workbook)
    except (OSError, ValueError) as e:
        print(f"❌ Export failed: {e}")
        success = False

    if success:
        print("\n🎯 All competition data exported successfully!")
    else:
        print("\n💥 Export failed!")
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
