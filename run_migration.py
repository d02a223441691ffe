#!/usr/bin/env python3
"""
Migration runner for the Competition Dashboard
Initializes the database and optionally imports a legacy JSON export or a CSV team roster
"""

import argparse
import sys

from config import settings, setup_logging
from database import DatabaseManager, DataMigration


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Initialize the competition database and import legacy data",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--db", default=settings.db_path, help="SQLite database file path (env: DB_PATH)")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--export", help="JSON export of the hosted store (teams, judgeScores, teamScores, users)")
    source.add_argument("--roster", help="CSV team roster (Team Number, Team Name, School, Student 1, ...)")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)

    print("🚀 Competition Dashboard Migration Tool")
    print("=" * 50)

    db_manager = DatabaseManager(args.db)
    db_manager.initialize_database()
    print(f"Database version: {db_manager.get_schema_version()}")

    success = True
    report = None
    if args.export or args.roster:
        migration = DataMigration(db_manager)
        if args.export:
            print(f"\n📊 Importing {args.export}...")
            success = migration.import_firebase_export(args.export)
        else:
            print(f"\n📊 Importing roster {args.roster}...")
            success = migration.import_teams_from_csv(args.roster)
        report = migration.get_migration_report()

    if report is not None:
        print(f"\n{'='*50}")
        print("MIGRATION RESULTS")
        print(f"{'='*50}")
        print(f"Status: {'✅ SUCCESS' if success else '❌ FAILED'}")
        print(f"Total steps: {report['total_steps']}")
        print(f"Successful: {report['success_count']}")
        print(f"Errors: {report['error_count']}")

        if report["skipped"]:
            print(f"\nSkipped {len(report['skipped'])} records:")
            for item in report["skipped"]:
                print(f"  - {item['collection']} {item['key']}: {item['reason']}")

        if not success:
            print("\nErrors encountered:")
            for log in report["migration_log"]:
                if log["status"] == "ERROR":
                    print(f"  - {log['step']}: {log['details']}")

    integrity_report = db_manager.validate_data_integrity()
    print(f"\nDatabase integrity: {'✅ Valid' if integrity_report['valid'] else '❌ Issues'}")
    for issue in integrity_report["issues"]:
        print(f"  ⚠️ {issue}")

    print("\nCurrent statistics:")
    for stat, value in integrity_report["stats"].items():
        print(f"  {stat}: {value}")

    if success:
        print("\nYou can now run the dashboard with:")
        print("  streamlit run streamlit_app.py")

    return 0 if success and integrity_report["valid"] else 1


if __name__ == "__main__":
    sys.exit(main())
