"""
Competition Dashboard - Database Schema
Defines the SQLite store behind the check-in, scoring and admin views
"""

import sqlite3
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

COLLECTIONS = ("teams", "judge_scores", "team_scores", "users")

_COLLECTION_ORDER = {
    "teams": "team_number",
    "judge_scores": "timestamp, id",
    "team_scores": "category, total_score DESC, team_number",
    "users": "email",
}


def new_record_id() -> str:
    """Store-generated record id, distinct from the operator-assigned team number"""
    return uuid.uuid4().hex


class DatabaseManager:
    """Database manager for the competition dashboard"""

    def __init__(self, db_path: str = "competition.db"):
        self.db_path = db_path
        self.version = 1  # Database schema version for future migrations

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with proper settings"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize_database(self):
        """Initialize database with complete schema"""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("PRAGMA journal_mode=WAL")

            self._create_users_table(cursor)
            self._create_accounts_table(cursor)
            self._create_teams_table(cursor)
            self._create_judge_scores_table(cursor)
            self._create_team_scores_table(cursor)
            self._create_revisions_table(cursor)
            self._create_schema_version_table(cursor)

            # Uniqueness and lookup indexes
            self._create_indexes(cursor)

            # Revision counters that let any process detect writes
            self._create_revision_triggers(cursor)

            cursor.execute(
                "INSERT OR IGNORE INTO schema_version (version, applied_at, description) VALUES (?, ?, ?)",
                (self.version, datetime.now().isoformat(), "Initial competition schema")
            )

            conn.commit()
        finally:
            conn.close()

        logger.info(f"Database schema initialized at {self.db_path}")

    def _create_users_table(self, cursor):
        """Create role records keyed by principal id"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                uid TEXT PRIMARY KEY,
                email TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL CHECK (role IN ('volunteer', 'judge', 'admin')),
                name TEXT NOT NULL DEFAULT ''
            )
        """)

    def _create_accounts_table(self, cursor):
        """Create sign-in credentials, kept apart from role records"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                uid TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL COLLATE NOCASE,
                password_hash TEXT NOT NULL,
                salt TEXT NOT NULL,
                iterations INTEGER NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

    def _create_teams_table(self, cursor):
        """Create teams table"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS teams (
                id TEXT PRIMARY KEY,
                team_number TEXT NOT NULL,
                team_name TEXT NOT NULL,
                school_name TEXT NOT NULL,
                student1 TEXT NOT NULL,
                student2 TEXT NOT NULL,
                category TEXT NOT NULL CHECK (category IN ('jr', 'sr')),
                status TEXT NOT NULL DEFAULT 'registered'
                    CHECK (status IN ('registered', 'waiting', 'checked-in', 'completed')),
                created_at TEXT NOT NULL,
                arrival_time TEXT,
                check_in_time TEXT
            )
        """)

    def _create_judge_scores_table(self, cursor):
        """Create judge rubric submissions"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS judge_scores (
                id TEXT PRIMARY KEY,
                team_number TEXT NOT NULL,
                judge_id TEXT NOT NULL,
                judge_name TEXT NOT NULL DEFAULT '',
                criteria1 INTEGER NOT NULL CHECK (criteria1 BETWEEN 1 AND 10),
                criteria2 INTEGER NOT NULL CHECK (criteria2 BETWEEN 1 AND 10),
                criteria3 INTEGER NOT NULL CHECK (criteria3 BETWEEN 1 AND 10),
                criteria4 INTEGER NOT NULL CHECK (criteria4 BETWEEN 1 AND 10),
                criteria5 INTEGER NOT NULL CHECK (criteria5 BETWEEN 1 AND 10),
                comments TEXT NOT NULL DEFAULT '',
                timestamp TEXT NOT NULL
            )
        """)

    def _create_team_scores_table(self, cursor):
        """Create derived per-team aggregates"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS team_scores (
                team_number TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                avg_criteria1 REAL NOT NULL DEFAULT 0,
                avg_criteria2 REAL NOT NULL DEFAULT 0,
                avg_criteria3 REAL NOT NULL DEFAULT 0,
                avg_criteria4 REAL NOT NULL DEFAULT 0,
                avg_criteria5 REAL NOT NULL DEFAULT 0,
                total_score REAL NOT NULL DEFAULT 0,
                rank INTEGER,
                judge_count INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT
            )
        """)

    def _create_revisions_table(self, cursor):
        """Create per-collection revision counters"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS collection_revisions (
                collection TEXT PRIMARY KEY,
                revision INTEGER NOT NULL DEFAULT 0
            )
        """)
        for collection in COLLECTIONS:
            cursor.execute(
                "INSERT OR IGNORE INTO collection_revisions (collection, revision) VALUES (?, 0)",
                (collection,)
            )

    def _create_schema_version_table(self, cursor):
        """Create schema version table for migrations"""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                description TEXT
            )
        """)

    def _create_indexes(self, cursor):
        """Create uniqueness and lookup indexes"""
        indexes = [
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_teams_number ON teams(team_number)",
            "CREATE INDEX IF NOT EXISTS idx_teams_status ON teams(status)",
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_judge_scores_team_judge ON judge_scores(team_number, judge_id)",
            "CREATE INDEX IF NOT EXISTS idx_judge_scores_judge ON judge_scores(judge_id)",
            "CREATE INDEX IF NOT EXISTS idx_team_scores_category ON team_scores(category)",
        ]

        for index_sql in indexes:
            cursor.execute(index_sql)

    def _create_revision_triggers(self, cursor):
        """Bump a collection's revision on every insert, update and delete"""
        for collection in COLLECTIONS:
            for action in ("INSERT", "UPDATE", "DELETE"):
                cursor.execute(f"""
                    CREATE TRIGGER IF NOT EXISTS trg_{collection}_{action.lower()}
                    AFTER {action} ON {collection}
                    BEGIN
                        UPDATE collection_revisions SET revision = revision + 1
                        WHERE collection = '{collection}';
                    END
                """)

    def get_revisions(self) -> Dict[str, int]:
        """Current revision of every collection"""
        conn = self.get_connection()
        try:
            rows = conn.execute("SELECT collection, revision FROM collection_revisions").fetchall()
            return {row["collection"]: row["revision"] for row in rows}
        finally:
            conn.close()

    def fetch_collection(self, collection: str) -> List[Dict[str, Any]]:
        """Read every row of a collection as plain dicts"""
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")

        conn = self.get_connection()
        try:
            rows = conn.execute(
                f"SELECT * FROM {collection} ORDER BY {_COLLECTION_ORDER[collection]}"
            ).fetchall()
            return [dict(row) for row in rows]
        finally:
            conn.close()

    def get_schema_version(self) -> int:
        """Get current database schema version"""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT MAX(version) FROM schema_version")
            result = cursor.fetchone()
            return result[0] if result[0] else 0
        except sqlite3.OperationalError:
            return 0
        finally:
            conn.close()

    def backup_database(self, backup_path: Optional[str] = None) -> str:
        """Create a backup of the database"""
        if not backup_path:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            stem = self.db_path[:-3] if self.db_path.endswith(".db") else self.db_path
            backup_path = f"{stem}_backup_{timestamp}.db"

        # WAL mode keeps recent writes outside the main file, so copy through sqlite
        source = self.get_connection()
        target = sqlite3.connect(backup_path)
        try:
            source.backup(target)
        finally:
            target.close()
            source.close()
        logger.info(f"Database backed up to {backup_path}")
        return backup_path

    def validate_data_integrity(self) -> Dict[str, Any]:
        """Validate database integrity and return report"""
        integrity_report = {
            "valid": True,
            "issues": [],
            "stats": {}
        }

        conn = self.get_connection()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                SELECT team_number, COUNT(*) FROM teams
                GROUP BY team_number HAVING COUNT(*) > 1
            """)
            duplicate_numbers = cursor.fetchall()
            if duplicate_numbers:
                integrity_report["valid"] = False
                integrity_report["issues"].append(
                    f"Duplicate team numbers: {', '.join(row[0] for row in duplicate_numbers)}"
                )

            cursor.execute("""
                SELECT COUNT(*) FROM (
                    SELECT team_number, judge_id FROM judge_scores
                    GROUP BY team_number, judge_id HAVING COUNT(*) > 1
                )
            """)
            duplicate_scores = cursor.fetchone()[0]
            if duplicate_scores:
                integrity_report["valid"] = False
                integrity_report["issues"].append(f"Duplicate judge scores: {duplicate_scores}")

            # Scores whose team has since been deleted are kept, but reported
            cursor.execute("""
                SELECT COUNT(*) FROM judge_scores s
                LEFT JOIN teams t ON s.team_number = t.team_number
                WHERE t.id IS NULL
            """)
            orphaned = cursor.fetchone()[0]
            if orphaned:
                integrity_report["issues"].append(f"Scores for unknown teams: {orphaned}")

            stats_queries = {
                "teams": "SELECT COUNT(*) FROM teams",
                "judge_scores": "SELECT COUNT(*) FROM judge_scores",
                "team_scores": "SELECT COUNT(*) FROM team_scores",
                "users": "SELECT COUNT(*) FROM users",
                "accounts": "SELECT COUNT(*) FROM accounts",
            }

            for stat_name, query in stats_queries.items():
                cursor.execute(query)
                integrity_report["stats"][stat_name] = cursor.fetchone()[0]

        except sqlite3.Error as e:
            integrity_report["valid"] = False
            integrity_report["issues"].append(f"Database error: {str(e)}")
        finally:
            conn.close()

        return integrity_report

if __name__ == "__main__":
    # Initialize database when run directly
    db_manager = DatabaseManager()
    db_manager.initialize_database()

    report = db_manager.validate_data_integrity()
    print(f"Database integrity: {'✅ Valid' if report['valid'] else '❌ Issues found'}")
    for issue in report["issues"]:
        print(f"  ⚠️ {issue}")

    print("\nDatabase Statistics:")
    for stat, value in report["stats"].items():
        print(f"  {stat}: {value}")
