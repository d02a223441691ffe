import sqlite3

import pytest

from database import COLLECTIONS, DatabaseManager


def insert_team(conn, record_id, team_number):
    conn.execute("""
        INSERT INTO teams (id, team_number, team_name, school_name, student1, student2,
                           category, status, created_at)
        VALUES (?, ?, 'Bridge Crew', 'Riverside', 'Ana', 'Ben', 'jr', 'registered', '2025-03-01T14:00:00+00:00')
    """, (record_id, team_number))


def test_initialize_is_idempotent(db_manager):
    db_manager.initialize_database()

    assert db_manager.get_schema_version() == 1
    assert set(db_manager.get_revisions()) == set(COLLECTIONS)


def test_schema_version_of_empty_file_is_zero(tmp_path):
    assert DatabaseManager(str(tmp_path / "empty.db")).get_schema_version() == 0


def test_team_number_is_unique(db_manager):
    conn = db_manager.get_connection()
    try:
        insert_team(conn, "a", "12")
        with pytest.raises(sqlite3.IntegrityError):
            insert_team(conn, "b", "12")
        conn.commit()
    finally:
        conn.close()

    assert len(db_manager.fetch_collection("teams")) == 1


def test_writes_bump_only_their_collection_revision(db_manager):
    before = db_manager.get_revisions()

    conn = db_manager.get_connection()
    try:
        insert_team(conn, "a", "1")
        conn.execute("UPDATE teams SET status = 'waiting' WHERE id = 'a'")
        conn.commit()
    finally:
        conn.close()

    after = db_manager.get_revisions()
    assert after["teams"] == before["teams"] + 2
    assert after["judge_scores"] == before["judge_scores"]
    assert after["users"] == before["users"]


def test_fetch_unknown_collection(db_manager):
    with pytest.raises(ValueError):
        db_manager.fetch_collection("accounts")


def test_integrity_report_flags_orphaned_scores(db_manager):
    conn = db_manager.get_connection()
    try:
        conn.execute("""
            INSERT INTO judge_scores (id, team_number, judge_id, judge_name,
                                      criteria1, criteria2, criteria3, criteria4, criteria5, comments, timestamp)
            VALUES ('s1', '404', 'judge-1', 'Judge', 5, 5, 5, 5, 5, '', '2025-03-01T14:00:00+00:00')
        """)
        conn.commit()
    finally:
        conn.close()

    report = db_manager.validate_data_integrity()

    assert report["valid"]
    assert report["issues"] == ["Scores for unknown teams: 1"]
    assert report["stats"]["judge_scores"] == 1


def test_rubric_range_is_enforced_by_store(db_manager):
    conn = db_manager.get_connection()
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("""
                INSERT INTO judge_scores (id, team_number, judge_id, criteria1, criteria2,
                                          criteria3, criteria4, criteria5, timestamp)
                VALUES ('s1', '1', 'judge-1', 11, 5, 5, 5, 5, '2025-03-01T14:00:00+00:00')
            """)
    finally:
        conn.close()


def test_backup_copies_data(db_manager, tmp_path):
    conn = db_manager.get_connection()
    try:
        insert_team(conn, "a", "7")
        conn.commit()
    finally:
        conn.close()

    backup_path = db_manager.backup_database(str(tmp_path / "backup.db"))

    backup = DatabaseManager(backup_path)
    assert [row["team_number"] for row in backup.fetch_collection("teams")] == ["7"]
