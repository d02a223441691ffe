import pytest

from models import Category, Rubric, TeamStatus, User, UserRole
from services.scoring import MSG_ALREADY_SCORED

from conftest import NOW


def make_judge(uid):
    return User(uid=uid, email=f"{uid}@competition.test", role=UserRole.JUDGE, name=uid.title())


def uniform(value):
    return Rubric(**{f"criteria{i}": value for i in range(1, 6)})


def test_score_team(scoring, registry, add_team, judge):
    add_team("3")
    team, message = scoring.find_team("3", judge)
    assert team is not None
    assert message == "Team 3 found"

    rubric = Rubric(criteria1=5, criteria2=6, criteria3=7, criteria4=8, criteria5=9)
    ok, message = scoring.submit_score(team, judge, rubric, "solid design")

    assert ok
    assert message == "Score submitted successfully!"
    scores = scoring.get_judge_scores("3")
    assert len(scores) == 1
    assert scores[0].scores == rubric
    assert scores[0].comments == "solid design"
    assert scores[0].judge_id == judge.uid
    assert scores[0].judge_name == judge.name
    assert scores[0].timestamp == NOW.isoformat()
    assert registry.get_team_by_number("3").status == TeamStatus.COMPLETED


def test_find_team_after_scoring(scoring, add_team, judge):
    team = add_team("3")
    assert scoring.submit_score(team, judge, uniform(5))[0]

    assert scoring.find_team("3", judge) == (None, MSG_ALREADY_SCORED)
    assert scoring.find_team("3", make_judge("other"))[0] is not None


def test_find_unknown_team(scoring, judge):
    assert scoring.find_team("404", judge) == (None, "Team not found")


def test_duplicate_submission_race(scoring, add_team, judge):
    add_team("3")
    # Both searches pass before either submission lands
    first, _ = scoring.find_team("3", judge)
    second, _ = scoring.find_team("3", judge)

    assert scoring.submit_score(first, judge, uniform(7))[0]
    assert scoring.submit_score(second, judge, uniform(2)) == (False, MSG_ALREADY_SCORED)

    scores = scoring.get_judge_scores("3")
    assert len(scores) == 1
    assert scores[0].scores == uniform(7)


def test_rubric_out_of_range(scoring, add_team, judge):
    team = add_team("3")

    ok, message = scoring.submit_score(team, judge, {"criteria1": 11})

    assert not ok
    assert message == "Each criterion must be scored between 1 and 10"
    assert scoring.get_judge_scores() == []


def test_rubric_defaults_to_five():
    assert uniform(5) == Rubric()


def test_deleted_team_rolls_back(scoring, registry, add_team, judge):
    team = add_team("3")
    assert registry.delete_team(team.id)[0]

    assert scoring.submit_score(team, judge, uniform(6)) == (False, "Team not found")
    assert scoring.get_judge_scores() == []


def test_submit_only_touches_status(scoring, db_manager, registry, add_team, judge):
    team = add_team("3")
    conn = db_manager.get_connection()
    conn.execute("UPDATE teams SET team_name = 'Renamed' WHERE id = ?", (team.id,))
    conn.commit()
    conn.close()

    assert scoring.submit_score(team, judge, uniform(6))[0]

    stored = registry.get_team(team.id)
    assert stored.team_name == "Renamed"
    assert stored.status == TeamStatus.COMPLETED


@pytest.fixture
def scored_competition(scoring, add_team):
    """Junior teams 1-4 and senior teams 5-6 with a spread of judge scores"""
    teams = {number: add_team(number) for number in ("1", "2", "3", "4")}
    teams.update({number: add_team(number, category="sr") for number in ("5", "6")})
    judge_a, judge_b, judge_c = make_judge("judge-a"), make_judge("judge-b"), make_judge("judge-c")

    scoring.submit_score(teams["1"], judge_a, uniform(9))
    scoring.submit_score(teams["1"], judge_b, uniform(10))
    scoring.submit_score(teams["2"], judge_a, uniform(8))
    scoring.submit_score(teams["3"], judge_a, uniform(8))
    scoring.submit_score(teams["4"], judge_a, uniform(5))
    scoring.submit_score(teams["5"], judge_a, uniform(6))
    for judge, first in ((judge_a, 1), (judge_b, 1), (judge_c, 2)):
        scoring.submit_score(teams["6"], judge, Rubric(criteria1=first))
    return teams


def test_recalculate_team_scores(scoring, scored_competition):
    ok, message, count = scoring.recalculate_team_scores()

    assert ok
    assert count == 6
    assert message == "Recalculated scores for 6 teams"

    by_number = {score.team_number: score for score in scoring.get_team_scores()}
    assert by_number["1"].average_scores["criteria1"] == 9.5
    assert by_number["1"].total_score == 47.5
    assert by_number["1"].judge_count == 2
    assert by_number["6"].average_scores["criteria1"] == 1.33
    assert by_number["6"].total_score == 21.33
    assert by_number["6"].judge_count == 3
    assert by_number["6"].updated_at == NOW.isoformat()


def test_ranks_are_per_category_with_shared_ties(scoring, scored_competition):
    scoring.recalculate_team_scores()

    ranks = {score.team_number: (score.category, score.rank) for score in scoring.get_team_scores()}
    assert ranks == {
        "1": (Category.JUNIOR, 1),
        "2": (Category.JUNIOR, 2),
        "3": (Category.JUNIOR, 2),
        "4": (Category.JUNIOR, 4),
        "5": (Category.SENIOR, 1),
        "6": (Category.SENIOR, 2),
    }


def test_recalculate_replaces_previous_results(scoring, registry, scored_competition):
    scoring.recalculate_team_scores()
    registry.delete_team(scored_competition["4"].id)

    ok, _, count = scoring.recalculate_team_scores()

    assert ok
    assert count == 5
    assert "4" not in {score.team_number for score in scoring.get_team_scores()}


def test_recalculate_without_scores(scoring, add_team):
    add_team("1")

    assert scoring.recalculate_team_scores() == (True, "Recalculated scores for 0 teams", 0)
    assert scoring.get_team_scores() == []


def test_judge_summary(scoring, scored_competition):
    summary = scoring.get_judge_summary()

    assert summary["Judge-A"] == 6
    assert summary["Judge-C"] == 1
