import pytest

from quizrank.core.exceptions import AuthorizationException, NotFoundException
from quizrank.services.stats import StatsAggregator, format_duration, motivation_message, percent
from tests.fakes import UnreachableLedger


async def _play(services, user_id, category, questions, options):
    outcome = None
    for question, option in zip(questions, options):
        outcome = await services.accumulator.submit_answer(user_id, category.id, question.id, option)
    return outcome


def test_percent_rounds_half_up():
    assert percent(1, 3) == 33
    assert percent(2, 3) == 67
    assert percent(1, 2) == 50
    assert percent(1, 8) == 13
    assert percent(5, 0) == 0


def test_format_duration():
    assert format_duration(0) == "0:00"
    assert format_duration(75) == "1:15"
    assert format_duration(None) is None


def test_motivation_message_tiers():
    assert motivation_message(None) == "Play quizzes to get ranked"
    assert "#1" in motivation_message(1)
    assert "top performers" in motivation_message(3)
    assert "top 10" in motivation_message(10)
    assert "climb" in motivation_message(11)


async def test_overview_for_new_user(services):
    overview = await services.stats.user_overview("nobody")

    assert overview.quizzes_played == 0
    assert overview.total_score == 0
    assert overview.last_played_at is None
    assert overview.leaderboard.rank is None


async def test_overview_and_breakdown(services, geography, history):
    geo, geo_questions = geography
    hist, hist_questions = history
    await _play(services, "u1", geo, geo_questions, ["Paris", "Congo", "Everest"])
    await _play(services, "u1", hist, hist_questions, ["1969", "476"])
    await services.accumulator.submit_answer("u2", geo.id, geo_questions[0].id, "Paris")

    overview = await services.stats.user_overview("u1")
    assert overview.quizzes_played == 2
    assert overview.total_score == 30
    assert overview.best_score == 20
    assert overview.average_score == 15.0
    assert overview.total_correct == 4
    assert overview.total_questions == 5
    assert overview.leaderboard.score == 30
    assert overview.leaderboard.rank == 0
    assert overview.leaderboard.position == 1

    breakdown = await services.stats.user_category_breakdown("u1")
    assert [row.category.name for row in breakdown] == ["History", "Geography"]
    assert breakdown[1].total_incorrect == 1
    assert breakdown[1].accuracy_percent == 67

    performance = await services.stats.performance("u1")
    assert (performance.quizzes_played, performance.total_score, performance.total_correct) == (2, 30, 4)


async def test_recent_attempts_newest_first(services, geography, history):
    geo, geo_questions = geography
    hist, hist_questions = history
    await services.accumulator.submit_answer("u1", geo.id, geo_questions[0].id, "Paris")
    await services.accumulator.submit_answer("u1", hist.id, hist_questions[0].id, "1969")

    recent = await services.stats.recent_attempts("u1", limit=500)
    assert [a.category.name for a in recent] == ["History", "Geography"]
    assert recent[0].is_complete is False

    assert len(await services.stats.recent_attempts("u1", limit=1)) == 1


async def test_attempt_detail_lists_answers(services, geography):
    category, questions = geography
    outcome = await _play(services, "u1", category, questions, ["Paris", "Congo", "Everest"])

    detail = await services.stats.attempt_detail("u1", outcome.result.attempt_id)

    assert detail.is_complete is True
    assert detail.total_score == 10
    assert detail.correct_answers == 2
    assert detail.incorrect_answers == 1
    assert [a.selected_option for a in detail.answers] == ["Paris", "Congo", "Everest"]
    assert detail.answers[1].correct_option == "Nile"


async def test_attempt_of_another_user_is_denied(services, geography):
    category, (capital, _, _) = geography
    outcome = await services.accumulator.submit_answer("u1", category.id, capital.id, "Paris")

    with pytest.raises(AuthorizationException):
        await services.stats.attempt_summary("u2", outcome.result.attempt_id)
    with pytest.raises(NotFoundException):
        await services.stats.attempt_detail("u1", 12345)


async def test_leaderboard_summary(services, geography, history):
    geo, geo_questions = geography
    await _play(services, "u1", geo, geo_questions, ["Paris", "Nile", "K2"])
    await services.accumulator.submit_answer("u2", geo.id, geo_questions[0].id, "Paris")

    summary = await services.stats.leaderboard_summary("u2")

    assert summary.points == 7
    assert summary.position == 2
    assert summary.quizzes_played == 1
    assert summary.accuracy_percent == 33
    assert summary.category_progress.total_categories_available == 2
    assert summary.category_progress.completed_categories == 1
    assert summary.category_progress.pending_categories == 1
    assert summary.category_progress.completed_percent == 50


async def test_leaderboard_summary_for_unranked_user(services, geography):
    summary = await services.stats.leaderboard_summary("newcomer", categories_available=4)

    assert summary.points == 0
    assert summary.position is None
    assert summary.message == "Play quizzes to get ranked"
    assert summary.category_progress.pending_categories == 4


async def test_stats_survive_unreachable_ledger(session_factory, geography):
    stats = StatsAggregator(session_factory, UnreachableLedger())

    overview = await stats.user_overview("u1")
    summary = await stats.leaderboard_summary("u1")

    assert overview.leaderboard.score is None
    assert summary.points is None
