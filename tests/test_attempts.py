import asyncio
import itertools
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from quizrank.core.exceptions import (
    CategoryMismatchException,
    NotFoundException,
    ValidationException,
)
from quizrank.models.quiz import AttemptAnswer, QuizAttempt
from quizrank.services.attempts import AttemptAccumulator
from tests.fakes import UnreachableLedger


def _attempt(session_factory, user_id, category_id):
    session = session_factory()
    try:
        return session.scalar(
            select(QuizAttempt).where(
                QuizAttempt.user_id == user_id, QuizAttempt.category_id == category_id
            )
        )
    finally:
        session.close()


async def test_correct_answer_scores_points(services, geography, ledger):
    category, (capital, _, _) = geography

    outcome = await services.accumulator.submit_answer("u1", category.id, capital.id, "Paris")

    assert outcome.replayed is False
    assert outcome.ledger_synced is True
    assert outcome.result.is_correct is True
    assert outcome.result.correct_option == "Paris"
    assert outcome.result.running_total == 7
    assert outcome.result.is_category_complete is False
    assert await ledger.score_of("u1") == 7


async def test_incorrect_answer_scores_nothing(services, geography, ledger):
    category, (capital, _, _) = geography

    outcome = await services.accumulator.submit_answer("u1", category.id, capital.id, "London")

    assert outcome.result.is_correct is False
    assert outcome.result.correct_option == "Paris"
    assert outcome.result.running_total == 0
    assert await ledger.score_of("u1") == 0


async def test_unknown_option_is_incorrect(services, geography):
    category, (capital, _, _) = geography

    outcome = await services.accumulator.submit_answer("u1", category.id, capital.id, "Lyon")

    assert outcome.result.is_correct is False


async def test_repeat_submission_replays_stored_result(services, geography, ledger, session_factory):
    category, (capital, _, _) = geography

    first = await services.accumulator.submit_answer("u1", category.id, capital.id, "Paris")
    again = await services.accumulator.submit_answer("u1", category.id, capital.id, "London")

    assert again.replayed is True
    assert again.result == first.result
    assert await ledger.score_of("u1") == 7

    attempt = _attempt(session_factory, "u1", category.id)
    assert attempt.answered_count == 1
    assert attempt.total_score == 7


async def test_completion_flag_on_last_answer(services, geography, session_factory):
    category, questions = geography
    answers = ["Paris", "Congo", "Everest"]

    outcomes = [
        await services.accumulator.submit_answer("u1", category.id, q.id, a)
        for q, a in zip(questions, answers)
    ]

    assert [o.result.is_category_complete for o in outcomes] == [False, False, True]
    assert outcomes[-1].result.running_total == 10

    attempt = _attempt(session_factory, "u1", category.id)
    assert attempt.correct_count == 2
    assert attempt.answered_count == 3
    assert attempt.total_questions == 3


async def test_final_totals_do_not_depend_on_answer_order(services, geography, session_factory):
    category, questions = geography
    choices = {questions[0].id: "Paris", questions[1].id: "Nile", questions[2].id: "K2"}

    for n, ordering in enumerate(itertools.permutations(questions)):
        user_id = f"perm{n}"
        for question in ordering:
            await services.accumulator.submit_answer(
                user_id, category.id, question.id, choices[question.id]
            )
        attempt = _attempt(session_factory, user_id, category.id)
        assert (attempt.total_score, attempt.correct_count, attempt.answered_count) == (12, 2, 3)


async def test_ledger_holds_cumulative_score_across_categories(services, geography, history, ledger):
    geo, (capital, _, _) = geography
    hist, (landing, _) = history

    await services.accumulator.submit_answer("u1", geo.id, capital.id, "Paris")
    outcome = await services.accumulator.submit_answer("u1", hist.id, landing.id, "1969")

    # Running total is per attempt, the ledger holds the sum over attempts
    assert outcome.result.running_total == 10
    assert await ledger.score_of("u1") == 17


async def test_unknown_question(services, geography):
    category, _ = geography
    with pytest.raises(NotFoundException):
        await services.accumulator.submit_answer("u1", category.id, 9999, "Paris")


async def test_inactive_question_is_not_found(services, geography):
    category, (capital, _, _) = geography
    services.question_store.update_question(capital.id, is_active=False)

    with pytest.raises(NotFoundException):
        await services.accumulator.submit_answer("u1", category.id, capital.id, "Paris")


async def test_question_from_another_category(services, geography, history):
    _, (capital, _, _) = geography
    hist, _ = history

    with pytest.raises(CategoryMismatchException) as exc_info:
        await services.accumulator.submit_answer("u1", hist.id, capital.id, "Paris")
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize(
    "user_id, option",
    [("", "Paris"), ("bad id with spaces", "Paris"), ("u1", ""), ("u1", "x" * 1001)],
)
async def test_rejects_malformed_input(services, geography, user_id, option):
    category, (capital, _, _) = geography
    with pytest.raises(ValidationException):
        await services.accumulator.submit_answer(user_id, category.id, capital.id, option)


async def test_ledger_failure_keeps_the_answer(session_factory, geography):
    category, (capital, _, _) = geography
    accumulator = AttemptAccumulator(session_factory, UnreachableLedger())

    outcome = await accumulator.submit_answer("u1", category.id, capital.id, "Paris")

    assert outcome.ledger_synced is False
    assert outcome.result.running_total == 7
    assert _attempt(session_factory, "u1", category.id).total_score == 7


def test_concurrent_submissions_are_applied_once(services, geography, session_factory):
    category, questions = geography
    jobs = [(q.id, opt) for q, opt in zip(questions, ["Paris", "Nile", "Everest"])] * 4

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(
            pool.map(
                lambda job: services.accumulator.apply_answer("u1", category.id, job[0], job[1]),
                jobs,
            )
        )

    fresh = [result for result, replayed, _ in results if not replayed]
    assert len(fresh) == 3

    attempt = _attempt(session_factory, "u1", category.id)
    assert (attempt.total_score, attempt.correct_count, attempt.answered_count) == (15, 3, 3)

    session = session_factory()
    try:
        rows = session.scalars(
            select(AttemptAnswer).where(AttemptAnswer.attempt_id == attempt.id)
        ).all()
    finally:
        session.close()
    assert sorted(row.running_total for row in rows)[-1] == 15
    assert sum(row.category_complete for row in rows) == 1


async def test_concurrent_async_submissions(services, geography, ledger):
    category, questions = geography

    outcomes = await asyncio.gather(
        *[
            services.accumulator.submit_answer("u1", category.id, q.id, opt)
            for q, opt in zip(questions, ["Paris", "Nile", "Everest"])
        ]
    )

    assert sorted(o.result.running_total for o in outcomes)[-1] == 15
    assert sum(o.result.is_category_complete for o in outcomes) == 1
    assert await ledger.score_of("u1") == 15


async def test_paris_seven_scenario(services):
    store = services.question_store
    category = store.create_category("Mixed")
    q1 = store.create_question(category.id, "Capital of France?", ["Paris", "London"], "Paris", points=10)
    q2 = store.create_question(category.id, "What is 3 + 4?", ["7", "8"], "7", points=5)

    first = await services.accumulator.submit_answer("u1", category.id, q1.id, "Paris")
    assert (first.result.is_correct, first.result.running_total) == (True, 10)
    assert first.result.is_category_complete is False

    second = await services.accumulator.submit_answer("u1", category.id, q2.id, "8")
    assert (second.result.is_correct, second.result.running_total) == (False, 10)
    assert second.result.correct_option == "7"
    assert second.result.is_category_complete is True

    again = await services.accumulator.submit_answer("u1", category.id, q1.id, "London")
    assert again.replayed is True
    assert again.result == first.result


async def test_score_read_failure_after_commit_keeps_the_answer(services, geography, monkeypatch):
    category, (capital, _, _) = geography

    def locked_database(user_id):
        raise OperationalError("SELECT sum(total_score)", {}, Exception("database is locked"))

    monkeypatch.setattr(services.accumulator, "_current_total", locked_database)
    outcome = await services.accumulator.submit_answer("u1", category.id, capital.id, "Paris")

    assert outcome.ledger_synced is False
    assert outcome.result.running_total == 7
