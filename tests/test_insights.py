import threading
import time
import uuid
from datetime import date, timedelta
from unittest.mock import DEFAULT

import pytest

import momentum_journal.analysis.db as analysis_db
import momentum_journal.analysis.service as service
import momentum_journal.core.dependency as dependency
from main import app
from momentum_journal.analysis.models import AIAnalysis, WeeklyInsight
from momentum_journal.analysis.service import (
    average_mood_label,
    build_progress_summary,
    get_or_generate_insights,
    get_period_start,
)
from momentum_journal.core.dependency import get_ai_service_factory
from momentum_journal.core.errors import AIServiceError, RateLimitedError
from momentum_journal.goals.models import Goal


class TestPeriodStart:
    def test_week_starts_on_sunday(self):
        assert get_period_start("week", date(2024, 5, 15)) == date(2024, 5, 12)
        assert get_period_start("week", date(2024, 5, 12)) == date(2024, 5, 12)
        assert get_period_start("week", date(2024, 5, 18)) == date(2024, 5, 12)

    def test_month_starts_on_first(self):
        assert get_period_start("month", date(2024, 5, 31)) == date(2024, 5, 1)

    def test_unknown_timeline(self):
        with pytest.raises(ValueError):
            get_period_start("decade", date(2024, 5, 1))


def test_average_mood_label():
    assert average_mood_label([]) is None
    assert average_mood_label([None, None]) is None
    assert average_mood_label(["great", "good", "neutral"]) == "good"
    assert average_mood_label(["great", "great", "great", "good"]) == "great"
    assert average_mood_label(["bad", "terrible"]) == "bad"
    assert average_mood_label(["terrible"]) == "terrible"


def test_build_progress_summary():
    goals = [
        Goal(title="Ahead", status="active", progress_percentage=80),
        Goal(title="Behind", status="active", progress_percentage=10),
        Goal(title="Done", status="completed", progress_percentage=100),
    ]
    summary = build_progress_summary(goals, current_streak=3, journal_count=4)
    assert summary == {
        "overall_progress": 63,
        "goals_on_track": ["Ahead"],
        "goals_behind": ["Behind"],
        "momentum_score": 50,
    }
    assert build_progress_summary([], 20, 0)["momentum_score"] == 100


class TestGetOrGenerate:
    TODAY = date(2024, 5, 15)

    def test_generates_once_then_serves_cache(self, db, user_id, mock_ai):
        first = get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        assert first["cached"] is False
        assert first["period_start"] == date(2024, 5, 12)
        assert first["stats"]["journalCount"] == 0

        second = get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        assert second["cached"] is True
        assert second["analysis"].id == first["analysis"].id
        assert mock_ai.generate_period_insights.call_count == 1

    def test_refresh_overwrites_single_row(self, db, user_id, mock_ai):
        first = get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        again = get_or_generate_insights(db, user_id, lambda: mock_ai, "week", force_refresh=True, today=self.TODAY)
        assert again["cached"] is False
        assert again["analysis"].id == first["analysis"].id
        assert mock_ai.generate_period_insights.call_count == 2
        assert db.query(AIAnalysis).filter(AIAnalysis.user_id == user_id).count() == 1

    def test_week_and_month_are_cached_separately(self, db, user_id, mock_ai):
        get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        monthly = get_or_generate_insights(db, user_id, lambda: mock_ai, "month", today=self.TODAY)
        assert monthly["cached"] is False
        assert monthly["analysis"].analysis_type == "monthly"
        assert monthly["analysis"].period_start == date(2024, 5, 1)
        assert mock_ai.generate_period_insights.call_count == 2

    def test_weekly_insight_row_is_written(self, db, user_id, mock_ai):
        result = get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        insight = db.query(WeeklyInsight).filter(WeeklyInsight.user_id == user_id).one()
        assert insight.week_start_date == date(2024, 5, 12)
        assert insight.week_end_date == date(2024, 5, 18)
        assert insight.summary == "A steady week with consistent journaling."
        assert insight.ai_analysis_id == result["analysis"].id

    def test_failure_writes_nothing(self, db, user_id, mock_ai):
        mock_ai.generate_period_insights.side_effect = AIServiceError()
        with pytest.raises(AIServiceError):
            get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        assert db.query(AIAnalysis).count() == 0
        assert db.query(WeeklyInsight).count() == 0
        assert len(service._generation_locks) == 0

    def test_users_do_not_share_cache(self, db, mock_ai):
        get_or_generate_insights(db, uuid.uuid4(), lambda: mock_ai, "week", today=self.TODAY)
        other = get_or_generate_insights(db, uuid.uuid4(), lambda: mock_ai, "week", today=self.TODAY)
        assert other["cached"] is False

    def test_concurrent_requests_generate_once(self, session_factory, user_id, mock_ai):
        response = mock_ai.generate_period_insights.return_value

        def slow_generate(*args):
            time.sleep(0.1)
            return response

        mock_ai.generate_period_insights.side_effect = slow_generate
        sessions = [session_factory(), session_factory()]
        barrier = threading.Barrier(len(sessions))
        results, errors = [], []

        def request(session):
            barrier.wait()
            try:
                results.append(get_or_generate_insights(session, user_id, lambda: mock_ai, "week", today=self.TODAY))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=request, args=(s,)) for s in sessions]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        try:
            assert errors == []
            assert sorted(r["cached"] for r in results) == [False, True]
            assert mock_ai.generate_period_insights.call_count == 1
            assert sessions[0].query(AIAnalysis).filter(AIAnalysis.user_id == user_id).count() == 1
            assert len(service._generation_locks) == 0
        finally:
            for s in sessions:
                s.close()

    def test_row_inserted_by_another_writer_is_overwritten(self, db, user_id, mock_ai, monkeypatch):
        real_lookup = analysis_db.get_period_analysis
        competitor_id = uuid.uuid4()
        lookups = []

        def lookup_then_lose_race(session, uid, analysis_type, period_start):
            lookups.append(analysis_type)
            if len(lookups) == 1:
                session.add(AIAnalysis(
                    id=competitor_id,
                    user_id=uid,
                    analysis_type=analysis_type,
                    period_start=period_start,
                    insights={"summary": "written elsewhere"},
                ))
                session.commit()
                return None
            return real_lookup(session, uid, analysis_type, period_start)

        monkeypatch.setattr(analysis_db, "get_period_analysis", lookup_then_lose_race)
        result = get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)

        assert len(lookups) == 2
        assert result["analysis"].id == competitor_id
        assert result["analysis"].insights["summary"] == "A steady week with consistent journaling."
        assert db.query(AIAnalysis).filter(AIAnalysis.user_id == user_id).count() == 1
        assert db.query(WeeklyInsight).one().ai_analysis_id == competitor_id

    def test_weekly_insight_failure_rolls_back_analysis(self, db, user_id, mock_ai, monkeypatch):
        def broken_upsert(*args):
            raise RuntimeError("weekly insight write failed")

        monkeypatch.setattr(service, "upsert_weekly_insight", broken_upsert)
        with pytest.raises(RuntimeError):
            get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)
        assert db.query(AIAnalysis).count() == 0

    def test_lock_registry_only_holds_keys_in_flight(self, db, user_id, mock_ai):
        in_flight = []

        def record(*args):
            in_flight.append(len(service._generation_locks))
            return DEFAULT

        mock_ai.generate_period_insights.side_effect = record
        for week in range(5):
            get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY + timedelta(weeks=week))

        assert in_flight == [1, 1, 1, 1, 1]
        assert len(service._generation_locks) == 0

    def test_provider_is_not_resolved_on_cache_hit(self, db, user_id, mock_ai):
        get_or_generate_insights(db, user_id, lambda: mock_ai, "week", today=self.TODAY)

        def unconfigured():
            raise AIServiceError("AI service is not configured")

        cached = get_or_generate_insights(db, user_id, unconfigured, "week", today=self.TODAY)
        assert cached["cached"] is True
        with pytest.raises(AIServiceError):
            get_or_generate_insights(db, user_id, unconfigured, "week", force_refresh=True, today=self.TODAY)


class TestInsightsApi:
    def test_get_then_cached(self, client, auth_headers, mock_ai, make_goal, make_journal):
        make_goal("Exercise", progressPercentage=30)
        make_journal("Went to the gym", mood="good")

        resp = client.get("/ai/insights", headers=auth_headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["cached"] is False
        assert data["timeline"] == "week"
        assert data["summary"] == "A steady week with consistent journaling."
        assert data["stats"] == {
            "activeGoals": 1,
            "completedGoals": 0,
            "journalCount": 1,
            "currentStreak": 1,
            "avgMood": "good",
        }
        assert data["analysis"]["analysisType"] == "weekly"
        assert data["analysis"]["insights"]["sentiment"] == "positive"
        assert data["analysis"]["tokensUsed"] == 321

        resp = client.get("/ai/insights", headers=auth_headers)
        assert resp.json()["data"]["cached"] is True
        assert resp.json()["data"]["summary"] is None
        assert mock_ai.generate_period_insights.call_count == 1

    def test_refresh(self, client, auth_headers, mock_ai, db):
        client.get("/ai/insights", headers=auth_headers)
        resp = client.get("/ai/insights?refresh=true", headers=auth_headers)
        assert resp.json()["data"]["cached"] is False
        assert mock_ai.generate_period_insights.call_count == 2
        assert db.query(AIAnalysis).count() == 1

    def test_post_monthly(self, client, auth_headers, mock_ai):
        resp = client.post("/ai/insights", json={"analysisType": "monthly"}, headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["timeline"] == "month"
        assert data["periodStart"] == date.today().replace(day=1).isoformat()
        assert mock_ai.generate_period_insights.call_args.args[3] == "monthly"

    def test_post_without_body_defaults_to_week(self, client, auth_headers):
        resp = client.post("/ai/insights", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["timeline"] == "week"

    def test_rate_limited(self, client, auth_headers, mock_ai, db):
        mock_ai.generate_period_insights.side_effect = RateLimitedError()
        resp = client.get("/ai/insights", headers=auth_headers)
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "RATE_LIMITED"
        assert db.query(AIAnalysis).count() == 0

    def test_unexpected_failure_is_generic(self, client, auth_headers, mock_ai, db):
        mock_ai.generate_period_insights.side_effect = RuntimeError("connection reset by peer")
        resp = client.get("/ai/insights", headers=auth_headers)
        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["code"] == "AI_ERROR"
        assert "connection reset" not in error["message"]
        assert db.query(AIAnalysis).count() == 0

    def test_invalid_timeline(self, client, auth_headers):
        resp = client.get("/ai/insights?timeline=year", headers=auth_headers)
        assert resp.status_code == 400

    def test_cached_insight_served_without_configured_provider(self, client, auth_headers, mock_ai, monkeypatch):
        assert client.get("/ai/insights", headers=auth_headers).status_code == 200

        def missing_key():
            raise RuntimeError("Missing ANTHROPIC_API_KEY in environment")

        monkeypatch.setattr(dependency, "AI_PROVIDER", "claude")
        monkeypatch.setattr(dependency, "_claude", missing_key)
        app.dependency_overrides.pop(get_ai_service_factory)

        resp = client.get("/ai/insights", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["cached"] is True

        resp = client.get("/ai/insights?refresh=true", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "AI_ERROR"
        assert mock_ai.generate_period_insights.call_count == 1


class TestOnDemandApi:
    def test_analyze_goal(self, client, auth_headers, mock_ai, make_goal, make_journal):
        goal = make_goal("Learn guitar", progressPercentage=20)
        make_journal("Practiced chords", goalIds=[goal["id"]])
        make_journal("Unrelated day")

        resp = client.post("/ai/analyze-goal", json={"goalId": goal["id"]}, headers=auth_headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["goal"]["id"] == goal["id"]
        assert data["relatedJournalsCount"] == 1
        assert data["analysis"]["analysisType"] == "on-demand"
        assert data["analysis"]["periodStart"] is None
        assert data["analysis"]["goalsAnalyzed"] == [goal["id"]]
        assert data["analysis"]["progressSummary"]["momentum_score"] == 55

        called_goal, journals = mock_ai.analyze_goal_progress.call_args.args
        assert str(called_goal.id) == goal["id"]
        assert [j.content for j in journals] == ["Practiced chords"]

    def test_analyze_goal_not_found(self, client, auth_headers, other_headers, make_goal, mock_ai):
        goal = make_goal(headers=other_headers)
        resp = client.post("/ai/analyze-goal", json={"goalId": goal["id"]}, headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "GOAL_NOT_FOUND"
        mock_ai.analyze_goal_progress.assert_not_called()

    def test_on_demand_is_never_cached(self, client, auth_headers, mock_ai, make_goal):
        goal = make_goal()
        client.post("/ai/analyze-goal", json={"goalId": goal["id"]}, headers=auth_headers)
        client.post("/ai/analyze-goal", json={"goalId": goal["id"]}, headers=auth_headers)
        assert mock_ai.analyze_goal_progress.call_count == 2

        resp = client.get("/ai/analyses?type=on-demand", headers=auth_headers)
        assert resp.json()["pagination"]["totalCount"] == 2

    def test_analyze_journal(self, client, auth_headers, mock_ai, make_journal):
        entry = make_journal("Ran 8k by the river", mood="great")
        resp = client.post("/ai/analyze-journal", json={"journalId": entry["id"]}, headers=auth_headers)
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["journal"]["id"] == entry["id"]
        assert data["analysis"]["journalEntriesAnalyzed"] == [entry["id"]]
        content, goals, mood = mock_ai.analyze_journal_entry.call_args.args
        assert content == "Ran 8k by the river"
        assert mood == "great"

    def test_analyze_journal_not_found(self, client, auth_headers):
        resp = client.post("/ai/analyze-journal", json={"journalId": str(uuid.uuid4())}, headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "JOURNAL_NOT_FOUND"

    def test_list_analyses(self, client, auth_headers, make_goal):
        goal = make_goal()
        client.get("/ai/insights", headers=auth_headers)
        client.post("/ai/analyze-goal", json={"goalId": goal["id"]}, headers=auth_headers)

        resp = client.get("/ai/analyses", headers=auth_headers)
        body = resp.json()
        assert body["pagination"]["totalCount"] == 2
        assert {a["analysisType"] for a in body["data"]} == {"weekly", "on-demand"}

        resp = client.get("/ai/analyses?type=weekly", headers=auth_headers)
        assert [a["analysisType"] for a in resp.json()["data"]] == ["weekly"]
