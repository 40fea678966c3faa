import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.features.analysis.models.analysis import Analysis, AnalysisStatus
from app.features.analysis.models.analysis_factor import FactorResult
from app.features.analysis.models.analysis_progress import ProgressEvent
from app.features.analysis.services.scoring.instant_factors import InstantFactorService
from app.features.analysis.services.worker.analysis_store import AnalysisStore
from app.features.analysis.services.worker.analysis_worker import run_analysis
from app.features.billing.models.usage_analytics import UsageRecord
from app.features.users.models.user import User, UserTier
from app.platform.exceptions import (
    AnalysisError,
    AnalysisNotFoundError,
    AnalysisQuotaError,
    AnalysisStateError,
    BrowserLaunchError,
    InvalidRequestError,
    NavigationError,
    NavigationTimeoutError,
    StoreWriteError,
)
from app.platform.utils.clock import utctoday
from tests.fakes import FakeDriver, context_for

URL = "https://example.com/article"


def _load(session_factory, analysis_id):
    db = session_factory()
    try:
        analysis = db.get(Analysis, analysis_id)
        progress = db.execute(
            select(ProgressEvent)
            .where(ProgressEvent.analysis_id == analysis_id)
            .order_by(ProgressEvent.created_at, ProgressEvent.progress_percent)
        ).scalars().all()
        factors = db.execute(
            select(FactorResult).where(FactorResult.analysis_id == analysis_id)
        ).scalars().all()
        usage = db.execute(
            select(UsageRecord).where(UsageRecord.analysis_id == analysis_id)
        ).scalars().all()
        return analysis, progress, factors, usage
    finally:
        db.close()


def _user(session_factory, user_id="user-1"):
    db = session_factory()
    try:
        return db.get(User, user_id)
    finally:
        db.close()


@pytest.fixture
def pending(make_user, make_analysis):
    make_user()
    return make_analysis(url=URL)


class TestSuccessfulRun:

    def test_completes_with_single_final_checkpoint(self, session_factory, worker_context, fake_driver, pending):
        outcome = run_analysis(worker_context, URL, "user-1", pending.id)

        analysis, progress, factors, usage = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.completed
        assert analysis.completed_at is not None
        assert analysis.started_at is not None
        assert analysis.error_details is None
        assert analysis.overall_score == outcome.overall_score
        assert analysis.page_title == fake_driver.title
        assert analysis.page_description == fake_driver.description
        assert analysis.framework_version == "MASTERY-AI v2.1"
        assert analysis.analysis_duration is not None

        assert [p.stage for p in progress] == ["initialization", "data_extraction", "factor_analysis", "completion"]
        assert [p.progress_percent for p in progress] == [10, 30, 60, 100]
        assert sum(1 for p in progress if p.progress_percent == 100) == 1

        assert {f.factor_id for f in factors} == {"AI.1.1", "AI.1.2", "AI.1.3", "A.2.1"}
        assert len(usage) == 1 and usage[0].success is True

    def test_browser_is_closed_once(self, worker_context, fake_driver, pending):
        run_analysis(worker_context, URL, "user-1", pending.id)

        assert fake_driver.quit_count == 1
        assert fake_driver.visited == [URL]
        assert fake_driver.page_load_timeout == 30

    def test_response_summary(self, worker_context, pending):
        outcome = run_analysis(worker_context, URL, "user-1", pending.id)
        response = outcome.to_response()

        assert response["analysisId"] == pending.id
        assert response["factorsAnalyzed"] == 4
        assert 0 <= response["overall_score"] <= 100
        assert response["message"] == "Analysis completed successfully"

    def test_missing_description_uses_sentinel(self, session_factory, make_user, make_analysis):
        make_user()
        analysis = make_analysis(url=URL)
        context = context_for(session_factory, FakeDriver(title="A short title", description=None))

        outcome = run_analysis(context, URL, "user-1", analysis.id)

        stored, _, _, _ = _load(session_factory, analysis.id)
        assert stored.page_description == "No description found"
        assert outcome.page_description == "No description found"

    def test_free_tier_usage_is_counted(self, session_factory, worker_context, pending):
        run_analysis(worker_context, URL, "user-1", pending.id)

        user = _user(session_factory)
        assert user.monthly_analyses_used == 1
        assert user.monthly_reset_date is not None

    def test_paid_tier_usage_is_not_counted(self, session_factory, worker_context, make_user, make_analysis):
        make_user(user_id="paid", tier=UserTier.coffee)
        analysis = make_analysis(user_id="paid", url=URL)

        run_analysis(worker_context, URL, "paid", analysis.id)

        assert _user(session_factory, "paid").monthly_analyses_used == 0
        _, _, _, usage = _load(session_factory, analysis.id)
        assert usage[0].tier == "coffee"

    def test_publisher_receives_every_checkpoint(self, session_factory, fake_driver, pending):
        published = []
        context = context_for(
            session_factory, fake_driver, publisher=lambda analysis_id, data: published.append(data) or True
        )

        run_analysis(context, URL, "user-1", pending.id)

        assert [event["progress_percent"] for event in published] == [10, 30, 60, 100]

    def test_bare_host_matches_normalized_row(self, session_factory, worker_context, make_user, make_analysis):
        make_user()
        analysis = make_analysis(url="https://example.com")

        run_analysis(worker_context, "example.com", "user-1", analysis.id)

        stored, _, _, _ = _load(session_factory, analysis.id)
        assert stored.status == AnalysisStatus.completed


class TestFailedRun:

    def test_navigation_timeout_marks_error(self, session_factory, pending):
        driver = FakeDriver(get_error=TimeoutException("page load timeout"))
        context = context_for(session_factory, driver)

        with pytest.raises(NavigationTimeoutError) as exc_info:
            run_analysis(context, URL, "user-1", pending.id)

        assert exc_info.value.analysis_id == pending.id
        analysis, progress, factors, usage = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.error
        assert "Timed out" in analysis.error_details
        assert analysis.overall_score is None
        assert analysis.completed_at is None
        assert factors == []
        assert driver.quit_count == 1

        percents = [p.progress_percent for p in progress]
        assert percents == sorted(percents)
        assert 100 not in percents
        assert progress[-1].stage == "error"

        assert usage[0].success is False
        assert _user(session_factory).monthly_analyses_used == 0

    def test_navigation_error_marks_error(self, session_factory, pending):
        driver = FakeDriver(get_error=WebDriverException("net::ERR_NAME_NOT_RESOLVED"))
        context = context_for(session_factory, driver)

        with pytest.raises(NavigationError):
            run_analysis(context, URL, "user-1", pending.id)

        analysis, _, _, _ = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.error
        assert "ERR_NAME_NOT_RESOLVED" in analysis.error_details

    def test_browser_launch_failure_marks_error(self, session_factory, pending, browser_launch_error):
        context = context_for(session_factory, launch_error=browser_launch_error)

        with pytest.raises(BrowserLaunchError):
            run_analysis(context, URL, "user-1", pending.id)

        analysis, progress, _, _ = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.error
        assert [p.stage for p in progress] == ["initialization", "error"]
        assert [p.progress_percent for p in progress] == [10, 10]

    def test_store_failure_on_completion_marks_error(self, session_factory, worker_context, pending, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreWriteError("disk full")

        monkeypatch.setattr(AnalysisStore, "mark_completed", broken)

        with pytest.raises(StoreWriteError):
            run_analysis(worker_context, URL, "user-1", pending.id)

        analysis, progress, _, _ = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.error
        assert analysis.error_details == "disk full"
        assert progress[-1].progress_percent == 60

    def test_unexpected_error_is_wrapped(self, session_factory, worker_context, pending, monkeypatch):
        def broken(factors):
            raise RuntimeError("division trouble")

        monkeypatch.setattr(InstantFactorService, "calculate_overall_score", staticmethod(broken))

        with pytest.raises(AnalysisError) as exc_info:
            run_analysis(worker_context, URL, "user-1", pending.id)

        assert "division trouble" in exc_info.value.message
        analysis, _, _, _ = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.error


class TestGuards:

    def test_missing_analysis_writes_nothing(self, session_factory, worker_context, make_user):
        make_user()

        with pytest.raises(AnalysisNotFoundError):
            run_analysis(worker_context, URL, "user-1", "does-not-exist")

        _, progress, _, usage = _load(session_factory, "does-not-exist")
        assert progress == [] and usage == []

    def test_non_pending_analysis_is_rejected(self, session_factory, worker_context, make_user, make_analysis):
        make_user()
        analysis = make_analysis(url=URL, status=AnalysisStatus.completed)

        with pytest.raises(AnalysisStateError):
            run_analysis(worker_context, URL, "user-1", analysis.id)

        stored, progress, _, _ = _load(session_factory, analysis.id)
        assert stored.status == AnalysisStatus.completed
        assert progress == []

    def test_same_analysis_cannot_run_twice(self, session_factory, worker_context, pending):
        run_analysis(worker_context, URL, "user-1", pending.id)

        with pytest.raises(AnalysisStateError):
            run_analysis(worker_context, URL, "user-1", pending.id)

        _, progress, _, _ = _load(session_factory, pending.id)
        assert [p.progress_percent for p in progress] == [10, 30, 60, 100]

    def test_url_mismatch_is_rejected(self, session_factory, worker_context, pending):
        with pytest.raises(AnalysisStateError):
            run_analysis(worker_context, "https://other.example.org", "user-1", pending.id)

        stored, _, _, _ = _load(session_factory, pending.id)
        assert stored.status == AnalysisStatus.pending

    def test_other_users_analysis_is_rejected(self, session_factory, worker_context, pending, make_user):
        make_user(user_id="intruder")

        with pytest.raises(AnalysisStateError):
            run_analysis(worker_context, URL, "intruder", pending.id)

    @pytest.mark.parametrize("url, analysis_id", [("", "abc"), (URL, ""), (None, "abc")])
    def test_missing_fields(self, worker_context, url, analysis_id):
        with pytest.raises(InvalidRequestError):
            run_analysis(worker_context, url, "user-1", analysis_id)

    def test_store_failure_while_claiming_runs_nothing(self, session_factory, worker_context, fake_driver, pending, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreWriteError("connection lost", pending.id)

        monkeypatch.setattr(AnalysisStore, "mark_processing", broken)

        with pytest.raises(StoreWriteError):
            run_analysis(worker_context, URL, "user-1", pending.id)

        analysis, progress, factors, usage = _load(session_factory, pending.id)
        assert analysis.status == AnalysisStatus.error
        assert analysis.error_details == "connection lost"
        assert progress == [] and factors == [] and usage == []
        assert fake_driver.visited == []
        assert fake_driver.quit_count == 0


class TestQuotaAtClaim:

    def test_free_user_cannot_run_more_than_monthly_limit(self, session_factory, worker_context, fake_driver, make_user, make_analysis):
        make_user()
        analyses = [make_analysis(url=URL) for _ in range(5)]

        completed, denied = [], []
        for analysis in analyses:
            try:
                run_analysis(worker_context, URL, "user-1", analysis.id)
                completed.append(analysis.id)
            except AnalysisQuotaError as e:
                assert e.analysis_id == analysis.id
                denied.append(analysis.id)

        assert len(completed) == 3
        assert len(denied) == 2
        assert _user(session_factory).monthly_analyses_used == 3
        assert fake_driver.visited == [URL] * 3

        for analysis_id in denied:
            analysis, progress, factors, usage = _load(session_factory, analysis_id)
            assert analysis.status == AnalysisStatus.error
            assert "Monthly limit" in analysis.error_details
            assert analysis.started_at is None
            assert progress == [] and factors == [] and usage == []

    def test_running_analyses_count_against_remaining(self, session_factory, worker_context, fake_driver, make_user, make_analysis):
        make_user(monthly_analyses_used=2, monthly_reset_date=utctoday().replace(day=1))
        make_analysis(url=URL, status=AnalysisStatus.processing)
        waiting = make_analysis(url=URL)

        with pytest.raises(AnalysisQuotaError):
            run_analysis(worker_context, URL, "user-1", waiting.id)

        analysis, progress, _, _ = _load(session_factory, waiting.id)
        assert analysis.status == AnalysisStatus.error
        assert progress == []
        assert fake_driver.visited == []

    def test_paid_tier_has_no_claim_limit(self, session_factory, worker_context, make_user, make_analysis):
        make_user(tier=UserTier.coffee, monthly_analyses_used=10, monthly_reset_date=utctoday().replace(day=1))
        analysis = make_analysis(url=URL)

        run_analysis(worker_context, URL, "user-1", analysis.id)

        stored, _, _, _ = _load(session_factory, analysis.id)
        assert stored.status == AnalysisStatus.completed


class TestAnalysisStore:

    def test_mark_error_leaves_completed_rows_alone(self, session_factory, make_user, make_analysis):
        make_user()
        analysis = make_analysis(status=AnalysisStatus.completed)

        assert AnalysisStore(session_factory).mark_error(analysis.id, "late failure") is False

        stored, _, _, _ = _load(session_factory, analysis.id)
        assert stored.status == AnalysisStatus.completed
        assert stored.error_details is None

    def test_mark_processing_store_failure(self):
        class BrokenSession:
            def get(self, *args):
                raise SQLAlchemyError("connection refused")

            def rollback(self):
                pass

            def close(self):
                pass

        with pytest.raises(StoreWriteError):
            AnalysisStore(BrokenSession).mark_processing("abc", URL)
