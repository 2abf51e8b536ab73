from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FakeGateway
from forgecraft.core.config import settings
from forgecraft.models import (
    DocUsage,
    GenerationJob,
    GenerationJobStatus,
    Platform,
    ProjectFile,
    TokenTransaction,
    User,
)
from forgecraft.services.generation import (
    ForbiddenError,
    GenerationOrchestrator,
    ProjectNotFoundError,
    QueueUnavailableError,
    STALLED_JOB_MESSAGE,
)
from forgecraft.services.model_gateway import GeneratedOutput, RateLimitedError
from forgecraft.services.project_files import ProjectFileStore
from forgecraft.services.token_ledger import TokenLedgerService


def _orchestrator(db, **overrides):
    queued = []
    overrides.setdefault("gateway", FakeGateway())
    overrides.setdefault("enqueue", queued.append)
    orchestrator = GenerationOrchestrator(db, **overrides)
    orchestrator.queued = queued
    return orchestrator


def _job(db, job_id):
    db.expire_all()
    return db.query(GenerationJob).filter(GenerationJob.id == job_id).one()


def _balance(db, user_id="user_1"):
    db.expire_all()
    return db.query(User).filter(User.id == user_id).one().token_balance


def _job_transactions(db, job_id):
    return db.query(TokenTransaction).filter(TokenTransaction.reference == job_id).all()


def _files(db, project_id):
    rows = db.query(ProjectFile).filter(ProjectFile.project_id == project_id).all()
    return {row.path: row.content for row in rows}


class RaisingDocs:
    def search_for_generation(self, prompt, platform):
        raise ConnectionError("docs index unreachable")

    def record_usage(self, job_id, results, commit=True):
        raise AssertionError("should not be reached")


class TestSubmit:
    """Job creation and queue hand-off."""

    def test_creates_pending_job_and_enqueues(self, db, make_user, make_project):
        make_user()
        project = make_project()
        orchestrator = _orchestrator(db)

        job = orchestrator.submit("user_1", project.id, "a /home command", "GPT_5", {"settings": {"theme": "dark"}})

        assert job.id.startswith("gen_")
        assert job.status == GenerationJobStatus.PENDING
        assert job.provider == "OPENAI"
        assert job.context == {"settings": {"theme": "dark"}}
        assert orchestrator.queued == [job.id]

    def test_each_submission_gets_a_new_job(self, db, make_user, make_project):
        make_user()
        project = make_project()
        orchestrator = _orchestrator(db)

        first = orchestrator.submit("user_1", project.id, "same prompt", "GPT_5")
        second = orchestrator.submit("user_1", project.id, "same prompt", "GPT_5")

        assert first.id != second.id
        assert db.query(GenerationJob).count() == 2

    def test_foreign_project_is_forbidden_and_creates_nothing(self, db, make_user, make_project):
        make_user("owner")
        make_user("intruder")
        project = make_project(user_id="owner")
        orchestrator = _orchestrator(db)

        with pytest.raises(ForbiddenError):
            orchestrator.submit("intruder", project.id, "steal it", "GPT_5")

        assert db.query(GenerationJob).count() == 0
        assert orchestrator.queued == []

    def test_missing_project(self, db, make_user):
        make_user()

        with pytest.raises(ProjectNotFoundError):
            _orchestrator(db).submit("user_1", "proj_missing", "anything", "GPT_5")

    def test_queue_failure_marks_job_failed(self, db, make_user, make_project):
        make_user()
        project = make_project()

        def broken_enqueue(job_id):
            raise ConnectionError("redis down")

        orchestrator = _orchestrator(db, enqueue=broken_enqueue)

        with pytest.raises(QueueUnavailableError) as exc_info:
            orchestrator.submit("user_1", project.id, "a command", "GPT_5")

        job = _job(db, exc_info.value.job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert job.error == "Generation queue unavailable"
        assert job.completed_at is not None


class TestProcess:
    """Worker-side processing of a claimed job."""

    def _submit(self, db, orchestrator, project, prompt="add a teleport command", model="GPT_5", context=None):
        return orchestrator.submit("user_1", project.id, prompt, model, context).id

    def test_completed_job_charges_and_writes_files(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        orchestrator = _orchestrator(db)
        job_id = self._submit(db, orchestrator, project)

        result = orchestrator.process(job_id)

        # GPT_5: 15 + ceil(1000 / 1000) * 8
        assert result["status"] == GenerationJobStatus.COMPLETED
        assert result["cost"] == 23
        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.COMPLETED
        assert job.output == {"files": ["src/Main.java", "README.md"], "summary": "Generated demo plugin"}
        assert job.tokens_used == 1000
        assert job.error is None
        assert job.started_at is not None and job.completed_at is not None
        assert _balance(db) == 77
        transactions = _job_transactions(db, job_id)
        assert [t.amount for t in transactions] == [-23]
        assert transactions[0].type == "GENERATION_COST"
        assert transactions[0].description == "AI generation (GPT_5)"
        assert _files(db, project.id) == {"src/Main.java": "class Main {}", "README.md": "# Demo"}

    def test_balance_short_of_cost_fails_without_charge(self, db, make_user, make_project):
        make_user(balance=12)
        project = make_project()
        # CLAUDE_SONNET_4_5 with 1000 tokens costs 15
        orchestrator = _orchestrator(db)
        job_id = self._submit(db, orchestrator, project, model="CLAUDE_SONNET_4_5")

        result = orchestrator.process(job_id)

        assert result["status"] == GenerationJobStatus.FAILED
        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert "Insufficient token balance" in job.error
        assert job.output is None
        assert job.tokens_used is None
        assert job.completed_at is not None
        assert _balance(db) == 12
        assert _job_transactions(db, job_id) == []
        assert _files(db, project.id) == {}

    def test_cheap_model_cost_and_two_files(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        gateway = FakeGateway(GeneratedOutput(
            files={"index.ts": "console.log(1)", "package.json": "{}"},
            summary="bot",
            tokens_used=500,
        ))
        orchestrator = _orchestrator(db, gateway=gateway)
        job_id = self._submit(db, orchestrator, project, model="GROK_4_1_FAST")

        orchestrator.process(job_id)

        assert _job(db, job_id).status == GenerationJobStatus.COMPLETED
        assert _balance(db) == 93
        assert len(_files(db, project.id)) == 2

    def test_docs_failure_is_not_fatal(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        orchestrator = _orchestrator(db, docs=RaisingDocs())
        job_id = self._submit(db, orchestrator, project)

        orchestrator.process(job_id)

        assert _job(db, job_id).status == GenerationJobStatus.COMPLETED
        assert db.query(DocUsage).count() == 0
        assert "Relevant documentation" not in orchestrator.gateway.calls[0]["user_prompt"]

    def test_gateway_error_fails_job_without_side_effects(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        gateway = FakeGateway(error=RateLimitedError("Model API rate limit exceeded: Too Many Requests", 429))
        orchestrator = _orchestrator(db, gateway=gateway)
        job_id = self._submit(db, orchestrator, project)

        orchestrator.process(job_id)

        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert job.error == "Model API rate limit exceeded: Too Many Requests"
        assert _balance(db) == 100
        assert _job_transactions(db, job_id) == []
        assert _files(db, project.id) == {}

    def test_unknown_model_fails_job(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        orchestrator = _orchestrator(db, gateway=FakeGateway())
        job_id = self._submit(db, orchestrator, project, model="GPT_2")

        orchestrator.process(job_id)

        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert job.error == "Unknown model: GPT_2"
        assert _balance(db) == 100

    def test_failure_after_debit_rolls_back_everything(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()

        class FailingFiles(ProjectFileStore):
            def upsert(self, project_id, path, content, commit=True):
                super().upsert(project_id, path, content, commit=commit)
                raise OSError("disk full")

        orchestrator = _orchestrator(db, files=FailingFiles(db))
        job_id = self._submit(db, orchestrator, project)

        orchestrator.process(job_id)

        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert job.error == "disk full"
        assert job.output is None
        assert _balance(db) == 100
        assert _job_transactions(db, job_id) == []
        assert _files(db, project.id) == {}

    def test_concurrent_spend_between_check_and_debit(self, db, make_user, make_project):
        make_user(balance=30)
        project = make_project()

        class StaleBalanceLedger(TokenLedgerService):
            def get_balance(self, user_id):
                # Balance read before another job spent the tokens
                return 1000

        orchestrator = _orchestrator(db, ledger=StaleBalanceLedger(db))
        job_id = self._submit(db, orchestrator, project)
        db.query(User).filter(User.id == "user_1").update({User.token_balance: 5})
        db.commit()

        orchestrator.process(job_id)

        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert "Insufficient token balance" in job.error
        assert _balance(db) == 5
        assert _job_transactions(db, job_id) == []

    def test_redelivered_job_is_processed_once(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        orchestrator = _orchestrator(db)
        job_id = self._submit(db, orchestrator, project)

        orchestrator.process(job_id)
        second = orchestrator.process(job_id)

        assert second["status"] == "skipped"
        assert len(orchestrator.gateway.calls) == 1
        assert len(_job_transactions(db, job_id)) == 1
        assert _job(db, job_id).status == GenerationJobStatus.COMPLETED

    def test_database_error_during_claim_leaves_job_pending(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        orchestrator = _orchestrator(db)
        job_id = self._submit(db, orchestrator, project)
        locked = OperationalError("UPDATE generation_jobs", {}, Exception("database is locked"))

        with patch.object(orchestrator, "_claim", side_effect=locked):
            result = orchestrator.process(job_id)

        assert result["status"] == "skipped"
        assert "database is locked" in result["error"]
        assert orchestrator.gateway.calls == []
        assert _job(db, job_id).status == GenerationJobStatus.PENDING

    def test_failed_job_stays_failed(self, db, make_user, make_project):
        make_user(balance=0)
        project = make_project()
        orchestrator = _orchestrator(db)
        job_id = self._submit(db, orchestrator, project)

        orchestrator.process(job_id)
        db.query(User).filter(User.id == "user_1").update({User.token_balance: 1000})
        db.commit()
        orchestrator.process(job_id)

        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert job.output is None

    def test_prompt_uses_project_settings_files_and_docs(self, db, make_user, make_project, make_doc):
        make_user(balance=100)
        project = make_project(
            platform=Platform.DISCORD_NODE,
            language="TYPESCRIPT",
            command_prefix="?",
        )
        store = ProjectFileStore(db)
        store.upsert(project.id, "src/index.ts", "client.login()")
        store.upsert(project.id, "notes.txt", "private notes")
        doc = make_doc("Slash command registration", "Use REST to register slash commands.", platform=Platform.DISCORD_NODE)
        orchestrator = _orchestrator(db)
        job_id = self._submit(
            db, orchestrator, project,
            prompt="register a slash command",
            context={"files": ["src/index.ts"], "docs": ["Custom snippet from the IDE"]},
        )

        orchestrator.process(job_id)

        call = orchestrator.gateway.calls[0]
        assert "Command prefix: ?" in call["system_prompt"]
        assert "- Project language: TYPESCRIPT" in call["system_prompt"]
        assert "--- src/index.ts ---\nclient.login()" in call["user_prompt"]
        assert "notes.txt" not in call["user_prompt"]
        retrieved_at = call["user_prompt"].index("Use REST to register slash commands.")
        custom_at = call["user_prompt"].index("Custom snippet from the IDE")
        assert retrieved_at < custom_at
        usage = db.query(DocUsage).filter(DocUsage.job_id == job_id).one()
        assert usage.doc_id == doc.id

    def test_existing_file_is_overwritten(self, db, make_user, make_project):
        make_user(balance=100)
        project = make_project()
        ProjectFileStore(db).upsert(project.id, "README.md", "old readme")
        orchestrator = _orchestrator(db)

        orchestrator.process(self._submit(db, orchestrator, project))

        files = db.query(ProjectFile).filter(ProjectFile.project_id == project.id, ProjectFile.path == "README.md").all()
        assert len(files) == 1
        assert files[0].content == "# Demo"


class TestRecoverStalledJobs:
    """Jobs no worker will finish are failed; live ones are left alone."""

    def _add_job(self, db, project, job_id, status, created_at=None, started_at=None):
        db.add(GenerationJob(
            id=job_id, user_id="user_1", project_id=project.id, prompt="p",
            model="GPT_5", provider="OPENAI", status=status,
            created_at=created_at or datetime.utcnow(), started_at=started_at,
        ))
        db.commit()

    def test_old_open_jobs_are_failed(self, db, make_user, make_project):
        make_user()
        project = make_project()
        old = datetime.utcnow() - timedelta(hours=2)
        self._add_job(db, project, "gen_stuck_pending", GenerationJobStatus.PENDING, created_at=old)
        self._add_job(db, project, "gen_stuck_running", GenerationJobStatus.PROCESSING, created_at=old, started_at=old)
        self._add_job(db, project, "gen_done", GenerationJobStatus.COMPLETED, created_at=old, started_at=old)
        self._add_job(db, project, "gen_fresh", GenerationJobStatus.PROCESSING, started_at=datetime.utcnow())

        recovered = _orchestrator(db, is_queued=lambda _: False).recover_stalled_jobs(max_age_minutes=30)

        assert recovered == 2
        assert _job(db, "gen_stuck_pending").status == GenerationJobStatus.FAILED
        assert _job(db, "gen_stuck_pending").error == STALLED_JOB_MESSAGE
        assert _job(db, "gen_stuck_running").status == GenerationJobStatus.FAILED
        assert _job(db, "gen_done").status == GenerationJobStatus.COMPLETED
        assert _job(db, "gen_fresh").status == GenerationJobStatus.PROCESSING

    def test_backlogged_pending_job_is_kept(self, db, make_user, make_project):
        make_user()
        project = make_project()
        old = datetime.utcnow() - timedelta(hours=2)
        self._add_job(db, project, "gen_waiting", GenerationJobStatus.PENDING, created_at=old)
        self._add_job(db, project, "gen_lost", GenerationJobStatus.PENDING, created_at=old)
        looked_up = []

        def is_queued(job_id):
            looked_up.append(job_id)
            return job_id == "gen_waiting"

        recovered = _orchestrator(db, is_queued=is_queued).recover_stalled_jobs(max_age_minutes=30)

        assert recovered == 1
        assert sorted(looked_up) == ["gen_lost", "gen_waiting"]
        assert _job(db, "gen_waiting").status == GenerationJobStatus.PENDING
        assert _job(db, "gen_lost").status == GenerationJobStatus.FAILED

    def test_old_job_that_started_recently_is_kept(self, db, make_user, make_project):
        make_user()
        project = make_project()
        self._add_job(
            db, project, "gen_late_start", GenerationJobStatus.PROCESSING,
            created_at=datetime.utcnow() - timedelta(hours=2),
            started_at=datetime.utcnow() - timedelta(minutes=1),
        )

        recovered = _orchestrator(db, is_queued=lambda _: False).recover_stalled_jobs(max_age_minutes=30)

        assert recovered == 0
        assert _job(db, "gen_late_start").status == GenerationJobStatus.PROCESSING

    def test_running_job_gets_at_least_the_rq_timeout(self, db, make_user, make_project):
        make_user()
        project = make_project()
        started = datetime.utcnow() - timedelta(minutes=3)
        self._add_job(db, project, "gen_running", GenerationJobStatus.PROCESSING, created_at=started, started_at=started)

        with patch.object(settings, "JOB_TIMEOUT_GENERATION", 300):
            recovered = _orchestrator(db).recover_stalled_jobs(max_age_minutes=1)

        assert recovered == 0
        assert _job(db, "gen_running").status == GenerationJobStatus.PROCESSING

    def test_unreachable_queue_leaves_pending_jobs_alone(self, db, make_user, make_project):
        make_user()
        project = make_project()
        old = datetime.utcnow() - timedelta(hours=2)
        self._add_job(db, project, "gen_pending", GenerationJobStatus.PENDING, created_at=old)
        self._add_job(db, project, "gen_running", GenerationJobStatus.PROCESSING, created_at=old, started_at=old)

        def is_queued(job_id):
            raise ConnectionError("redis down")

        recovered = _orchestrator(db, is_queued=is_queued).recover_stalled_jobs(max_age_minutes=30)

        assert recovered == 1
        assert _job(db, "gen_pending").status == GenerationJobStatus.PENDING
        assert _job(db, "gen_running").status == GenerationJobStatus.FAILED

    def test_job_failed_during_generation_is_never_completed(self, db, session_factory, make_user, make_project):
        make_user(balance=100)
        project = make_project()

        class RecoveryRunsMidGeneration(FakeGateway):
            def generate(self, model, system_prompt, user_prompt, max_output_tokens=None):
                other = session_factory()
                try:
                    # Make the running job look abandoned, then let another process recover it
                    other.query(GenerationJob).filter(GenerationJob.id == job_id).update(
                        {GenerationJob.started_at: datetime.utcnow() - timedelta(hours=2)},
                        synchronize_session=False,
                    )
                    other.commit()
                    GenerationOrchestrator(other, is_queued=lambda _: False).recover_stalled_jobs(max_age_minutes=30)
                finally:
                    other.close()
                return super().generate(model, system_prompt, user_prompt, max_output_tokens)

        orchestrator = _orchestrator(db, gateway=RecoveryRunsMidGeneration())
        job_id = orchestrator.submit("user_1", project.id, "add a teleport command", "GPT_5").id

        result = orchestrator.process(job_id)

        assert result["status"] == GenerationJobStatus.FAILED
        job = _job(db, job_id)
        assert job.status == GenerationJobStatus.FAILED
        assert job.error == STALLED_JOB_MESSAGE
        assert job.output is None
        assert job.tokens_used is None
        assert _balance(db) == 100
        assert _job_transactions(db, job_id) == []
        assert _files(db, project.id) == {}
