import asyncio
import tempfile
import unittest
from pathlib import Path

from fakes import JOB_DESCRIPTION, RESUME_TEXT, FakeReasoner, FakeRenderer, unavailable

from resumeai.ai.types import ParseFailed
from resumeai.core.errors import (
    FabricatedSkillsError,
    InputValidationError,
    ReasonerUnavailable,
    RecordStoreError,
    RenderError,
    ResumeNotFoundError,
)
from resumeai.schemas.resume import KeywordSet, ResumeStatus
from resumeai.services.lifecycle import FREE_TEXT_RESUME_TITLE, ResumeLifecycleController
from resumeai.services.renderer import LocalTextRenderer
from resumeai.store.record_store import RecordStore

OWNER = "owner-1"

# With KeywordSet(required=["Python"]) and RESUME_TEXT the keyword score is 100 (35 points).
SCORE_40 = {"formatScore": 0, "experienceScore": 0, "skillsScore": 0, "actionWordScore": 50}
SCORE_60 = {"formatScore": 100, "experienceScore": 0, "skillsScore": 0, "actionWordScore": 50}
SCORE_75 = {"formatScore": 100, "experienceScore": 100, "skillsScore": 0, "actionWordScore": 0}


class FailingCommitStore(RecordStore):
    """Fails every analysis commit, and optionally the status restore that follows."""

    def __init__(self, path, fail_restore=False):
        super().__init__(path)
        self.fail_restore = fail_restore

    def commit_analysis(self, *args, **kwargs):
        raise RecordStoreError("database is locked")

    def update_resume(self, owner_id, resume_id, *, expected_version=None, **changes):
        if self.fail_restore and changes.get("status") not in (None, ResumeStatus.ANALYZING):
            raise RecordStoreError("disk I/O error")
        return super().update_resume(owner_id, resume_id, expected_version=expected_version, **changes)


class LifecycleTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = RecordStore(":memory:")
        self.renderer = FakeRenderer()
        self.resume = self.store.create_resume(OWNER, title="Backend", original_text=RESUME_TEXT)

    def tearDown(self):
        self.store.close()

    def controller(self, reasoner=None, renderer=None):
        return ResumeLifecycleController(self.store, reasoner or FakeReasoner(), renderer or self.renderer)


class AnalyzeTests(LifecycleTestCase):
    async def test_analyze_saved_resume(self):
        outcome = await self.controller().analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)

        self.assertEqual(outcome.resume.status, ResumeStatus.OPTIMIZED)
        self.assertEqual(outcome.resume.optimized_text, RESUME_TEXT)
        self.assertEqual(outcome.resume.current_score, 0)
        self.assertEqual(outcome.analysis.overall_score, 62)
        self.assertEqual(outcome.analysis.previous_score, 0)
        self.assertEqual(outcome.analysis.delta, 62)
        self.assertEqual(outcome.analysis.job_title, "Unknown Role")
        self.assertEqual(outcome.analysis.company_name, "Unknown Company")
        self.assertEqual(outcome.analysis.missing_keywords, ["Docker", "Kubernetes", "Terraform"])
        self.assertEqual(len(outcome.analysis.suggestions), 3)

    async def test_job_description_length_boundary(self):
        reasoner = FakeReasoner()
        controller = self.controller(reasoner)
        with self.assertRaises(InputValidationError) as ctx:
            await controller.analyze(OWNER, resume_id=self.resume.id, job_description="x" * 99)
        self.assertEqual(ctx.exception.code, "job_description_too_short")
        self.assertEqual(reasoner.calls, [])

        outcome = await controller.analyze(OWNER, resume_id=self.resume.id, job_description="x" * 100)
        self.assertEqual(outcome.resume.status, ResumeStatus.OPTIMIZED)

    async def test_job_description_length_counts_whitespace(self):
        job_description = "x" * 99 + "\n"
        outcome = await self.controller().analyze(OWNER, resume_id=self.resume.id, job_description=job_description)
        self.assertEqual(outcome.analysis.job_description, job_description)

        with self.assertRaises(InputValidationError) as ctx:
            await self.controller().analyze(OWNER, resume_id=self.resume.id, job_description=" " * 120)
        self.assertEqual(ctx.exception.code, "job_description_blank")

    async def test_label_length_errors_name_the_field(self):
        controller = self.controller()
        with self.assertRaises(InputValidationError) as ctx:
            await controller.analyze(
                OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION, job_title="T" * 201
            )
        self.assertEqual(ctx.exception.code, "job_title_too_long")
        self.assertIn("Job title", str(ctx.exception))

        with self.assertRaises(InputValidationError) as ctx:
            await controller.analyze(
                OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION, company="C" * 201
            )
        self.assertEqual(ctx.exception.code, "company_too_long")
        self.assertIn("Company", str(ctx.exception))

    async def test_previous_score_chains_latest_analysis(self):
        reasoner = FakeReasoner(keywords=KeywordSet(required=["Python"]), sub_scores=[SCORE_40, SCORE_60, SCORE_75])
        controller = self.controller(reasoner)
        scores = []
        for _ in range(3):
            outcome = await controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)
            scores.append((outcome.analysis.overall_score, outcome.analysis.previous_score))

        self.assertEqual(scores, [(40, 0), (60, 40), (75, 60)])
        self.assertEqual(self.store.latest_analysis(OWNER, self.resume.id).delta, 15)

    async def test_extractor_failure_rolls_back(self):
        controller = self.controller(FakeReasoner(keywords=unavailable()))
        with self.assertRaises(ReasonerUnavailable):
            await controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)

        resume = self.store.get_resume(OWNER, self.resume.id)
        self.assertEqual(resume.status, ResumeStatus.DRAFT)
        self.assertIsNone(resume.optimized_text)
        self.assertEqual(self.store.list_analyses(OWNER, self.resume.id), [])

    async def test_failure_restores_optimized_status(self):
        await self.controller().analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)
        controller = self.controller(FakeReasoner(sub_scores=unavailable()))
        with self.assertRaises(ReasonerUnavailable):
            await controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)

        self.assertEqual(self.store.get_resume(OWNER, self.resume.id).status, ResumeStatus.OPTIMIZED)
        self.assertEqual(len(self.store.list_analyses(OWNER, self.resume.id)), 1)

    async def test_commit_failure_rolls_back(self):
        store = FailingCommitStore(":memory:")
        self.addCleanup(store.close)
        resume = store.create_resume(OWNER, title="Backend", original_text=RESUME_TEXT)
        controller = ResumeLifecycleController(store, FakeReasoner(), self.renderer)
        with self.assertRaises(RecordStoreError):
            await controller.analyze(OWNER, resume_id=resume.id, job_description=JOB_DESCRIPTION)

        self.assertEqual(store.get_resume(OWNER, resume.id).status, ResumeStatus.DRAFT)
        self.assertEqual(store.list_analyses(OWNER, resume.id), [])

    async def test_failed_restore_is_logged_and_original_error_raised(self):
        store = FailingCommitStore(":memory:", fail_restore=True)
        self.addCleanup(store.close)
        resume = store.create_resume(OWNER, title="Backend", original_text=RESUME_TEXT)
        controller = ResumeLifecycleController(store, FakeReasoner(), self.renderer)
        with self.assertLogs("resumeai.services.lifecycle", level="ERROR") as logs:
            with self.assertRaises(RecordStoreError) as ctx:
                await controller.analyze(OWNER, resume_id=resume.id, job_description=JOB_DESCRIPTION)

        self.assertEqual(str(ctx.exception), "database is locked")
        self.assertTrue(any("status_rollback_failed" in line for line in logs.output))
        self.assertEqual(store.get_resume(OWNER, resume.id).status, ResumeStatus.ANALYZING)

    async def test_malformed_keywords_still_score(self):
        controller = self.controller(FakeReasoner(keywords=ParseFailed("invalid_json: x")))
        outcome = await controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)
        self.assertEqual(outcome.analysis.keyword_score, 50)
        self.assertEqual(outcome.analysis.matched_keywords, [])

    async def test_suggestion_failure_still_persists(self):
        controller = self.controller(FakeReasoner(suggestions=unavailable()))
        outcome = await controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION)
        self.assertEqual(outcome.analysis.suggestions, [])
        self.assertEqual(outcome.resume.status, ResumeStatus.OPTIMIZED)

    async def test_free_text_creates_resume(self):
        outcome = await self.controller().analyze(
            OWNER, resume_text=RESUME_TEXT, job_description=JOB_DESCRIPTION, job_title="Engineer", company="Acme"
        )
        self.assertNotEqual(outcome.resume.id, self.resume.id)
        self.assertEqual(outcome.resume.title, FREE_TEXT_RESUME_TITLE)
        self.assertEqual(outcome.resume.status, ResumeStatus.OPTIMIZED)
        self.assertEqual(outcome.resume.optimized_text, RESUME_TEXT.strip())
        self.assertEqual(outcome.analysis.company_name, "Acme")
        self.assertEqual(outcome.analysis.previous_score, 0)

    async def test_free_text_failure_leaves_no_resume(self):
        controller = self.controller(FakeReasoner(keywords=unavailable()))
        with self.assertRaises(ReasonerUnavailable):
            await controller.analyze(OWNER, resume_text=RESUME_TEXT, job_description=JOB_DESCRIPTION)
        self.assertEqual(len(self.store.list_resumes(OWNER)), 1)

    async def test_requires_resume_source(self):
        with self.assertRaises(InputValidationError) as ctx:
            await self.controller().analyze(OWNER, job_description=JOB_DESCRIPTION)
        self.assertEqual(ctx.exception.code, "missing_resume")

    async def test_other_owner_cannot_analyze(self):
        with self.assertRaises(ResumeNotFoundError):
            await self.controller().analyze("owner-2", resume_id=self.resume.id, job_description=JOB_DESCRIPTION)
        self.assertEqual(self.store.get_resume(OWNER, self.resume.id).status, ResumeStatus.DRAFT)

    async def test_concurrent_requests_are_serialised(self):
        reasoner = FakeReasoner(keywords=KeywordSet(required=["Python"]), sub_scores=[SCORE_40, SCORE_60])
        controller = self.controller(reasoner)
        outcomes = await asyncio.gather(
            controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION),
            controller.analyze(OWNER, resume_id=self.resume.id, job_description=JOB_DESCRIPTION),
        )
        first, second = sorted(outcomes, key=lambda item: item.analysis.id)
        self.assertEqual(second.analysis.previous_score, first.analysis.overall_score)
        self.assertEqual(self.store.get_resume(OWNER, self.resume.id).status, ResumeStatus.OPTIMIZED)


class OptimizeTests(LifecycleTestCase):
    async def test_initial_pass_reports_skill_gap(self):
        report = await self.controller().optimize(OWNER, self.resume.id, job_description=JOB_DESCRIPTION)

        self.assertEqual(report.unconfirmed_skills, ["Docker", "Kubernetes"])
        self.assertTrue(report.requires_confirmation)
        resume = self.store.get_resume(OWNER, self.resume.id)
        self.assertEqual(resume.status, ResumeStatus.DRAFT)
        self.assertEqual(resume.version, self.resume.version)
        self.assertEqual(self.store.list_analyses(OWNER, self.resume.id), [])

    async def test_confirmed_pass_rewrites_and_scores(self):
        controller = self.controller()
        await controller.optimize(OWNER, self.resume.id, job_description=JOB_DESCRIPTION)
        outcome = await controller.optimize_confirmed(
            OWNER, self.resume.id, job_description=JOB_DESCRIPTION, confirmed_skills=["docker"]
        )

        self.assertEqual(outcome.resume.status, ResumeStatus.OPTIMIZED)
        self.assertIn("Docker", outcome.resume.optimized_text)
        self.assertEqual(outcome.resume.original_text, RESUME_TEXT)
        self.assertEqual(outcome.resume.current_score, outcome.analysis.overall_score)
        self.assertEqual(outcome.analysis.previous_score, 0)
        self.assertIn("Docker", outcome.analysis.matched_keywords)
        self.assertEqual(outcome.resume.optimized_file_ref, "memory://resume-%s-1.txt" % self.resume.id)

        again = await controller.optimize_confirmed(
            OWNER, self.resume.id, job_description=JOB_DESCRIPTION, confirmed_skills=["Docker"]
        )
        self.assertEqual(again.analysis.previous_score, outcome.resume.current_score)

    async def test_confirmed_pass_requires_offer(self):
        reasoner = FakeReasoner()
        with self.assertRaises(InputValidationError):
            await self.controller(reasoner).optimize_confirmed(
                OWNER, self.resume.id, job_description=JOB_DESCRIPTION, confirmed_skills=["Docker"]
            )
        self.assertEqual(reasoner.count("rewrite"), 0)

    async def test_unknown_confirmed_skill_has_no_side_effects(self):
        reasoner = FakeReasoner()
        controller = self.controller(reasoner)
        await controller.optimize(OWNER, self.resume.id, job_description=JOB_DESCRIPTION)
        with self.assertRaises(InputValidationError):
            await controller.optimize_confirmed(
                OWNER, self.resume.id, job_description=JOB_DESCRIPTION, confirmed_skills=["Rust"]
            )
        self.assertEqual(reasoner.count("rewrite"), 0)
        self.assertEqual(self.store.get_resume(OWNER, self.resume.id).status, ResumeStatus.DRAFT)

    async def _assert_rolled_back(self, controller, error):
        await controller.optimize(OWNER, self.resume.id, job_description=JOB_DESCRIPTION)
        with self.assertRaises(error):
            await controller.optimize_confirmed(
                OWNER, self.resume.id, job_description=JOB_DESCRIPTION, confirmed_skills=["Docker"]
            )
        resume = self.store.get_resume(OWNER, self.resume.id)
        self.assertEqual(resume.status, ResumeStatus.DRAFT)
        self.assertEqual(resume.current_score, 0)
        self.assertIsNone(resume.optimized_file_ref)
        self.assertEqual(self.store.list_analyses(OWNER, self.resume.id), [])

    async def test_rewrite_failure_rolls_back(self):
        await self._assert_rolled_back(self.controller(FakeReasoner(rewrite=unavailable())), ReasonerUnavailable)
        self.assertEqual(self.renderer.rendered, [])

    async def test_fabricated_rewrite_rolls_back(self):
        reasoner = FakeReasoner(rewrite=RESUME_TEXT + "\nDocker, Kubernetes")
        await self._assert_rolled_back(self.controller(reasoner), FabricatedSkillsError)

    async def test_render_failure_rolls_back(self):
        await self._assert_rolled_back(self.controller(renderer=FakeRenderer(fail=True)), RenderError)

    async def test_commit_failure_discards_rendered_file(self):
        store = FailingCommitStore(":memory:")
        self.addCleanup(store.close)
        resume = store.create_resume(OWNER, title="Backend", original_text=RESUME_TEXT)
        controller = ResumeLifecycleController(store, FakeReasoner(), self.renderer)
        await controller.optimize(OWNER, resume.id, job_description=JOB_DESCRIPTION)
        with self.assertRaises(RecordStoreError):
            await controller.optimize_confirmed(
                OWNER, resume.id, job_description=JOB_DESCRIPTION, confirmed_skills=["Docker"]
            )

        self.assertEqual(len(self.renderer.rendered), 1)
        self.assertEqual(self.renderer.discarded, ["memory://resume-%s-1.txt" % resume.id])
        self.assertEqual(store.get_resume(OWNER, resume.id).status, ResumeStatus.DRAFT)


class LocalTextRendererTests(unittest.TestCase):
    def test_render_then_discard(self):
        with tempfile.TemporaryDirectory() as tmp:
            renderer = LocalTextRenderer(str(Path(tmp) / "exports"))
            ref = renderer.render(7, "Jane Doe\nPython")
            self.assertTrue(Path(ref).name.startswith("resume-7-"))
            self.assertEqual(Path(ref).read_text(encoding="utf-8"), "Jane Doe\nPython")

            renderer.discard(ref)
            self.assertFalse(Path(ref).exists())
            renderer.discard(ref)


if __name__ == "__main__":
    unittest.main()
