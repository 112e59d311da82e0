import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from fakes import KEYWORDS, RESUME_TEXT

from resumeai.core.errors import ConcurrentUpdateError, InputValidationError, ResumeNotFoundError
from resumeai.schemas.resume import NewAnalysis, ResumeStatus, ScoreBreakdown, Suggestion
from resumeai.services.resume_service import ResumeService
from resumeai.store.record_store import RecordStore


def _analysis(score, previous=0):
    return NewAnalysis(
        job_description="jd",
        job_title="Engineer",
        company_name="Acme",
        breakdown=ScoreBreakdown(
            overall_score=score,
            keyword_score=score,
            format_score=score,
            experience_score=score,
            skills_score=score,
            action_word_score=score,
            matched_keywords=["Python"],
            missing_keywords=["Docker"],
        ),
        previous_score=previous,
        suggestions=[Suggestion(icon="📌", color="#7B2FFF", title="Add Docker", body="Mention Docker.")],
    )


class RecordStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = RecordStore(":memory:")
        self.resume = self.store.create_resume("owner-1", title="Backend", original_text=RESUME_TEXT)

    def tearDown(self):
        self.store.close()

    def test_reads_are_owner_scoped(self):
        self.assertIsNotNone(self.store.get_resume("owner-1", self.resume.id))
        self.assertIsNone(self.store.get_resume("owner-2", self.resume.id))
        self.assertEqual(self.store.list_resumes("owner-2"), [])
        self.assertFalse(self.store.delete_resume("owner-2", self.resume.id))
        with self.assertRaises(ResumeNotFoundError):
            self.store.update_resume("owner-2", self.resume.id, title="Hijacked")

    def test_version_check_rejects_stale_writes(self):
        updated = self.store.update_resume("owner-1", self.resume.id, expected_version=0, title="Renamed")
        self.assertEqual(updated.version, 1)
        with self.assertRaises(ConcurrentUpdateError):
            self.store.update_resume("owner-1", self.resume.id, expected_version=0, title="Stale")
        self.assertEqual(self.store.get_resume("owner-1", self.resume.id).title, "Renamed")

    def test_unknown_field_is_rejected(self):
        with self.assertRaises(ValueError):
            self.store.update_resume("owner-1", self.resume.id, owner_id="owner-2")

    def test_commit_analysis_is_atomic(self):
        with self.assertRaises(ConcurrentUpdateError):
            self.store.commit_analysis(
                "owner-1",
                self.resume.id,
                _analysis(70),
                expected_version=99,
                resume_changes={"status": ResumeStatus.OPTIMIZED},
            )
        self.assertEqual(self.store.list_analyses("owner-1", self.resume.id), [])
        self.assertEqual(self.store.get_resume("owner-1", self.resume.id).status, ResumeStatus.DRAFT)

    def test_history_is_newest_first(self):
        first = self.store.commit_analysis(
            "owner-1", self.resume.id, _analysis(40), expected_version=None, resume_changes={}
        )
        second = self.store.commit_analysis(
            "owner-1", self.resume.id, _analysis(60, previous=40), expected_version=None, resume_changes={}
        )
        history = self.store.list_analyses("owner-1", self.resume.id)
        self.assertEqual([item.id for item in history], [second.analysis.id, first.analysis.id])
        self.assertEqual(history[0].suggestions[0].title, "Add Docker")
        self.assertEqual(history[0].delta, 20)
        self.assertEqual(self.store.latest_analysis("owner-1", self.resume.id).id, second.analysis.id)
        self.assertIsNone(self.store.get_analysis("owner-2", first.analysis.id))

    def test_delete_cascades(self):
        outcome = self.store.commit_analysis(
            "owner-1", self.resume.id, _analysis(50), expected_version=None, resume_changes={}
        )
        self.store.save_skill_offer(
            "owner-1", self.resume.id, job_fingerprint="abc", keywords=KEYWORDS, unconfirmed_skills=["Docker"]
        )
        self.assertTrue(self.store.delete_resume("owner-1", self.resume.id))
        self.assertIsNone(self.store.get_analysis("owner-1", outcome.analysis.id))
        self.assertIsNone(self.store.latest_skill_offer("owner-1", self.resume.id, "abc"))

    def test_skill_offer_round_trip(self):
        offer = self.store.save_skill_offer(
            "owner-1", self.resume.id, job_fingerprint="abc", keywords=KEYWORDS, unconfirmed_skills=["Docker"]
        )
        found = self.store.latest_skill_offer("owner-1", self.resume.id, "abc")
        self.assertEqual(found.id, offer.id)
        self.assertEqual(found.keywords, KEYWORDS)
        self.assertIsNone(self.store.latest_skill_offer("owner-2", self.resume.id, "abc"))
        with self.assertRaises(ResumeNotFoundError):
            self.store.save_skill_offer(
                "owner-2", self.resume.id, job_fingerprint="abc", keywords=KEYWORDS, unconfirmed_skills=[]
            )

    def test_release_stale_analyzing(self):
        marked = self.store.update_resume("owner-1", self.resume.id, status=ResumeStatus.ANALYZING)
        other = self.store.create_resume("owner-2", title="Other", original_text=RESUME_TEXT)
        self.store.update_resume("owner-2", other.id, optimized_text="done", status=ResumeStatus.ANALYZING)

        self.assertEqual(self.store.release_stale_analyzing(before=datetime.now(timezone.utc) - timedelta(hours=1)), 0)
        released = self.store.release_stale_analyzing(before=datetime.now(timezone.utc) + timedelta(minutes=1))

        self.assertEqual(released, 2)
        self.assertEqual(self.store.get_resume("owner-1", self.resume.id).status, ResumeStatus.DRAFT)
        self.assertEqual(self.store.get_resume("owner-2", other.id).status, ResumeStatus.OPTIMIZED)
        with self.assertRaises(ConcurrentUpdateError):
            self.store.commit_analysis(
                "owner-1",
                self.resume.id,
                _analysis(70),
                expected_version=marked.version,
                resume_changes={"status": ResumeStatus.OPTIMIZED},
            )

    def test_file_backed_store_persists(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "store.db")
            store = RecordStore(path)
            created = store.create_resume("owner-1", title="Backend", original_text=RESUME_TEXT)
            store.close()

            reopened = RecordStore(path)
            self.assertEqual(reopened.get_resume("owner-1", created.id).title, "Backend")
            reopened.close()


class ResumeServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = RecordStore(":memory:")
        self.service = ResumeService(self.store)

    def tearDown(self):
        self.store.close()

    def test_create_validates_input(self):
        with self.assertRaises(InputValidationError):
            self.service.create("owner-1", title="  ", raw_text=RESUME_TEXT)
        with self.assertRaises(InputValidationError):
            self.service.create("owner-1", title="Backend", raw_text="too short")
        resume = self.service.create("owner-1", title="  Backend   Engineer ", raw_text=RESUME_TEXT)
        self.assertEqual(resume.title, "Backend Engineer")
        self.assertEqual(resume.status, ResumeStatus.DRAFT)

    def test_update_rejected_while_analyzing(self):
        resume = self.service.create("owner-1", title="Backend", raw_text=RESUME_TEXT)
        self.store.update_resume("owner-1", resume.id, status=ResumeStatus.ANALYZING)
        with self.assertRaises(ConcurrentUpdateError):
            self.service.update("owner-1", resume.id, title="Renamed")

    def test_stats(self):
        resume = self.service.create("owner-1", title="Backend", raw_text=RESUME_TEXT)
        self.service.create("owner-1", title="Frontend", raw_text=RESUME_TEXT)
        self.service.create("owner-2", title="Other", raw_text=RESUME_TEXT)
        self.store.commit_analysis(
            "owner-1", resume.id, _analysis(40), expected_version=None, resume_changes={}
        )
        self.store.commit_analysis(
            "owner-1",
            resume.id,
            _analysis(61, previous=40),
            expected_version=None,
            resume_changes={"status": ResumeStatus.OPTIMIZED},
        )

        stats = self.service.stats("owner-1")
        self.assertEqual(stats, {"total_resumes": 2, "avg_score": 51, "optimized_today": 1})
        tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
        self.assertEqual(self.service.stats("owner-1", now=tomorrow)["optimized_today"], 0)

    def test_export_prefers_optimized_text(self):
        resume = self.service.create("owner-1", title="Backend", raw_text=RESUME_TEXT)
        self.assertEqual(self.service.export_text("owner-1", resume.id)[1], RESUME_TEXT.strip())
        self.store.update_resume("owner-1", resume.id, optimized_text="Optimized text")
        self.assertEqual(self.service.export_text("owner-1", resume.id)[1], "Optimized text")


if __name__ == "__main__":
    unittest.main()
