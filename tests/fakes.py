import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests hermetic: no analytics writes, no rate limiting, store under a temp dir.
_TMP_ROOT = tempfile.mkdtemp(prefix="resumeai-tests-")
os.environ["API_KEY"] = ""
os.environ["ANALYTICS_ENABLED"] = "0"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["RECORD_STORE_PATH"] = os.path.join(_TMP_ROOT, "resumeai.db")
os.environ["EXPORT_DIR"] = os.path.join(_TMP_ROOT, "exports")

from resumeai.ai.types import ParseFailed, ParseOk  # noqa: E402
from resumeai.core.errors import ReasonerUnavailable, RenderError  # noqa: E402
from resumeai.schemas.resume import KeywordSet  # noqa: E402

JOB_DESCRIPTION = (
    "Senior Backend Engineer at Acme. We need strong Python and PostgreSQL skills, experience with "
    "Docker and Kubernetes, and a track record of building REST APIs. Terraform is a plus."
)
RESUME_TEXT = (
    "Jane Doe - Backend Engineer\n"
    "- Built Python services backed by PostgreSQL for 2M users.\n"
    "- Shipped REST APIs and reduced latency by 30%.\n"
)
KEYWORDS = KeywordSet(
    required=["Python", "PostgreSQL", "Docker", "Kubernetes", "REST APIs"],
    preferred=["Terraform"],
    soft=["Mentoring"],
)
SUB_SCORES = {"formatScore": 80, "experienceScore": 70, "skillsScore": 60, "actionWordScore": 50}
SUGGESTIONS = [
    {"icon": "📌", "color": "#7B2FFF", "title": "Add Docker", "body": "Mention the Docker images you built."},
    {"icon": "⚙️", "color": "#00D4FF", "title": "Show Kubernetes", "body": "Describe any cluster work."},
    {"icon": "📊", "color": "#FF4D6D", "title": "Quantify", "body": "Add numbers to every bullet."},
]


def _next(script, default):
    if isinstance(script, list):
        if not script:
            return default
        return script.pop(0) if len(script) > 1 else script[0]
    return default if script is None else script


class FakeReasoner:
    """Scripted LanguageReasoner. A value that is an Exception instance is raised."""

    def __init__(self, *, keywords=None, sub_scores=None, suggestions=None, rewrite=None):
        self.keywords = keywords if keywords is not None else KEYWORDS
        self.sub_scores = sub_scores if sub_scores is not None else dict(SUB_SCORES)
        self.suggestions = suggestions if suggestions is not None else list(SUGGESTIONS)
        self.rewrite_result = rewrite
        self.calls = []

    @staticmethod
    def _resolve(value):
        if isinstance(value, BaseException):
            raise value
        return value

    async def extract_keywords(self, job_description):
        self.calls.append(("extract", job_description))
        value = self._resolve(_next(self.keywords, KEYWORDS))
        return value if isinstance(value, ParseFailed) else ParseOk(value)

    async def score_resume(self, resume_text, job_description, target_keywords):
        self.calls.append(("score", resume_text, list(target_keywords)))
        value = self._resolve(_next(self.sub_scores, dict(SUB_SCORES)))
        return value if isinstance(value, ParseFailed) else ParseOk(dict(value))

    async def suggest(self, **kwargs):
        self.calls.append(("suggest", kwargs))
        value = self._resolve(self.suggestions)
        return value if isinstance(value, ParseFailed) else ParseOk(list(value))

    async def rewrite(self, *, resume_text, job_description, confirmed_skills):
        self.calls.append(("rewrite", resume_text, list(confirmed_skills)))
        if self.rewrite_result is None:
            return resume_text + "\nSkills: " + ", ".join(confirmed_skills)
        return self._resolve(self.rewrite_result)

    def count(self, capability):
        return sum(1 for call in self.calls if call[0] == capability)


class FakeRenderer:
    def __init__(self, fail=False):
        self.fail = fail
        self.rendered = []
        self.discarded = []

    def render(self, resume_id, text):
        if self.fail:
            raise RenderError("disk full")
        self.rendered.append((resume_id, text))
        return f"memory://resume-{resume_id}-{len(self.rendered)}.txt"

    def discard(self, ref):
        self.discarded.append(ref)


def unavailable(message="reasoner down"):
    return ReasonerUnavailable(message)
