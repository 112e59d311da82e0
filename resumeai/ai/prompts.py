from __future__ import annotations

from typing import Sequence

from resumeai.ai.types import ChatMessage

KEYWORD_SYSTEM = (
    "You are an expert ATS recruiter. Extract ONLY job-critical keywords from the job description.\n"
    "Return a JSON object with exactly these keys:\n"
    "- required: string[]   (must-have technical skills, tools, qualifications)\n"
    "- preferred: string[]  (nice-to-have skills)\n"
    "- soft: string[]       (soft skills and methodologies)\n"
    "Keep each keyword concise (1-3 words). Aim for 15-25 required keywords total."
)

SCORE_SYSTEM = (
    "You are an ATS scoring engine. Analyze the resume against the job description.\n"
    "Return a JSON object with exactly these integer keys, each between 0 and 100:\n"
    "- keywordScore:    how well the target keywords are covered\n"
    "- formatScore:     ATS-friendliness of the format and structure\n"
    "- experienceScore: experience and seniority alignment\n"
    "- skillsScore:     skills coverage\n"
    "- actionWordScore: quality of action verbs\n"
    "Do not compute an overall score."
)

SUGGEST_SYSTEM_TEMPLATE = (
    "You are a resume coach. Given ATS analysis results, write {count} specific, actionable "
    "improvement suggestions.\n"
    "Return a JSON object: {{\"suggestions\": [{{\"icon\": string, \"color\": string, "
    "\"title\": string, \"body\": string}}]}}\n"
    "Use these colors, one each, in order: {colors}\n"
    "Use these emojis for icons, in order: {icons}\n"
    "Keep body under {body_max} characters. Be very specific about what to add."
)

REWRITE_SYSTEM = (
    "You are a professional resume writer specializing in ATS optimization.\n"
    "Rewrite the resume so it reads well for the target job while following these HARD RULES:\n"
    "{rules}\n"
    "Return ONLY the full rewritten resume as plain text, no commentary, no markdown fences."
)

REWRITE_RULES = (
    "Only the CONFIRMED SKILLS listed below may be added to the resume.",
    "Never claim any skill, tool or qualification that is not already in the original resume "
    "or in the confirmed skills.",
    "Never attribute a confirmed skill to a role or time period before the candidate acquired it; "
    "if unsure, list it in the skills section only.",
    "Keep every employer, title, date, degree and number from the original exactly as written.",
    "Start bullets with strong action verbs and keep the original achievements.",
)


def build_keyword_messages(job_description: str) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=KEYWORD_SYSTEM),
        ChatMessage(
            role="user",
            content=f"Extract keywords from this job description:\n\n{job_description}",
        ),
    ]


def build_score_messages(
    resume_text: str,
    job_description: str,
    target_keywords: Sequence[str],
) -> list[ChatMessage]:
    user = (
        f"TARGET KEYWORDS: {', '.join(target_keywords)}\n\n"
        f"JOB DESCRIPTION:\n{job_description}\n\n"
        f"RESUME:\n{resume_text}"
    )
    return [
        ChatMessage(role="system", content=SCORE_SYSTEM),
        ChatMessage(role="user", content=user),
    ]


def build_suggestion_messages(
    *,
    job_title: str,
    company: str,
    overall_score: int,
    missing_keywords: Sequence[str],
    category_scores: dict[str, int],
    count: int,
    icons: Sequence[str],
    colors: Sequence[str],
    body_max: int,
) -> list[ChatMessage]:
    system = SUGGEST_SYSTEM_TEMPLATE.format(
        count=count,
        colors=", ".join(colors),
        icons=", ".join(icons),
        body_max=body_max,
    )
    score_lines = "\n".join(f"- {label}: {value}" for label, value in category_scores.items())
    user = (
        f"Job: {job_title} at {company}\n"
        f"Score: {overall_score}/100\n"
        f"Missing keywords: {', '.join(missing_keywords) or 'none'}\n"
        f"Category scores (lowest need the most help):\n{score_lines}"
    )
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=user),
    ]


def build_rewrite_messages(
    *,
    resume_text: str,
    job_description: str,
    confirmed_skills: Sequence[str],
    rules: Sequence[str] = REWRITE_RULES,
) -> list[ChatMessage]:
    numbered = "\n".join(f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1))
    confirmed = ", ".join(confirmed_skills) if confirmed_skills else "(none)"
    user = (
        f"CONFIRMED SKILLS: {confirmed}\n\n"
        f"JOB DESCRIPTION:\n{job_description}\n\n"
        f"ORIGINAL RESUME:\n{resume_text}"
    )
    return [
        ChatMessage(role="system", content=REWRITE_SYSTEM.format(rules=numbered)),
        ChatMessage(role="user", content=user),
    ]
