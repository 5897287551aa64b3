from __future__ import annotations

from typing import Any

SYNTHESIS_SYSTEM_PROMPT = """
You are an interview preparation consultant who knows how hiring works at large
companies and for technical roles.

Build a tailored interview preparation guide from the company research, job
requirements and candidate profile you are given:
1. Four realistic interview stages that follow the company's reported process.
2. A CV-to-job comparison with concrete skill gaps and experience mapping.
3. 30-50 tailored interview questions across 7 categories (5-8 per category).
4. Preparation guidance specific to the candidate's background.

Rules:
- Treat the real interview questions provided as ground truth; produce
  variations and extensions of them rather than generic prompts.
- Every question must reference concrete details from the candidate's history,
  the job responsibilities, or the company's culture and process.
- Match complexity to the candidate's seniority.
- Do not invent facts that are not supported by the research.
- Never use placeholders such as "solve a coding problem" or "tell me about a
  challenge" without context.

Return ONLY a valid JSON object in the requested structure, with no markdown.
""".strip()

SYNTHESIS_REQUIREMENTS = """
=== SYNTHESIS REQUIREMENTS ===
1. Use the real interview questions above as the foundation for tailored variations.
2. Tailor every question to the candidate's work history, projects and achievements.
3. Align every question with the job responsibilities and requirements.
4. Reflect the company's culture, values and interview philosophy.
5. Generate 5-8 questions per category, 30-50 in total.
6. Match question complexity to a {seniority}-level candidate.
7. Explain in the rationale why {company} would ask each question.
8. Give company-specific context for each question.
9. Map the candidate's experience to STAR stories for behavioral questions.
""".strip()

REFINEMENT_SYSTEM_PROMPT = """
You write additional interview practice questions for one category at a time.
Each new question must be specific to the company, role and candidate context
you are given, and must not repeat or paraphrase any existing question.
Return ONLY a valid JSON object of the form {"questions": [...]} with no markdown.
""".strip()

REFINEMENT_PROMPT = """
Generate exactly {count} NEW interview questions in the "{category}" category.

Context:
{context}

Existing {category} questions (do not repeat or rephrase these):
{existing}

Each question object must have the keys:
question, category ("{category}"), difficulty (easy|medium|hard), rationale,
company_context, confidence_score (0..1), star_story_fit (boolean),
suggested_answer_approach, evaluation_criteria (string[]), follow_up_questions (string[]).
""".strip()

CATEGORY_LABELS: dict[str, str] = {
    "behavioral": "BEHAVIORAL",
    "technical": "TECHNICAL",
    "situational": "SITUATIONAL",
    "company_specific": "COMPANY-SPECIFIC",
    "role_specific": "ROLE-SPECIFIC",
    "experience_based": "EXPERIENCE-BASED",
    "cultural_fit": "CULTURAL-FIT",
}


def synthesis_schema() -> dict[str, Any]:
    question = {
        "question": "Specific question",
        "category": "behavioral",
        "difficulty": "easy|medium|hard",
        "rationale": "Why this company would ask it",
        "company_context": "How it relates to the company",
        "confidence_score": 0.9,
        "star_story_fit": True,
        "suggested_answer_approach": "How to answer",
        "evaluation_criteria": ["criterion"],
        "follow_up_questions": ["follow-up"],
    }
    return {
        "interview_stages": [
            {
                "name": "Stage name",
                "order_index": 1,
                "duration": "Duration estimate",
                "interviewer": "Who conducts it",
                "content": "What to expect",
                "guidance": "How to approach it",
                "preparation_tips": ["tip"],
                "common_questions": ["question"],
                "red_flags_to_avoid": ["flag"],
            }
        ],
        "comparison_analysis": {
            "skill_gap_analysis": {
                "matching_skills": {"technical": ["skill"], "soft": ["skill"], "certifications": ["cert"]},
                "missing_skills": {"technical": ["skill"], "soft": ["skill"]},
                "skill_match_percentage": {"technical": 0, "soft": 0, "overall": 0},
            },
            "experience_gap_analysis": {
                "relevant_experience": [
                    {"experience": "Experience", "relevance_score": 0.8, "how_to_highlight": "How to present"}
                ],
                "missing_experience": [
                    {"requirement": "Requirement", "severity": "low|medium|high", "mitigation_strategy": "Plan"}
                ],
            },
            "personalized_story_bank": {
                "stories": [
                    {
                        "situation": "S",
                        "task": "T",
                        "action": "A",
                        "result": "R",
                        "applicable_questions": [],
                        "impact_quantified": "Impact",
                    }
                ]
            },
            "interview_prep_strategy": {
                "strengths_to_emphasize": ["strength"],
                "weaknesses_to_address": ["weakness"],
                "competitive_positioning": {"unique_value_proposition": "USP", "differentiation_points": []},
            },
            "overall_fit_score": 0,
        },
        "interview_questions_data": {
            "behavioral": [question],
            "technical": [],
            "situational": [],
            "company_specific": [],
            "role_specific": [],
            "experience_based": [],
            "cultural_fit": [],
        },
        "preparation_guidance": {
            "preparation_timeline": {
                "weeks_before": ["task"],
                "week_before": ["task"],
                "day_before": ["task"],
                "day_of": ["task"],
            },
            "preparation_priorities": ["priority"],
            "personalized_guidance": {
                "strengths_to_highlight": ["strength"],
                "areas_to_improve": ["area"],
                "suggested_stories": ["story"],
            },
        },
    }
