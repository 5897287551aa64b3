from __future__ import annotations

from prepwise.core.relevance import extract_keywords, score_entry, score_experience

JOB = {
    "technical_skills": ["Python", "PostgreSQL and Kafka"],
    "responsibilities": ["Design distributed systems"],
    "soft_skills": "not a list",
}


def test_keywords_split_on_conjunctions_and_include_phrases() -> None:
    keywords = extract_keywords(JOB)

    assert keywords[:3] == ["python", "postgresql", "kafka"]
    assert "design distributed systems" in keywords
    assert "distributed systems" in keywords
    assert "systems" in keywords
    assert "and" not in keywords
    assert "postgresql and kafka" not in keywords


def test_keywords_are_deduplicated_and_capped() -> None:
    job = {"technical_skills": [f"skill{index} tool{index}" for index in range(200)] + ["Python", "python"]}

    keywords = extract_keywords(job)

    assert len(keywords) == 120
    assert len(set(keywords)) == len(keywords)


def test_score_counts_keyword_occurrences_plus_achievement_bonus() -> None:
    entry = {
        "role": "Backend Engineer",
        "company": "DataCo",
        "achievements": ["Built Kafka pipelines in Python", "Migrated PostgreSQL"],
    }

    assert score_entry(entry, ["python", "postgresql", "kafka"]) == 3 + 0.5 * 2


def test_achievement_bonus_is_capped_at_four() -> None:
    entry = {"role": "Chef", "company": "Bistro", "achievements": [f"Won award {i}" for i in range(6)]}

    assert score_entry(entry, ["python"]) == 2.0


def test_ranking_orders_by_score_and_keeps_cv_order_for_ties() -> None:
    experience = [{"role": f"Clerk {index}", "company": "Shop"} for index in range(6)]
    experience.insert(
        2,
        {"role": "Python Engineer", "company": "Kafka Labs", "achievements": ["Scaled PostgreSQL"]},
    )

    ranking = score_experience(JOB, experience)

    assert [item.entry["role"] for item in ranking.high] == ["Python Engineer", "Clerk 0", "Clerk 1"]
    assert [item.entry["role"] for item in ranking.supporting] == ["Clerk 2", "Clerk 3"]
    assert all(item.tier == "high" for item in ranking.high)


def test_ranking_is_deterministic() -> None:
    experience = [
        {"role": "Data Engineer", "company": "A", "achievements": ["Python ETL"]},
        {"role": "Platform Engineer", "company": "B", "achievements": ["Kafka clusters"]},
    ]

    first = score_experience(JOB, experience)
    second = score_experience(JOB, experience)

    assert [(item.entry["company"], item.score) for item in first.high] == [
        (item.entry["company"], item.score) for item in second.high
    ]


def test_no_keywords_yields_empty_ranking() -> None:
    ranking = score_experience({}, [{"role": "Engineer", "company": "Acme"}])

    assert ranking.is_empty()
    assert ranking.keywords == []
