"""Brief builder: pure functions, no app context needed beyond the autouse fixture."""

import pytest

from briefed.services.brief_builder import (
    NOT_PROVIDED,
    SECTION_ORDER,
    analyze_confidence,
    build_brief_content,
    confidence_grade,
    owner_insights,
)


@pytest.mark.parametrize("confidence, grade", [
    (0.95, "A"),
    (0.8, "A"),
    (0.79, "B"),
    (0.6, "B"),
    (0.59, "C"),
    (0.0, "C"),
])
def test_confidence_grade(confidence, grade):
    assert confidence_grade(confidence) == grade


def test_analyze_confidence_complete_and_sure():
    confidence, flags, highlights = analyze_confidence({
        "averageConfidence": 0.9, "industry": "coffee", "company_name": "Acme",
    })
    assert confidence == pytest.approx(0.9)
    assert flags == []
    assert "Client feels strongly about their preferences" in highlights
    assert "Comprehensive information provided" in highlights


def test_analyze_confidence_unsure_and_sparse():
    confidence, flags, _ = analyze_confidence({
        "averageConfidence": 0.4, "a": "", "b": None, "c": [], "d": {},
    })
    # completeness 1/5 → factor 0.76
    assert confidence == pytest.approx(0.4 * 0.76)
    assert any("unsure" in f for f in flags)
    assert any("Limited information" in f for f in flags)


def test_analyze_confidence_empty_step():
    confidence, flags, highlights = analyze_confidence({})
    assert confidence == pytest.approx(0.7 * 0.7)
    assert highlights == []
    assert len(flags) == 1


def test_build_brief_content_layout():
    content = build_brief_content(
        category="web_design",
        respondent_name="Casey",
        respondent_email="casey@example.com",
        responses={
            "business_info": {"company_name": "Acme", "industry": "coffee", "target_audience": "students"},
            "timeline_budget": {"timeline": "6 weeks", "budget": "5k"},
            "inspiration_upload": {"urls": ["https://a.example", "https://b.example"]},
        },
    )
    assert tuple(content["sections"]) == SECTION_ORDER
    assert content["category"] == "web_design"
    assert content["summary"].startswith("Casey has submitted a web design brief.")
    assert "Acme in the coffee industry, targeting students." in content["summary"]
    assert content["sections"]["inspiration"]["summary"] == "2 inspiration reference(s) provided."
    assert content["confidence_grade"] in ("A", "B", "C")
    assert 0.0 <= content["overall_confidence"] <= 1.0
    assert content["raw_responses"]["timeline_budget"]["budget"] == "5k"
    assert set(content["insights"]) == {"strong_areas", "uncertain_areas", "recommendations"}


def test_build_brief_content_with_no_answers():
    content = build_brief_content(
        category="branding", respondent_name="Casey", respondent_email="c@example.com", responses={},
    )
    assert NOT_PROVIDED in content["sections"]["business"]["summary"]
    assert content["sections"]["additional"]["summary"] == "No additional notes."
    assert content["sections"]["inspiration"]["summary"] == "No inspiration references uploaded."


def test_owner_insights_recommendations():
    sections = {
        "style": {"title": "Creative Direction", "confidence": 0.3},
        "colors": {"title": "Color Preferences", "confidence": 0.2},
        "typography": {"title": "Typography", "confidence": 0.4},
        "scope": {"title": "Project Scope"},
    }
    insights = owner_insights(sections)
    assert insights["uncertain_areas"] == ["Creative Direction", "Color Preferences", "Typography"]
    assert insights["strong_areas"] == []
    assert len(insights["recommendations"]) == 3
