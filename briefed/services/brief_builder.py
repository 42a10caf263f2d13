"""
Brief builder: turns merged step answers into the structured brief document.

Pure functions, no storage access.  The Submission Pipeline calls
``build_brief_content`` once per submission (and again when a revision
cycle is closed).

Output layout:
    summary              one-paragraph overview
    sections             business, scope, style, colors, typography,
                         inspiration, timeline, additional
    overall_confidence   mean of section confidences (0.0–1.0)
    confidence_grade     A (≥0.8) / B (≥0.6) / C
    insights             strong_areas, uncertain_areas, recommendations
    raw_responses        the step_key → answers mapping it was built from

Preference sections (business, style, colors, typography) carry a
confidence value plus flags/highlights derived from how sure and how
complete the answers were.
"""

from datetime import datetime, timezone

DEFAULT_CONFIDENCE = 0.7
NOT_PROVIDED = "Not provided"

SECTION_ORDER = (
    "business",
    "scope",
    "style",
    "colors",
    "typography",
    "inspiration",
    "timeline",
    "additional",
)


def _text(value, fallback: str = NOT_PROVIDED) -> str:
    if value is None or value == "":
        return fallback
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) if value else fallback
    return str(value)


def _step(responses: dict, step_key: str) -> dict:
    data = responses.get(step_key)
    return data if isinstance(data, dict) else {}


def _is_filled(value) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, (list, dict)) and not value:
        return False
    return True


def analyze_confidence(data: dict) -> tuple[float, list[str], list[str]]:
    """Return (confidence, flags, highlights) for one preference step.

    A self-reported ``averageConfidence`` seeds the value; completeness of
    the step then scales it by ``0.7 + completeness * 0.3``.
    """
    flags: list[str] = []
    highlights: list[str] = []
    confidence = DEFAULT_CONFIDENCE

    reported = data.get("averageConfidence", data.get("average_confidence"))
    if isinstance(reported, (int, float)) and not isinstance(reported, bool) and reported:
        confidence = float(reported)
        if confidence >= 0.8:
            highlights.append("Client feels strongly about their preferences")
        elif confidence < 0.5:
            flags.append("Client was unsure about these choices; consider presenting 2-3 options")

    total = len(data)
    completeness = (sum(1 for v in data.values() if _is_filled(v)) / total) if total else 0.0
    if completeness < 0.3:
        flags.append("Limited information provided; follow up for more details")
    elif completeness > 0.8:
        highlights.append("Comprehensive information provided")

    confidence = confidence * (0.7 + completeness * 0.3)
    return confidence, flags, highlights


def _scored_section(title: str, summary: str, data: dict) -> dict:
    confidence, flags, highlights = analyze_confidence(data)
    return {
        "title": title,
        "summary": summary,
        "data": data,
        "confidence": round(confidence, 4),
        "flags": flags,
        "highlights": highlights,
    }


def _plain_section(title: str, summary: str, data: dict) -> dict:
    return {"title": title, "summary": summary, "data": data}


def _business(responses):
    data = _step(responses, "business_info")
    return _scored_section(
        "Business Context",
        f"{_text(data.get('company_name'))} in the {_text(data.get('industry'))} industry, "
        f"targeting {_text(data.get('target_audience'))}.",
        data,
    )


def _scope(responses):
    data = _step(responses, "project_scope")
    merged = dict(data)
    merged["pages_functionality"] = _step(responses, "pages_functionality")
    merged["platforms_content"] = _step(responses, "platforms_content")
    return _plain_section("Project Scope", f"Deliverables: {_text(data.get('deliverables'))}.", merged)


def _style(responses):
    data = _step(responses, "style_direction")
    styles = data.get("selected_styles", data.get("styles"))
    return _scored_section("Creative Direction", f"Preferred styles: {_text(styles)}.", data)


def _colors(responses):
    data = _step(responses, "color_preferences")
    palette = data.get("selected_palette", data.get("palette"))
    return _scored_section("Color Preferences", f"Color direction: {_text(palette)}.", data)


def _typography(responses):
    data = _step(responses, "typography_feel")
    preference = data.get("preference", data.get("style"))
    return _scored_section("Typography", f"Typography preference: {_text(preference)}.", data)


def _inspiration(responses):
    data = _step(responses, "inspiration_upload")
    refs = data.get("urls", data.get("images")) or []
    count = len(refs) if isinstance(refs, list) else 0
    summary = (
        f"{count} inspiration reference(s) provided." if count
        else "No inspiration references uploaded."
    )
    return _plain_section("Inspiration & References", summary, data)


def _timeline(responses):
    data = _step(responses, "timeline_budget")
    return _plain_section(
        "Timeline & Budget",
        f"Timeline: {_text(data.get('timeline'))}. Budget: {_text(data.get('budget'))}.",
        data,
    )


def _additional(responses):
    data = _step(responses, "final_thoughts")
    notes = _text(data.get("notes", data.get("additional_notes")))
    return _plain_section(
        "Additional Notes",
        "No additional notes." if notes == NOT_PROVIDED else notes,
        data,
    )


_BUILDERS = {
    "business": _business,
    "scope": _scope,
    "style": _style,
    "colors": _colors,
    "typography": _typography,
    "inspiration": _inspiration,
    "timeline": _timeline,
    "additional": _additional,
}


def confidence_grade(confidence: float) -> str:
    if confidence >= 0.8:
        return "A"
    if confidence >= 0.6:
        return "B"
    return "C"


def overall_confidence(sections: dict) -> float:
    # Sections without their own score count at the default
    values = [s.get("confidence") or DEFAULT_CONFIDENCE for s in sections.values()]
    return sum(values) / len(values) if values else DEFAULT_CONFIDENCE


def owner_insights(sections: dict) -> dict:
    strong, uncertain, recommendations = [], [], []
    for section in sections.values():
        confidence = section.get("confidence") or DEFAULT_CONFIDENCE
        if confidence >= 0.8:
            strong.append(section["title"])
        elif confidence < 0.5:
            uncertain.append(section["title"])

    if "Creative Direction" in uncertain:
        recommendations.append("Consider creating 2-3 initial concept directions for client review")
    if "Color Preferences" in uncertain:
        recommendations.append("Present a diverse color palette with different moods for client feedback")
    if len(strong) >= 5:
        recommendations.append("Client has clear vision; focus on precise execution of their preferences")
    if len(uncertain) >= 3:
        recommendations.append("Schedule a discovery call to clarify unclear areas before starting design work")

    return {
        "strong_areas": strong,
        "uncertain_areas": uncertain,
        "recommendations": recommendations,
    }


def build_brief_content(
    *,
    category: str,
    respondent_name: str,
    respondent_email: str,
    responses: dict,
) -> dict:
    """Build the brief document from a ``step_key → answers`` mapping."""
    sections = {key: _BUILDERS[key](responses) for key in SECTION_ORDER}
    confidence = overall_confidence(sections)

    summary = " ".join(filter(None, [
        f"{respondent_name} has submitted a {category.replace('_', ' ')} brief.",
        sections["business"]["summary"],
        sections["scope"]["summary"],
        sections["style"]["summary"],
        sections["colors"]["summary"],
        sections["timeline"]["summary"],
    ]))

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": summary,
        "category": category,
        "respondent_name": respondent_name,
        "respondent_email": respondent_email,
        "overall_confidence": round(confidence, 4),
        "confidence_grade": confidence_grade(confidence),
        "sections": sections,
        "insights": owner_insights(sections),
        "raw_responses": responses,
    }
