"""
Submission Pipeline

Respondent answers → one Brief, exactly once.

  save_response     upsert one step's answers (last write wins)
  submit            merge all steps, build the brief, insert it and flip the
                    project to completed in ONE transaction; then notify
  record_asset      metadata for an uploaded reference file
  get_brief         owner or respondent read
  get_shared_brief  read-only access through the share token

Exactly-once is enforced by storage, not by the status pre-check:
``briefs.project_id`` is UNIQUE and the status flip is a conditional
update.  Whichever of two racing submissions commits second gets
ALREADY_SUBMITTED and the project keeps one brief.
"""

import logging
import math

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from briefed.core.actor import ActorContext, require_respondent
from briefed.core.exceptions import (
    AccessDeniedError,
    AlreadySubmittedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from briefed.models import db
from briefed.models.project import FINISHED_STATUSES, Project
from briefed.models.response import STEP_KEYS, Asset, Brief, Response
from briefed.services import lifecycle
from briefed.services.access import get_project
from briefed.services.brief_builder import build_brief_content
from briefed.services.events import AssetUploaded, BriefSubmitted, SubmissionReceipt
from briefed.services.notification import dispatch_for
from briefed.utils.helpers import commit_or_raise, utcnow
from briefed.utils.tokens import verify_or_dummy

logger = logging.getLogger(__name__)

MAX_ANSWER_DEPTH = 5
MAX_ANSWER_KEYS = 200
MAX_ANSWER_STRING = 10_000
MAX_FILE_NAME = 255


# ── Answer envelope ──────────────────────────────────────────────────────


def _check_value(value, path: str, depth: int) -> str | None:
    """Return an error message for the first bad value under ``path``, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return f"{path}: numbers must be finite"
        return None
    if isinstance(value, str):
        if len(value) > MAX_ANSWER_STRING:
            return f"{path}: text longer than {MAX_ANSWER_STRING} characters"
        return None
    if isinstance(value, list):
        for i, item in enumerate(value):
            if not isinstance(item, str):
                return f"{path}[{i}]: lists may only contain text"
            if len(item) > MAX_ANSWER_STRING:
                return f"{path}[{i}]: text longer than {MAX_ANSWER_STRING} characters"
        return None
    if isinstance(value, dict):
        if depth >= MAX_ANSWER_DEPTH:
            return f"{path}: nested deeper than {MAX_ANSWER_DEPTH} levels"
        if len(value) > MAX_ANSWER_KEYS:
            return f"{path}: more than {MAX_ANSWER_KEYS} keys"
        for key, item in value.items():
            if not isinstance(key, str) or not key:
                return f"{path}: keys must be non-empty text"
            err = _check_value(item, f"{path}.{key}" if path else key, depth + 1)
            if err:
                return err
        return None
    return f"{path or 'answers'}: unsupported value of type {type(value).__name__}"


def validate_answers(answers) -> dict:
    """Shape-check a step's answers at the pipeline boundary.

    Accepted: a mapping whose values are text, lists of text, booleans,
    numbers, or nested mappings of the same.
    """
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object", details={"answers": "must be an object"})
    err = _check_value(answers, "", 0)
    if err:
        raise ValidationError(f"Invalid answers: {err}", details={"answers": err})
    return answers


def validate_step_key(step_key) -> str:
    if not isinstance(step_key, str) or not step_key.strip():
        raise ValidationError("stepKey is required", details={"stepKey": "required"})
    step_key = step_key.strip()
    if step_key not in STEP_KEYS:
        raise ValidationError(f"Unknown step '{step_key}'", details={"stepKey": "unknown step"})
    return step_key


# ── Responses ────────────────────────────────────────────────────────────


def _upsert_statement(values: dict, now):
    dialect = db.engine.dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    stmt = insert(Response).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["project_id", "step_key"],
        set_={"answers": stmt.excluded.answers, "updated_at": now},
    )


def save_response(actor: ActorContext, project_id: str, step_key: str, answers) -> Response:
    """Upsert one step's answers. Rejected once the brief exists."""
    step_key = validate_step_key(step_key)
    answers = validate_answers(answers)

    project = get_project(actor, project_id)
    if project.status in FINISHED_STATUSES:
        raise AlreadySubmittedError(project_id)

    now = utcnow()
    if actor.is_respondent:
        lifecycle.record_respondent_activity(project)
    db.session.execute(_upsert_statement({
        "project_id": project_id,
        "step_key": step_key,
        "answers": answers,
        "created_at": now,
        "updated_at": now,
    }, now))
    commit_or_raise(context="save_response")

    logger.debug("Saved step %s", step_key, extra={"project_id": project_id})
    return db.session.execute(
        select(Response).where(Response.project_id == project_id, Response.step_key == step_key)
        .execution_options(populate_existing=True)
    ).scalar_one()


def list_responses(actor: ActorContext, project_id: str) -> list[Response]:
    get_project(actor, project_id)
    return list(db.session.execute(
        select(Response).where(Response.project_id == project_id).order_by(Response.id)
    ).scalars())


def merged_answers(project_id: str) -> dict:
    """All stored responses as one ``step_key → answers`` mapping."""
    rows = db.session.execute(
        select(Response.step_key, Response.answers).where(Response.project_id == project_id)
    ).all()
    return {step_key: answers or {} for step_key, answers in rows}


def assemble_content(project: Project) -> dict:
    return build_brief_content(
        category=project.category,
        respondent_name=project.respondent_label,
        respondent_email=project.respondent_email,
        responses=merged_answers(project.id),
    )


# ── Submit ───────────────────────────────────────────────────────────────


def submit(actor: ActorContext, project_id: str) -> Brief:
    """Produce the project's single Brief and mark the project completed."""
    require_respondent(actor, project_id)
    project = get_project(actor, project_id)

    # Cheap early exit; the real guard is the constraint below
    if project.status in FINISHED_STATUSES:
        logger.info("Duplicate submission rejected", extra={"project_id": project_id})
        raise AlreadySubmittedError(project_id)

    content = assemble_content(project)
    lifecycle.record_respondent_activity(project)

    brief = Brief(project_id=project_id, version=1, content=content)
    db.session.add(brief)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        logger.info("Brief already exists, submission rejected", extra={"project_id": project_id})
        raise AlreadySubmittedError(project_id) from exc

    try:
        lifecycle.apply_transition(project, "complete", completed_at=utcnow())
    except InvalidTransitionError as exc:
        if exc.current in FINISHED_STATUSES:
            raise AlreadySubmittedError(project_id) from exc
        raise

    commit_or_raise(
        on_integrity=lambda: AlreadySubmittedError(project_id),
        context="submit",
    )
    logger.info(
        "Brief submitted (grade %s)", content["confidence_grade"],
        extra={"project_id": project_id},
    )

    dispatch_for(
        project, BriefSubmitted,
        grade=content["confidence_grade"],
        confidence=content["overall_confidence"],
    )
    dispatch_for(project, SubmissionReceipt)
    return brief


# ── Brief reads ──────────────────────────────────────────────────────────


def _brief_for(project_id: str) -> Brief | None:
    return db.session.execute(
        select(Brief).where(Brief.project_id == project_id)
    ).scalar_one_or_none()


def get_brief(actor: ActorContext, project_id: str) -> Brief:
    get_project(actor, project_id)
    brief = _brief_for(project_id)
    if brief is None:
        raise NotFoundError(resource="Brief", resource_id=project_id)
    return brief


def get_shared_brief(share_token: str) -> tuple[Project, Brief]:
    """Read-only brief access for anyone holding the share link."""
    project = None
    if share_token:
        project = db.session.execute(
            select(Project).where(Project.share_token == share_token)
        ).scalar_one_or_none()
    if not verify_or_dummy(share_token, project.share_token if project else None):
        raise AccessDeniedError(reason="share token mismatch or sharing disabled")

    brief = _brief_for(project.id)
    if brief is None:
        raise NotFoundError(resource="Brief", resource_id=project.id)
    return project, brief


def rebuild_brief(project: Project) -> Brief:
    """Re-assemble an existing brief from current responses and bump its version.

    Runs inside the caller's transaction.
    """
    brief = _brief_for(project.id)
    if brief is None:
        raise NotFoundError(resource="Brief", resource_id=project.id)
    content = assemble_content(project)
    result = db.session.execute(
        update(Brief)
        .where(Brief.id == brief.id, Brief.version == brief.version)
        .values(content=content, version=brief.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidTransitionError(
            f"v{brief.version}", f"v{brief.version + 1}", "brief changed concurrently",
        )
    db.session.expire(brief)
    return brief


# ── Assets ───────────────────────────────────────────────────────────────


def record_asset(
    actor: ActorContext,
    project_id: str,
    *,
    file_name: str,
    storage_path: str,
    content_type: str | None = None,
    size_bytes: int | None = None,
    step_key: str | None = None,
) -> Asset:
    """Store metadata for a file the respondent already uploaded elsewhere."""
    require_respondent(actor, project_id)
    errors = {}
    file_name = (file_name or "").strip() if isinstance(file_name, str) else ""
    storage_path = (storage_path or "").strip() if isinstance(storage_path, str) else ""
    if not file_name:
        errors["fileName"] = "required"
    elif len(file_name) > MAX_FILE_NAME:
        errors["fileName"] = "too long"
    if not storage_path:
        errors["storagePath"] = "required"
    if size_bytes is not None and (
        isinstance(size_bytes, bool) or not isinstance(size_bytes, int) or size_bytes < 0
    ):
        errors["sizeBytes"] = "must be a non-negative integer"
    if errors:
        raise ValidationError("Invalid asset metadata", details=errors)
    if step_key is not None:
        step_key = validate_step_key(step_key)

    project = get_project(actor, project_id)
    asset = Asset(
        project_id=project_id,
        step_key=step_key,
        file_name=file_name,
        storage_path=storage_path,
        content_type=content_type,
        size_bytes=size_bytes,
    )
    db.session.add(asset)
    lifecycle.record_respondent_activity(project)
    commit_or_raise(context="record_asset")

    dispatch_for(project, AssetUploaded, file_name=file_name)
    return asset
