"""
Cross-actor notification events.

Services build one of these after their primary change has committed and
hand it to ``briefed.services.notification.dispatch``.  Events are plain
frozen dataclasses: they carry everything the dispatcher needs to address
both parties, so dispatch never has to re-read the project.
"""

from __future__ import annotations

from dataclasses import dataclass

STATUS_LABELS = {
    "draft": "Draft",
    "sent": "Sent",
    "in_progress": "In progress",
    "completed": "Completed",
    "reviewed": "Reviewed",
}


@dataclass(frozen=True)
class Addressing:
    """Both parties of one project, captured at event time."""

    project_id: str
    category: str
    owner_id: int
    owner_email: str | None
    owner_name: str
    respondent_email: str
    respondent_name: str | None
    respondent_account_id: int | None
    access_token: str

    @classmethod
    def from_project(cls, project) -> "Addressing":
        owner = project.owner
        return cls(
            project_id=project.id,
            category=project.category,
            owner_id=project.owner_id,
            owner_email=owner.email if owner else None,
            owner_name=owner.display_name if owner else "Your Designer",
            respondent_email=project.respondent_email,
            respondent_name=project.respondent_name,
            respondent_account_id=project.respondent_account_id,
            access_token=project.access_token,
        )

    @property
    def respondent_label(self) -> str:
        return self.respondent_name or self.respondent_email

    @property
    def category_label(self) -> str:
        return self.category.replace("_", " ")


@dataclass(frozen=True)
class Event:
    to: Addressing

    @property
    def project_id(self) -> str:
        return self.to.project_id

    @property
    def event_type(self) -> str:
        return type(self).__name__

    @property
    def summary(self) -> str:
        return self.event_type


@dataclass(frozen=True)
class StatusChanged(Event):
    new_status: str = ""

    @property
    def summary(self) -> str:
        return f"Project moved to {STATUS_LABELS.get(self.new_status, self.new_status)}"


@dataclass(frozen=True)
class NewMessage(Event):
    sender_kind: str = "owner"
    content: str = ""

    @property
    def summary(self) -> str:
        who = self.to.owner_name if self.sender_kind == "owner" else self.to.respondent_label
        return f"New message from {who}"


@dataclass(frozen=True)
class RevisionRequested(Event):
    revision_id: str = ""
    step_key: str = ""
    message: str = ""

    @property
    def summary(self) -> str:
        return f"Revision requested on {self.step_key.replace('_', ' ')}"


@dataclass(frozen=True)
class RevisionResponded(Event):
    revision_id: str = ""
    step_key: str = ""
    response: str = ""

    @property
    def summary(self) -> str:
        return f"{self.to.respondent_label} answered your question on {self.step_key.replace('_', ' ')}"


@dataclass(frozen=True)
class DeliverablesReady(Event):
    notes: str = ""

    @property
    def summary(self) -> str:
        return "Deliverables are ready for review"


@dataclass(frozen=True)
class DeliverableFeedbackGiven(Event):
    deliverable_id: str = ""
    title: str = ""
    rating: str = ""
    comments: str = ""

    @property
    def summary(self) -> str:
        verdict = "approved" if self.rating == "approve" else "left feedback on"
        return f"{self.to.respondent_label} {verdict} {self.title}"


@dataclass(frozen=True)
class OnboardingLink(Event):
    @property
    def summary(self) -> str:
        return f"Questionnaire link sent to {self.to.respondent_email}"


@dataclass(frozen=True)
class BriefSubmitted(Event):
    grade: str = ""
    confidence: float = 0.0

    @property
    def summary(self) -> str:
        return f"{self.to.respondent_label} submitted their {self.to.category_label} brief"


@dataclass(frozen=True)
class SubmissionReceipt(Event):
    @property
    def summary(self) -> str:
        return "Brief submission received"


@dataclass(frozen=True)
class AssetUploaded(Event):
    file_name: str = ""

    @property
    def summary(self) -> str:
        return f"{self.to.respondent_label} uploaded {self.file_name}"
