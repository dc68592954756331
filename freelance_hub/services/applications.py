"""
Rules for freelancer applications embedded in a project.

The project's own question list is authoritative: stored answers are built
by walking ``project.questions`` and pairing each with the caller's answer at
the same position. Question text sent by the caller is never stored.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from freelance_hub.core.errors import Forbidden, InvalidState, NotFound
from freelance_hub.models.schemas import (
    Answer,
    AnswerIn,
    Application,
    ApplicationStatus,
    Principal,
    Project,
    ProjectStatus,
    Question,
    Role,
)


def build_answers(questions: Sequence[Question], answers: Sequence[AnswerIn]) -> List[Answer]:
    """One answer per project question; missing answers become empty strings, extras are dropped."""
    aligned = []
    for index, question in enumerate(questions):
        answer_text = answers[index].answer_text if index < len(answers) else ""
        aligned.append(Answer(question_text=question.text, answer_text=answer_text))
    return aligned


def ensure_can_apply(project: Project, caller: Principal) -> None:
    if caller.role != Role.FREELANCER:
        raise Forbidden("Only freelancers can apply to projects")
    if project.status != ProjectStatus.OPEN:
        raise InvalidState("Project is not open for applications")
    if any(a.freelancer_user_id == caller.id for a in project.applications):
        raise InvalidState("You have already applied to this project")


def submit(
    project: Project,
    caller: Principal,
    answers: Sequence[AnswerIn],
    resume_url: Optional[str] = None,
) -> Application:
    ensure_can_apply(project, caller)
    application = Application(
        freelancer_user_id=caller.id,
        answers=build_answers(project.questions, answers),
        resume_url=resume_url or None,
    )
    project.applications.append(application)
    return application


def find(project: Project, application_id: UUID) -> Application:
    for application in project.applications:
        if application.application_id == application_id:
            return application
    raise NotFound("Application not found")


def decide(
    project: Project,
    application_id: UUID,
    decision: ApplicationStatus,
    reject_siblings: bool = False,
) -> Application:
    """
    Move a pending application to accepted or rejected.

    Accepting binds the applicant to the project and starts it. At most one
    application per project can ever be accepted.
    """
    if decision == ApplicationStatus.PENDING:
        raise InvalidState("An application can only be accepted or rejected")

    application = find(project, application_id)
    if application.status != ApplicationStatus.PENDING:
        raise InvalidState(f"Application is already {application.status.value}")

    if decision == ApplicationStatus.ACCEPTED:
        if any(a.status == ApplicationStatus.ACCEPTED for a in project.applications):
            raise InvalidState("Another application has already been accepted")
        if project.status != ProjectStatus.OPEN:
            raise InvalidState("Applications can only be accepted while the project is open")
        project.freelancer_user_id = application.freelancer_user_id
        project.status = ProjectStatus.IN_PROGRESS
        if reject_siblings:
            for sibling in project.applications:
                if sibling is not application and sibling.status == ApplicationStatus.PENDING:
                    sibling.status = ApplicationStatus.REJECTED

    application.status = decision
    return application


def rejected_by(before: Project, after: Project) -> List[Application]:
    """Applications that turned from pending to rejected between two versions."""
    previous = {a.application_id: a.status for a in before.applications}
    return [
        a for a in after.applications
        if a.status == ApplicationStatus.REJECTED and previous.get(a.application_id) == ApplicationStatus.PENDING
    ]
