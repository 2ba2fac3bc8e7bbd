"""
Notebook Backend: Authorization Policy
=======================================

What:  One table mapping every protected action to the roles allowed to do it.
Why:   Role checks were scattered across handlers; a table makes the whole
       policy reviewable at a glance.
How:   is_allowed() is a pure lookup; authorize() raises ForbiddenError and
       logs the refusal. Services call authorize() before mutating anything.

Policy:
    list_notes, submit_request, list_own_requests, summarize → any role
    upload_note, delete_note                                → teacher
    review_requests, approve_request, reject_request        → teacher, admin
"""

import enum
import logging
from typing import Any, FrozenSet, Optional

from notebook.exceptions import ForbiddenError
from notebook.models.enums import UserRole
from notebook.models.user import User

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    LIST_NOTES = "list_notes"
    UPLOAD_NOTE = "upload_note"
    DELETE_NOTE = "delete_note"
    SUBMIT_REQUEST = "submit_request"
    LIST_OWN_REQUESTS = "list_own_requests"
    REVIEW_REQUESTS = "review_requests"
    APPROVE_REQUEST = "approve_request"
    REJECT_REQUEST = "reject_request"
    SUMMARIZE = "summarize"


ANY_ROLE: FrozenSet[UserRole] = frozenset(UserRole)
TEACHER_ONLY: FrozenSet[UserRole] = frozenset({UserRole.TEACHER})
REVIEWERS: FrozenSet[UserRole] = frozenset({UserRole.TEACHER, UserRole.ADMIN})

POLICY = {
    Action.LIST_NOTES: ANY_ROLE,
    Action.SUBMIT_REQUEST: ANY_ROLE,
    Action.LIST_OWN_REQUESTS: ANY_ROLE,
    Action.SUMMARIZE: ANY_ROLE,
    Action.UPLOAD_NOTE: TEACHER_ONLY,
    Action.DELETE_NOTE: TEACHER_ONLY,
    Action.REVIEW_REQUESTS: REVIEWERS,
    Action.APPROVE_REQUEST: REVIEWERS,
    Action.REJECT_REQUEST: REVIEWERS,
}

DENIAL_MESSAGES = {
    Action.UPLOAD_NOTE: "Only teachers can upload notes",
    Action.DELETE_NOTE: "Only teachers can delete notes",
    Action.REVIEW_REQUESTS: "Only teachers and admins can review requests",
    Action.APPROVE_REQUEST: "Only teachers and admins can approve requests",
    Action.REJECT_REQUEST: "Only teachers and admins can reject requests",
}


def is_allowed(user: Optional[User], action: Action, resource: Any = None) -> bool:
    """
    Decide whether `user` may perform `action`.

    `resource` is accepted so per-object rules can be added without changing
    call sites; the current policy is purely role based.
    """
    if user is None:
        return False
    try:
        role = UserRole(user.role)
    except ValueError:
        return False
    return role in POLICY[action]


def authorize(user: Optional[User], action: Action, resource: Any = None) -> None:
    """Raise ForbiddenError unless `user` may perform `action`."""
    if is_allowed(user, action, resource):
        return
    logger.warning(
        "Unauthorized action %s by user %s (role=%s)",
        action.value,
        getattr(user, "id", None),
        getattr(user, "role", None),
    )
    raise ForbiddenError(
        message=DENIAL_MESSAGES.get(action, "You do not have permission to perform this action."),
        context={"action": action.value},
    )
