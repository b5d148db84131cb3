from __future__ import annotations

import logging
from collections.abc import Mapping

from elections.exceptions import AuthorizationError
from elections.models import Role
from elections.principals import ADMIN_ROLES, Principal

logger = logging.getLogger(__name__)

ELECTION_CREATE = "election.create"
ELECTION_UPDATE = "election.update"
ELECTION_START = "election.start"
ELECTION_CLOSE = "election.close"
ELECTION_DELETE = "election.delete"
RESULTS_PUBLISH = "results.publish"
RESULTS_PREVIEW = "results.preview"
RESULTS_STATS = "results.stats"
VOTES_LIST = "votes.list"

_OFFICERS: frozenset[str] = frozenset({Role.chairman, Role.secretary})
_CHAIRMAN: frozenset[str] = frozenset({Role.chairman})

POLICY: Mapping[str, frozenset[str]] = {
    ELECTION_CREATE: _OFFICERS,
    ELECTION_UPDATE: _OFFICERS,
    ELECTION_START: _OFFICERS,
    ELECTION_CLOSE: _OFFICERS,
    ELECTION_DELETE: _CHAIRMAN,
    RESULTS_PUBLISH: _CHAIRMAN,
    RESULTS_PREVIEW: ADMIN_ROLES,
    RESULTS_STATS: ADMIN_ROLES,
    VOTES_LIST: ADMIN_ROLES,
}

# Operations where the owner of the resource is allowed regardless of role.
OWNER_ALLOWED: frozenset[str] = frozenset({ELECTION_UPDATE})


def is_allowed(principal: Principal, operation: str, *, owner_id: str | None = None) -> bool:
    allowed_roles = POLICY[operation]
    if principal.role in allowed_roles:
        return True
    return operation in OWNER_ALLOWED and owner_id is not None and principal.user_id == owner_id


def authorize(principal: Principal, operation: str, *, owner_id: str | None = None) -> None:
    """Raise AuthorizationError unless the principal may perform the operation.

    The message deliberately does not say which role would have been enough;
    that detail only goes to the log.
    """

    if is_allowed(principal, operation, owner_id=owner_id):
        return

    logger.warning(
        "Denied %s for user=%s role=%s (allowed roles: %s)",
        operation,
        principal.user_id,
        principal.role,
        ", ".join(sorted(str(r) for r in POLICY[operation])),
    )
    raise AuthorizationError("You do not have permission to perform this action")
