"""Central enum-like definitions for roles, request statuses and history tags.
Extend cautiously; values are persisted as strings, so never rename one silently.
"""
from __future__ import annotations

# --- Roles ---
ROLE_CUSTOMER = 'CUSTOMER'
ROLE_TECHNICIAN = 'TECHNICIAN'
ROLE_BASMA_ADMIN = 'BASMA_ADMIN'
ROLE_MAINTENANCE_ADMIN = 'MAINTENANCE_ADMIN'
ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
# Not a user role: attributed to scheduled jobs
ROLE_SYSTEM = 'SYSTEM'

ALL_ROLES = (ROLE_CUSTOMER, ROLE_TECHNICIAN, ROLE_BASMA_ADMIN, ROLE_MAINTENANCE_ADMIN, ROLE_SUPER_ADMIN)
ADMIN_ROLES = frozenset({ROLE_MAINTENANCE_ADMIN, ROLE_SUPER_ADMIN})
READ_ONLY_ROLES = frozenset({ROLE_BASMA_ADMIN})


class RequestStatus:
    DRAFT = 'DRAFT'
    SUBMITTED = 'SUBMITTED'
    ASSIGNED = 'ASSIGNED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CUSTOMER_REJECTED = 'CUSTOMER_REJECTED'
    CLOSED = 'CLOSED'
    REJECTED = 'REJECTED'

    ALL = (DRAFT, SUBMITTED, ASSIGNED, IN_PROGRESS, COMPLETED, CUSTOMER_REJECTED, CLOSED, REJECTED)
    TERMINAL = frozenset({CLOSED, REJECTED})
    INITIAL = SUBMITTED


class Priority:
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    URGENT = 'URGENT'

    ALL = (LOW, MEDIUM, HIGH, URGENT)


class AssignmentType:
    INITIAL_ASSIGNMENT = 'INITIAL_ASSIGNMENT'
    REASSIGNMENT = 'REASSIGNMENT'
    SELF_ASSIGNMENT = 'SELF_ASSIGNMENT'
    UNASSIGNMENT = 'UNASSIGNMENT'

    ALL = (INITIAL_ASSIGNMENT, REASSIGNMENT, SELF_ASSIGNMENT, UNASSIGNMENT)


# Event names published after a successful commit
EVENT_REQUEST_CREATED = 'request.created'
EVENT_STATUS_CHANGED = 'request.status_changed'
EVENT_REQUEST_ASSIGNED = 'request.assigned'
EVENT_REQUEST_COMMENTED = 'request.commented'

AUTO_CLOSE_REASON = 'auto-closed after customer inactivity'
DEFAULT_AUTO_CLOSE_DAYS = 3
