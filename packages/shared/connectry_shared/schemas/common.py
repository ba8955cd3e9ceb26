from enum import Enum

class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CLOSED = "closed"

class Role(str, Enum):
    CREATOR = "creator"
    CLIENT = "client"

# Forward-only lifecycle; terminal states have no outgoing edges.
REQUEST_TRANSITIONS: dict["RequestStatus", set["RequestStatus"]] = {
    RequestStatus.PENDING: {RequestStatus.ACCEPTED, RequestStatus.REJECTED},
    RequestStatus.ACCEPTED: {RequestStatus.CLOSED},
    RequestStatus.REJECTED: set(),
    RequestStatus.CLOSED: set(),
}

# Statuses in which the two parties can still talk.
OPEN_THREAD_STATUSES = {RequestStatus.PENDING, RequestStatus.ACCEPTED}

STATUS_LABELS: dict["RequestStatus", str] = {
    RequestStatus.PENDING: "Pending (awaiting reply)",
    RequestStatus.ACCEPTED: "Accepted (in progress)",
    RequestStatus.REJECTED: "Declined",
    RequestStatus.CLOSED: "Closed",
}

ROLE_LABELS: dict["Role", str] = {
    Role.CREATOR: "Creator",
    Role.CLIENT: "Client",
}
