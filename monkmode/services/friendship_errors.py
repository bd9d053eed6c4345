"""Named failure reasons for the friendship lifecycle.

Each error carries a stable ``code`` clients can branch on, and the HTTP
status the API layer answers with.
"""


class FriendshipError(Exception):
    code = "FriendshipError"
    status_code = 400
    message = "Friendship operation failed."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class FriendshipNotFound(FriendshipError):
    code = "NotFound"
    status_code = 404
    message = "Friend request not found."


class TargetNotFound(FriendshipError):
    code = "TargetNotFound"
    status_code = 404
    message = "User not found."


class SelfTarget(FriendshipError):
    code = "SelfTarget"
    status_code = 400
    message = "You cannot add yourself."


class AlreadyAccepted(FriendshipError):
    code = "AlreadyAccepted"
    status_code = 409
    message = "You are already friends."


class RequestAlreadyExists(FriendshipError):
    code = "RequestAlreadyExists"
    status_code = 409
    message = "A friend request already exists."


class FriendshipForbidden(FriendshipError):
    code = "Forbidden"
    status_code = 403
    message = "Unauthorized to act on this request."


class NotPending(FriendshipError):
    code = "NotPending"
    status_code = 409
    message = "Request already handled."


class FriendshipConflict(FriendshipError):
    code = "Conflict"
    status_code = 409
    message = "The friendship changed concurrently. Try again."
