# backend/livechat/errors.py
"""Errors raised inside the realtime relay.

Each error knows which private socket event it is reported with and the
payload the requesting connection receives. None of them is ever broadcast
to a room.
"""


class ChatError(Exception):
    event = "chat-error"

    def __init__(self, message: str, detail: str = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def payload(self) -> dict:
        data = {"message": self.message}
        if self.detail:
            data["detail"] = self.detail
        return data


class ValidationError(ChatError):
    """Missing or malformed input."""


class NotFoundError(ChatError):
    """Referenced chat or user does not exist."""


class PolicyViolation(ChatError):
    """The request is well formed but not allowed right now."""


class ChatClosedError(PolicyViolation):
    event = "chat-closed"

    def __init__(self, chat_id: str, reason: str = None):
        super().__init__("This chat has been closed")
        self.chat_id = chat_id
        self.reason = reason or "This chat has been closed"

    def payload(self) -> dict:
        return {"chatId": self.chat_id, "reason": self.reason}


class UserBannedError(PolicyViolation):
    event = "user-banned"

    def __init__(self):
        super().__init__("You have been banned from sending messages")

    def payload(self) -> dict:
        return {"message": self.message}


class StoreError(ChatError):
    """Unexpected persistence failure."""

    def __init__(self, detail: str = None):
        super().__init__("Failed to send message", detail)
