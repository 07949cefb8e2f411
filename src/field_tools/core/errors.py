"""Domain errors"""


class FieldToolsError(Exception):
    """Base class for field tools errors"""


class StorageError(FieldToolsError):
    """A backing store (database, Redis) failed"""


class SessionStoreError(StorageError):
    """The session backend failed"""


class SessionNotFoundError(FieldToolsError):
    """A session referenced mid-flow does not exist or has expired"""

    def __init__(self, key: str):
        super().__init__(f"Session not found: {key}")
        self.key = key


class InvalidStateTransitionError(FieldToolsError):
    """A WhatsApp session was asked to move along an edge the state machine forbids"""

    def __init__(self, current, target):
        super().__init__(f"Invalid state transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target
