# =============================================================================
# core/exceptions.py - Error taxonomy
# =============================================================================


class DirectoryError(Exception):
    """Base class for directory service errors"""


class DirectoryUnavailable(DirectoryError):
    """Directory service could not be reached or bound"""


class DirectoryTimeout(DirectoryUnavailable):
    """Directory service did not answer within the configured timeout"""


class InvalidTargetContainer(DirectoryError):
    """Target container for a move is missing or is not a container"""

    def __init__(self, container: str, reason: str = "does not exist"):
        self.container = container
        self.reason = reason
        super().__init__(f"Target container '{container}' {reason}")


class PerAccountMutationFailed(DirectoryError):
    """A single account could not be modified"""

    def __init__(self, identifier: str, message: str):
        self.identifier = identifier
        super().__init__(f"{identifier}: {message}")


class ExportPathInvalid(Exception):
    """Export destination could not be created or written"""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cannot export to {path}: {reason}")
