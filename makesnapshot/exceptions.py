class VRAError(Exception):
    """Base class for every fatal error raised while making a snapshot."""
    pass

class ConfigError(VRAError):
    pass

class VRAAPIError(VRAError):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code

class VRAAuthError(VRAAPIError):
    pass

class ExtractionError(VRAError):
    """An expected field is missing, blank or unparsable in a response."""
    pass

class SnapshotRequestFailed(VRAError):
    pass

class TaskTimeoutError(VRAError):
    pass
