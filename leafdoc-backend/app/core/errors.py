# app/core/errors.py


class LeafDocError(Exception):
    """
    Base for every failure that reaches the HTTP layer.
    `message` is what the caller sees; details belong in the log.
    """
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class ClassifierError(LeafDocError):
    """Classifier process failed: reason is nonzero-exit, empty-output or spawn-failed."""
    status_code = 500

    def __init__(self, reason: str, code: int | None = None):
        self.reason = reason
        self.code = code
        if reason == "empty-output":
            message = "Failed to get a valid prediction."
        else:
            message = "Prediction script failed to run."
        super().__init__(message)

    def __str__(self):
        if self.code is not None:
            return f"classifier {self.reason} (exit code {self.code})"
        return f"classifier {self.reason}"


class RemedyDetailError(LeafDocError):
    status_code = 502
    message = "Failed to fetch remedy details from AI."


class NoFileError(LeafDocError):
    status_code = 400
    message = "No image file uploaded."


class ValidationError(LeafDocError):
    status_code = 400
    message = "Invalid request."


class AuthError(LeafDocError):
    status_code = 401
    message = "Not authorized."


class StoreError(LeafDocError):
    status_code = 500

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Server error while {operation}.")
