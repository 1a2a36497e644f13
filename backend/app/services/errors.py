"""Errors raised by the task form and list logic.

Each error carries the message shown to the user and the HTTP status
the API answers with.
"""


class TaskFlowError(Exception):
    """Base exception for task flow errors."""

    code = "task_error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class TaskValidationError(TaskFlowError):
    """Raised when input is rejected before any store call."""

    code = "validation_error"
    status_code = 400


class TaskNotFoundError(TaskFlowError):
    """Raised when the requested task does not exist."""

    code = "not_found"
    status_code = 404


class ConfirmationRequiredError(TaskFlowError):
    """Raised when a destructive action was not confirmed by the user."""

    code = "confirmation_required"
    status_code = 409

    def __init__(self, prompt: str):
        super().__init__(prompt, details={"prompt": prompt})
        self.prompt = prompt


class FormStateError(TaskFlowError):
    """Raised when an action is not allowed in the form's current state."""

    code = "invalid_form_state"
    status_code = 409


class ImageStorageError(TaskFlowError):
    """Raised when the blob store rejects a call."""

    code = "storage_error"
    status_code = 502


class ImageUploadError(ImageStorageError):
    """Raised when an image upload or its public URL lookup fails."""

    code = "upload_error"


class DatabaseError(TaskFlowError):
    """Raised when the record store rejects a call."""

    code = "database_error"
    status_code = 500


class UnexpectedTaskError(TaskFlowError):
    """Raised for any other failure inside a flow."""

    code = "unexpected_error"
    status_code = 500
