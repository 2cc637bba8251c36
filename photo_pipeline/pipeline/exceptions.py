from typing import ClassVar


class PipelineError(Exception):
    """Base exception for typed pipeline failures.

    ``kind`` is the machine-readable error kind returned to callers.
    """

    kind: ClassVar[str] = "PipelineError"

    def __init__(self, message: str, *, subkind: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.subkind = subkind


class InvalidFileSignatureError(PipelineError):
    """Raised when the leading bytes match no supported image format."""

    kind = "InvalidFileSignature"


class TypeMismatchError(PipelineError):
    """Raised when the declared MIME type disagrees with the detected format."""

    kind = "TypeMismatch"


class FileTooLargeError(PipelineError):
    """Raised when the upload exceeds the ceiling for its format."""

    kind = "FileTooLarge"


class FileTooSmallError(PipelineError):
    """Raised when the upload is below the minimum plausible image size."""

    kind = "FileTooSmall"


class QuotaExceededError(PipelineError):
    """Raised when the upload would push the user past their storage quota."""

    kind = "QuotaExceeded"


class PermissionDeniedError(PipelineError):
    """Raised when the acting user may not attach media to the target."""

    kind = "PermissionDenied"


class DecodeFailureError(PipelineError):
    """Raised when the image cannot be decoded or converted."""

    kind = "DecodeFailure"


class InvalidDimensionsError(PipelineError):
    """Raised when the decoded image is too small or too large in pixels."""

    kind = "InvalidDimensions"


class ModerationRejectedError(PipelineError):
    """Raised when the moderation policy rejects the image. ``subkind`` names the category."""

    kind = "ModerationRejected"


class ModerationServiceUnavailableError(PipelineError):
    """Raised when the classification service is unreachable or times out."""

    kind = "ModerationServiceUnavailable"


class StorageWriteFailureError(PipelineError):
    """Raised when writing to object storage fails after bounded retries."""

    kind = "StorageWriteFailure"


class PersistenceConflictError(PipelineError):
    """Raised when the photo transaction aborts on a constraint or conflict."""

    kind = "PersistenceConflict"


class PipelineCancelledError(PipelineError):
    """Raised when the caller went away between stages."""

    kind = "Cancelled"


class PhotoNotFoundError(PipelineError):
    """Raised when a photo does not exist, is inactive, or belongs to someone else."""

    kind = "PhotoNotFound"


class UploadNotFoundError(PipelineError):
    """Raised when a pre-signed upload was confirmed but no object exists."""

    kind = "UploadNotFound"


class FatalStageError(Exception):
    """Wraps a PipelineError that must halt the run even from an optional stage."""

    def __init__(self, error: PipelineError) -> None:
        super().__init__(str(error))
        self.error = error
