class ReviewAnalysisError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ReviewAnalysisError):
    pass


class IngestionError(ReviewAnalysisError):
    """Upload content was empty or malformed, or the batch could not be stored."""


class InferenceFailure(ReviewAnalysisError):
    """Transport, auth, timeout or malformed-response error from the LLM.

    Never leaves InferenceClient.analyze(); it is converted to the degraded default there.
    """


class PersistenceFailure(ReviewAnalysisError):
    """Writing one review's analysis failed."""

    def __init__(self, review_id: int, cause: Exception):
        super().__init__(f"Could not store analysis for review {review_id}: {cause}")
        self.review_id = review_id
        self.cause = cause


class NotFoundError(ReviewAnalysisError):
    def __init__(self, batch_id: str):
        super().__init__(f"Batch {batch_id} not found")
        self.batch_id = batch_id


class AnalysisInProgressError(ReviewAnalysisError):
    def __init__(self, batch_id: str):
        super().__init__(f"Batch {batch_id} is already being analyzed")
        self.batch_id = batch_id


class InferenceTimeout(InferenceFailure):
    """The transport's own timeout fired before the client's deadline."""
