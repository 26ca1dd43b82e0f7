"""Error taxonomy for the gap engine."""


class GapAnalysisError(Exception):
    """Base class for everything the engine raises on purpose."""


class InvalidInput(GapAnalysisError, ValueError):
    """A required request field is blank. The only error surfaced to callers."""

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required field(s): {', '.join(self.fields)}")


class AcquisitionFailure(GapAnalysisError):
    """Timeout, transport error or non-success status from the ranking provider."""


class ClassificationError(GapAnalysisError, ValueError):
    """A single search result item could not be classified (e.g. no domain)."""
