class PipelineError(Exception):
    """Base class for discovery pipeline errors."""


class InvalidRequest(PipelineError):
    """Search request is missing required fields or names unknown values."""


class QuotaExceeded(PipelineError):
    """Account has used up its monthly discovery allowance."""

    def __init__(self, account_id: str):
        super().__init__(f"Monthly discovery limit reached for account {account_id}")
        self.account_id = account_id


class SourceUnavailable(PipelineError):
    """A source adapter failed or timed out. Recovered inside the pipeline."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class AnalysisDegraded(PipelineError):
    """The analysis capability could not annotate a candidate. Recovered inside the pipeline."""
