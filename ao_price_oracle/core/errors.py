"""Error taxonomy separating fatal startup failures from per-cycle failures."""


class OracleError(Exception):
    """Base class for every error raised by the oracle."""


class ConfigurationError(OracleError):
    """Missing or invalid startup configuration; the process must not start."""


class CycleError(OracleError):
    """Failure confined to a single update cycle."""

    stage = "unknown"

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step


class NotFoundError(CycleError):
    """The ledger index returned no matching record."""

    stage = "fetching"


class FetchError(CycleError):
    """A transport call to the ledger failed or returned a non-success status."""

    stage = "fetching"


class MalformedDataError(CycleError):
    """The ledger payload did not have the expected shape."""

    stage = "fetching"


class SubmissionError(CycleError):
    """Signing or sending the update message failed."""

    stage = "submitting"


class ConfirmationError(CycleError):
    """The message outcome could not be read, or the process reported an error."""

    stage = "confirming"


class ConfirmationAmbiguous(OracleError):
    """The outcome was read but carried no recognizable acknowledgment."""

    def __init__(self, message: str, *, response: dict | None = None) -> None:
        super().__init__(message)
        self.response = response
