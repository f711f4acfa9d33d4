"""Exception hierarchy for WhisperKey.

Errors are grouped by how a cycle reacts to them:

- RecoverableError: logged, the cycle is abandoned and the state returns to
  Idle. The next trigger starts a fresh cycle.
- OutputError: logged and additionally shown to the user, since it is
  usually a missing accessibility permission they can grant.
- StartupError: raised while constructing collaborators, before any trigger
  is admitted.
"""


class WhisperKeyError(Exception):
    """Base class for all WhisperKey errors."""


class RecoverableError(WhisperKeyError):
    """A cycle stage failed; abandon the cycle without retrying."""


class RecorderError(RecoverableError):
    """Exception raised for audio device and recording errors."""


class TranscriptionError(RecoverableError):
    """Exception raised for transcription errors."""


class RefinementError(RecoverableError):
    """Exception raised when text refinement fails or returns nothing."""


class OutputError(WhisperKeyError):
    """Typing or clipboard output failed, typically a permissions problem."""


class StartupError(WhisperKeyError):
    """A collaborator could not be initialized."""
