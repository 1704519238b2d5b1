"""Error taxonomy.

Every failure the CLI reports maps to one of three outcomes, each with its own
exit code:

    configuration  (2): a required parameter, credential or tool is missing
    precondition   (3): the operator must change the mode or the destination
    operational    (1): an external tool failed or produced the wrong layout
"""

EXIT_OPERATIONAL = 1
EXIT_CONFIGURATION = 2
EXIT_PRECONDITION = 3


class ClawbackError(Exception):
    exit_code = EXIT_OPERATIONAL

    def __init__(self, message, destination=None):
        super().__init__(message)
        self.destination = destination


class ConfigurationError(ClawbackError):
    exit_code = EXIT_CONFIGURATION


class PreconditionViolation(ClawbackError):
    exit_code = EXIT_PRECONDITION


class DestinationNotEmpty(PreconditionViolation):
    pass


class DestinationMissing(PreconditionViolation):
    pass


class EngineFailure(ClawbackError):
    exit_code = EXIT_OPERATIONAL


class RestoreEngineFailure(EngineFailure):
    pass


class DeployFailure(EngineFailure):
    pass


class LayoutMismatch(ClawbackError):
    exit_code = EXIT_OPERATIONAL


class UnexpectedSnapshotLayout(LayoutMismatch):
    pass
