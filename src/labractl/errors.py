"""Exception types raised by labractl components.

Components raise these; only the command layer turns them into a printed
panel and a non-zero exit.
"""


class LabraError(Exception):
    """Base class for every labractl failure."""


class CommandError(LabraError):
    """An external program failed to start or exited non-zero."""

    def __init__(self, program: str, args, returncode: int | None = None, output: str = ""):
        self.program = program
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        cmdline = " ".join([program, *self.args_list])
        if returncode is None:
            message = f"could not run '{cmdline}'"
        else:
            message = f"'{cmdline}' exited with status {returncode}"
        super().__init__(message)


class InstallUnsupportedError(LabraError):
    """No automatic install path exists for this tool on this platform."""


class InvalidProjectNameError(LabraError):
    pass


class PipelineError(LabraError):
    """A required step of the create pipeline failed."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(message)


class ProvisionError(LabraError):
    """The database could not be provisioned."""

    def __init__(self, message: str, diagnostics: str = ""):
        self.diagnostics = diagnostics
        super().__init__(message)


class ManifestError(LabraError):
    """package.json is missing, unreadable or not shaped as expected."""


class LaunchError(LabraError):
    pass
