class LauncherError(Exception):
    pass


class ConfigurationError(LauncherError):
    pass


class StagingError(LauncherError):
    pass


class RenderError(StagingError):
    pass


class GenesisGenerationError(LauncherError):
    pass


class GenesisCommandError(GenesisGenerationError):
    def __init__(self, message: str, exit_code: int, output: str):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class LaunchError(LauncherError):
    pass


class ExecError(LauncherError):
    pass


class HealthCheckTimeout(LauncherError):
    pass


class IdentityFetchError(LauncherError):
    pass


class LaunchAborted(LauncherError):
    pass
