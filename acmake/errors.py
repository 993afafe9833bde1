class AcmakeError(Exception):
    """Base class for errors that should stop an acmake run."""


class ConfigurationError(AcmakeError):
    """Raised when acmake.toml is missing a value a command needs."""


class RequiredPackageNotFound(AcmakeError):
    """Raised when a required package cannot be resolved by any strategy."""

    def __init__(self, package_name):
        self.package_name = package_name
        super().__init__(f'Could not find package: "{package_name}"')
