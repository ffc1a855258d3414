"""Exceptions for cascade-config."""


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Error reading or writing configuration file."""

    pass


class PathError(ConfigFileError):
    """Configuration path is missing, a directory, or not readable."""

    pass


class ParseError(ConfigFileError):
    """Configuration source text is not valid INI."""

    pass


class PersistError(ConfigFileError):
    """Local configuration could not be written to disk."""

    pass


class ConfigPermissionError(ConfigFileError, PermissionError):
    """Local configuration file exists but is read-only."""

    pass


class ConfigValidationError(ConfigError):
    """Error validating configuration data."""

    pass


class InvalidValueError(ConfigValidationError, ValueError):
    """Value or key cannot be stored at the requested location."""

    pass


class NotFoundError(ConfigError, KeyError):
    """Requested key does not exist."""

    def __str__(self) -> str:
        # KeyError would render the message with quotes
        return str(self.args[0]) if self.args else ""
