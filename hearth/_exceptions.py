__all__ = ("HearthError", "InstallError", "ConfigurationError")


class HearthError(Exception): ...


class InstallError(HearthError): ...


class ConfigurationError(HearthError): ...
