"""Errors raised while talking to a Cassandra node's management agent."""


class CassMonError(Exception):
    """Base class for every error cassmon reports to the user."""


class ConfigError(CassMonError):
    pass


class ConnectionFailedError(CassMonError):
    """The management agent could not be reached or refused the session."""

    def __init__(self, host, port, cause):
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(
            f"Failed to connect to '{host}:{port}' - {type(cause).__name__}: '{cause}'."
        )


class AuthenticationError(ConnectionFailedError):
    pass


class ConnectionClosedError(CassMonError):
    pass


class MalformedObjectNameError(CassMonError):
    pass


class UnknownMetricError(CassMonError):
    def __init__(self, category, name):
        self.category = category
        self.name = name
        super().__init__(f"Unknown {category} metric: {name}")


class RemoteReadError(CassMonError):
    """The agent answered, but the read itself failed on the remote side."""

    def __init__(self, object_name, attribute, status, error_type, message):
        self.object_name = object_name
        self.attribute = attribute
        self.status = status
        self.error_type = error_type
        target = f"{object_name}/{attribute}" if attribute else object_name
        super().__init__(f"Reading {target} failed ({status} {error_type}): {message}")
