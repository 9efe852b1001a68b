class MatrixCIError(Exception):
    pass


class ConfigurationError(MatrixCIError):
    pass


class MatrixParseError(ConfigurationError):
    pass


class GateFetchError(MatrixCIError):
    pass


class ActionInvocationError(MatrixCIError):
    action: str
    exit_code: int | None

    def __init__(self, action: str, message: str, exit_code: int | None = None):
        super().__init__(f'{action}: {message}')
        self.action = action
        self.exit_code = exit_code
