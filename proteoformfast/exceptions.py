"""Module containing custom exceptions."""


class ProteoformError(Exception):
    """Base error class for proteoformfast."""

    _error_code = ""
    _msg = ""
    _detail_msg = ""
    _user_msg = ""

    @property
    def error_code(self):
        return self._error_code

    @property
    def msg(self):
        return self._msg

    @property
    def detail_msg(self):
        return self._detail_msg

    def __init__(self, msg: str = "", detail_msg: str = ""):
        self._user_msg = msg
        if detail_msg:
            self._detail_msg = detail_msg

        super().__init__(self._msg)

    def __str__(self):
        return (
            f"{self._error_code}: {self._msg}\n'{self._user_msg}'\n{self._detail_msg}"
        )


class ConfigurationError(ProteoformError):
    """Raise when a tolerance or threshold is outside its valid domain.

    Raised before a build starts; no community state is touched.
    """

    _error_code = "CONFIGURATION_ERROR"

    _msg = "Invalid relation or clustering parameter."


class DataError(ProteoformError):
    """Raise when an input record is malformed.

    Callers skip the offending record and carry on with the rest.
    """

    _error_code = "DATA_ERROR"

    _msg = "Malformed input record."
