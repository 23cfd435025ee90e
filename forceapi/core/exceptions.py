class ForceApiException(Exception):
    """ Base class for all forceapi Exceptions """

    pass


class ForceApiUsageError(ForceApiException):
    """ An exception thrown due to improper usage which should be resolvable by proper usage """

    pass


class ForceApiError(ForceApiException):
    """ An exception representing a call that did not complete: the request could not be sent,
    or the response could not be accepted or understood. """

    pass


class ForceApiFailure(ForceApiException):
    """ An exception representing a failure reported by Salesforce for an operation that was
    observed successfully, such as a failed Metadata deployment or an Apex test failure. """

    pass


class MissingCredentials(ForceApiUsageError):
    """ Raised when an access token or instance url is missing. Never reaches the network. """

    pass


class ConfigError(ForceApiException):
    """ Raised when a configuration enounters an error """

    def __init__(self, message=None, config_name=None):
        super(ConfigError, self).__init__(message)
        self.message = message
        self.config_name = config_name

    def __str__(self):
        return f"{self.message} for config {self.config_name}"


class SalesforceCredentialsException(ForceApiException):
    """ Raise when Salesforce credentials are invalid """

    pass


class RemoteOperationFailed(ForceApiFailure):
    """ Raised when a polled long-running operation reached a failed terminal state """

    def __init__(self, message, status=None):
        super(RemoteOperationFailed, self).__init__(message)
        self.status = status


class ApexTestException(RemoteOperationFailed):
    """ Raised when a deployment fails because of an Apex test failure """

    pass


class OperationTimeout(ForceApiException):
    """ Raised by the waiting helpers when an operation is not done in time """

    def __init__(self, message, status=None):
        super(OperationTimeout, self).__init__(message)
        self.status = status
