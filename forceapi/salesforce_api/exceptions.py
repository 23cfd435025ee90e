from forceapi.core.exceptions import (
    ApexTestException,
    ForceApiError,
    MissingCredentials,
    RemoteOperationFailed,
)

__all__ = (
    "ApexTestException",
    "DecodeFailure",
    "EmptyPayload",
    "InvalidSession",
    "MalformedRow",
    "MetadataApiError",
    "MetadataComponentFailure",
    "MissingCredentials",
    "RemoteOperationFailed",
    "ResourceNotFound",
    "SoapFault",
    "TransportFailure",
    "TransportTimeout",
    "UnexpectedStatus",
)


class TransportFailure(ForceApiError):
    """The request could not be sent or no response was received."""

    retriable = True

    def __init__(self, message, cause=None):
        super(TransportFailure, self).__init__(message)
        self.cause = cause


class TransportTimeout(TransportFailure):
    pass


class ResponseError(ForceApiError):
    """A response was received but could not be accepted."""

    def __init__(self, message, response):
        super(ResponseError, self).__init__(message)
        self.response = response

    @property
    def status_code(self):
        return self.response.status_code if self.response is not None else None

    @property
    def body(self):
        return self.response.text if self.response is not None else None


class UnexpectedStatus(ResponseError):
    pass


class ResourceNotFound(UnexpectedStatus):
    pass


class DecodeFailure(ResponseError):
    pass


class EmptyPayload(DecodeFailure):
    pass


class MalformedRow(DecodeFailure):
    def __init__(self, message, response, row_number=None):
        super(MalformedRow, self).__init__(message, response)
        self.row_number = row_number


class MetadataApiError(ResponseError):
    pass


class SoapFault(MetadataApiError):
    def __init__(self, faultcode, faultstring, response):
        super(SoapFault, self).__init__(f"{faultcode}: {faultstring}", response)
        self.faultcode = faultcode
        self.faultstring = faultstring


class InvalidSession(SoapFault):
    pass


class MetadataComponentFailure(RemoteOperationFailed):
    pass
