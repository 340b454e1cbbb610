"""Errors raised by the XS service client."""


class XSServiceError(Exception):
    """A call to the XS service failed.

    Raised for transport failures, HTTP error responses and response
    bodies that are not well-formed XML.
    """


class XSServiceStatusError(XSServiceError):
    """The XS service answered with a non-zero status attribute."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Xml Ret status = {status}")
