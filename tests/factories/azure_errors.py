"""
Azure SDK error builders for tests.
"""

from azure.core.exceptions import HttpResponseError


def http_error(status_code: int, message: str = "service error") -> HttpResponseError:
    """HttpResponseError carrying a status code, as the SDKs raise it."""
    error = HttpResponseError(message=message)
    error.status_code = status_code
    return error
