"""
httpmocker errors
"""


class MockServerError(RuntimeError):
    """Raised when the mock server listener fails to come up."""
