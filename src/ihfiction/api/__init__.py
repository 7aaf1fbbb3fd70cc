"""Public API surface for Python-first interfaces.

The HTTP application lives in `ihfiction.api.app`; it is not re-exported here
because the use-case modules import the contracts from this package.
"""

from ihfiction.api.contracts import ContractModel, Link
from ihfiction.api.python_interface import AuthSession, FictionApiClient

__all__ = [
    "AuthSession",
    "ContractModel",
    "FictionApiClient",
    "Link",
]
