"""
auth/errors.py -- Exceptions that cross the auth package boundary.

Authentication and authorization *failures* are never exceptions here: the
session manager returns None and the HTTP layer maps that to 401/403. The
only exception callers must expect is StoreError, which means "the data tier
failed, nothing is known about the caller's auth state" and maps to HTTP 500.
"""


class StoreError(Exception):
    """A credential or session store operation failed (connection, SQL, I/O).

    The message is for logs only. The HTTP layer never echoes it to clients.
    """
