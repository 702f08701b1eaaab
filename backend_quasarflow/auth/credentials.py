"""
Login credentials for the demo user directory (AUTH_USERS).

Entries are "username:password:role"; passwords are compared in constant time.
"""

from __future__ import annotations

import hmac


class CredentialStore:
    def __init__(self, entries: list[tuple[str, str, str]]) -> None:
        self._users = {username: (password, role) for username, password, role in entries}

    def authenticate(self, username: str, password: str) -> str | None:
        """Return the user's role, or None if the credentials do not match."""
        stored = self._users.get(username)
        expected, role = stored if stored is not None else ("\x00" * max(len(password), 1), None)
        matches = hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8"))
        if stored is None or not matches:
            return None
        return role

    def __len__(self) -> int:
        return len(self._users)
