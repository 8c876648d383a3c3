"""Staff sign-in and the per-request session context."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class SessionContext:
    """Who is signed in and the collaborators their requests fetch through."""
    staff_name: str
    store: Any
    http_client: Any = None


def authenticate(store, username, password) -> Optional[str]:
    """Return the staff member's full name when the credentials match."""
    for member in store.get_staff():
        if str(member.get('Username')) == username and str(member.get('Password')) == password:
            return member.get('FullName') or username
    return None
