"""
Account store used by the booking engine to look up organizations.
"""

from dataclasses import dataclass

from django.contrib.auth import get_user_model

from .exceptions import AccountNotFound


@dataclass(frozen=True)
class AccountSummary:
    id: int
    display_name: str
    account_kind: str


class AccountStore:
    """Read-only view over organizations."""

    def __init__(self, model=None):
        self.model = model or get_user_model()

    def exists(self, account_id) -> bool:
        if account_id is None:
            return False
        try:
            return self.model.objects.filter(pk=account_id, is_active=True).exists()
        except (ValueError, TypeError):
            return False

    def get(self, account_id) -> AccountSummary:
        """
        Raises:
            AccountNotFound: If no active organization has this id
        """
        try:
            organization = self.model.objects.get(pk=account_id, is_active=True)
        except (self.model.DoesNotExist, ValueError, TypeError):
            raise AccountNotFound(f"Organization {account_id} not found.")

        return AccountSummary(
            id=organization.pk,
            display_name=organization.display_name,
            account_kind=organization.account_kind,
        )
