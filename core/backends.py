"""
Authentication backend for email-based login.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

Organization = get_user_model()


class EmailBackend(ModelBackend):
    """
    Lets organizations log in with their email address.

    Federated accounts carry an unusable password, so they never authenticate
    here; they sign in through their identity provider.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        """
        Authenticate an organization by email and password.

        Args:
            request: HTTP request object
            username: Email address (named username for compatibility)
            password: Account password

        Returns:
            Organization if authentication succeeded, None otherwise
        """
        email = kwargs.get('email', username)

        if email is None or password is None:
            return None

        try:
            organization = Organization.objects.get(email__iexact=email)
        except Organization.DoesNotExist:
            # Run the default password hasher once to reduce the timing
            # difference between an existing and a nonexistent account
            Organization().set_password(password)
            return None

        if organization.is_federated():
            return None

        if organization.check_password(password) and self.user_can_authenticate(organization):
            return organization

        return None

    def get_user(self, user_id):
        try:
            organization = Organization.objects.get(pk=user_id)
        except Organization.DoesNotExist:
            return None
        return organization if self.user_can_authenticate(organization) else None
