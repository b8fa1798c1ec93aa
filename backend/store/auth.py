"""
Staff user lookup and credential checks.

Views depend on the UserRepository interface so the credential store can
change without touching call sites. DatabaseUserRepository is the
default, backed by StaffUser and Django's password hashers.
"""
from django.contrib.auth.hashers import check_password, make_password

from .models import StaffUser


class UserRepository:
    """Interface for finding staff users and checking their passwords."""

    def find_by_username(self, username):
        raise NotImplementedError

    def verify_password(self, user, password) -> bool:
        raise NotImplementedError

    def authenticate(self, username, password):
        """Return the user when the credentials match, otherwise None."""
        if not username or not password:
            return None
        user = self.find_by_username(username)
        if user is None or not self.verify_password(user, password):
            return None
        return user


class DatabaseUserRepository(UserRepository):

    def find_by_username(self, username):
        try:
            return StaffUser.objects.get(username=username.strip().lower(), is_active=True)
        except StaffUser.DoesNotExist:
            return None

    def verify_password(self, user, password) -> bool:
        return check_password(password, user.password)

    def create_user(self, username, password, name, role=StaffUser.Role.CASHIER):
        return StaffUser.objects.create(
            username=username,
            name=name,
            role=role,
            password=make_password(password),
        )


def get_user_repository() -> UserRepository:
    return DatabaseUserRepository()
