"""
Users — Authentication Backend

Email + password authentication; soft-deleted and inactive accounts are
refused.

@file users/backends.py
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailBackend(ModelBackend):

    def authenticate(self, request, email=None, password=None, **kwargs):
        email = email or kwargs.get(User.USERNAME_FIELD)
        if email is None or password is None:
            return None
        try:
            user = User.objects.get(email__iexact=email, is_deleted=False)
        except User.DoesNotExist:
            # Same hashing cost for unknown accounts.
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
