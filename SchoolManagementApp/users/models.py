from django.contrib.auth.models import AbstractUser
from django.db import models

from SchoolManagementApp.core.choices import UserRole

class User(AbstractUser):
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=UserRole.choices)
    display_name = models.CharField(max_length=255, blank=True)
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    @property
    def roster_name(self) -> str:
        """Name shown on class rosters (and matched against external reports)."""
        return self.display_name or self.get_full_name() or self.email
