from django.db import models
from django.contrib.auth.models import User
from django.core.validators import RegexValidator, EmailValidator
from core.models import TimeStampedModel


class Donor(TimeStampedModel):
    """
    Donor profile attached to an authenticated user.
    Following SRP: Only responsible for donor contact data.
    """

    phone_validator = RegexValidator(
        regex=r'^91[6-9]\d{9}$',
        message="Phone number must be in format 91XXXXXXXXXX"
    )

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='donor',
        help_text="Authenticated identity this profile belongs to"
    )

    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)

    phone_number = models.CharField(
        max_length=12,
        unique=True,
        validators=[phone_validator],
        db_index=True,
        help_text="Mobile number in format 91XXXXXXXXXX"
    )
    email = models.EmailField(
        blank=True,
        null=True,
        validators=[EmailValidator()],
        help_text="Receipt delivery address"
    )
    country = models.CharField(max_length=100, default='India')

    donor_number = models.CharField(
        max_length=20,
        unique=True,
        db_index=True,
        help_text="Public donor reference printed on receipts"
    )
    is_guest = models.BooleanField(
        default=False,
        help_text="Created by an operator for an offline donation"
    )

    class Meta:
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['is_guest', '-created_at'], name='donor_guest_created_idx'),
        ]
        verbose_name = 'Donor'
        verbose_name_plural = 'Donors'

    def __str__(self):
        return f"{self.full_name} ({self.donor_number})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def contact_email(self):
        """Profile email, falling back to the account email"""
        return self.email or self.user.email or None

    def save(self, *args, **kwargs):
        """Auto-generate the donor number from the last issued one"""
        if not self.donor_number:
            last_donor = Donor.objects.order_by('-id').first()
            if last_donor and last_donor.donor_number[3:].isdigit():
                self.donor_number = 'DNR' + str(int(last_donor.donor_number[3:]) + 1).zfill(6)
            else:
                self.donor_number = 'DNR000001'
        super().save(*args, **kwargs)


def display_name_for(user) -> str:
    """Best human name for a user: donor profile, account name, then username"""
    if user is None:
        return ''
    donor = getattr(user, 'donor', None)
    if donor and donor.full_name:
        return donor.full_name
    return user.get_full_name() or user.username


from .roles import UserRole  # noqa: E402,F401
