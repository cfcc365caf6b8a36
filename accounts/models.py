from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.core.exceptions import ValidationError
import uuid, re
from django.contrib.auth.hashers import make_password, check_password
from django.conf import settings
from django.utils import timezone
from datetime import timedelta

MANAGER_ROLES = ['SUPER_ADMIN', 'ADMIN', 'MANAGER']
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_MINUTES = 30


class CustomUserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)

        pin_code = extra_fields.pop('pin_code', None)

        is_verified = extra_fields.pop('is_verified', False)
        user = self.model(email=email, is_verified=is_verified, **extra_fields)

        if password:
            user.set_password(password)
        elif pin_code:
            # Staff sign in with a PIN only
            user.set_pin(pin_code)
            user.set_unusable_password()
        else:
            raise ValueError('A password or a pin_code is required to create a user.')

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', 'SUPER_ADMIN')

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)

    def managers(self, restaurant=None):
        """Active users holding a manager role, optionally scoped to one restaurant."""
        qs = self.filter(role__in=MANAGER_ROLES, is_active=True)
        if restaurant is not None:
            qs = qs.filter(restaurant=restaurant)
        return qs


class Restaurant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    timezone = models.CharField(max_length=50, default='America/Los_Angeles')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'restaurants'

    def __str__(self):
        return self.name


class CustomUser(AbstractUser):
    ROLE_CHOICES = settings.STAFF_ROLES_CHOICES
    DEPARTMENT_CHOICES = (
        ('BOH', 'Back of House'),
        ('FOH', 'Front of House'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pin_code = models.CharField(max_length=255, unique=True, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    department = models.CharField(max_length=10, choices=DEPARTMENT_CHOICES, blank=True, null=True)
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='staff', null=True, blank=True)
    is_verified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Security fields for account lockout
    failed_login_attempts = models.IntegerField(default=0)
    account_locked_until = models.DateTimeField(null=True, blank=True)
    last_failed_login = models.DateTimeField(null=True, blank=True)
    last_successful_login = models.DateTimeField(null=True, blank=True)

    username = None
    email = models.EmailField(unique=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = CustomUserManager()

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.get_full_name()} - {self.restaurant.name}" if self.restaurant else self.get_full_name()

    @property
    def display_name(self):
        return self.get_full_name() or self.email

    def set_pin(self, raw_pin):
        """Set a 4-digit PIN for staff users with validation."""
        if not self.is_staff_role():
            raise ValidationError("Only staff members can have PIN codes.")

        if not re.match(r'^\d{4}$', str(raw_pin)):
            raise ValidationError("PIN must be exactly 4 digits.")

        self.pin_code = make_password(str(raw_pin))

    def check_pin(self, raw_pin):
        """Check PIN with account lockout protection."""
        if self.is_account_locked():
            return False

        if not self.pin_code:
            return False

        return self._record_attempt(check_password(str(raw_pin), self.pin_code))

    def check_secret(self, raw_secret):
        """Check the user's own PIN, or password when no PIN is set, with lockout protection."""
        if self.is_account_locked():
            return False
        if self.pin_code:
            return self.check_pin(raw_secret)
        if not self.has_usable_password():
            return False
        return self._record_attempt(check_password(str(raw_secret), self.password))

    def _record_attempt(self, is_valid):
        if is_valid:
            self.reset_failed_attempts()
            self.last_successful_login = timezone.now()
            self.save(update_fields=['failed_login_attempts', 'account_locked_until', 'last_successful_login'])
        else:
            self.increment_failed_attempts()
        return is_valid

    def is_staff_role(self):
        """Check if user has a staff role (not admin/owner)."""
        return self.role not in MANAGER_ROLES

    def is_admin_role(self):
        """Check if user has an admin role."""
        return self.role in MANAGER_ROLES

    def is_account_locked(self):
        """Check if account is currently locked."""
        if not self.account_locked_until:
            return False
        return timezone.now() < self.account_locked_until

    def increment_failed_attempts(self):
        """Increment failed attempts and lock the account if necessary."""
        self.failed_login_attempts += 1
        self.last_failed_login = timezone.now()

        if self.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
            self.account_locked_until = timezone.now() + timedelta(minutes=LOCKOUT_MINUTES)

        self.save(update_fields=['failed_login_attempts', 'last_failed_login', 'account_locked_until'])

    def reset_failed_attempts(self):
        """Reset failed attempts after a successful check."""
        self.failed_login_attempts = 0
        self.account_locked_until = None
