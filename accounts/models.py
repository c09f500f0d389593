from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.utils import timezone
from cloudinary.models import CloudinaryField
import uuid


class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email must be set')

        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.ROLE_SUPERADMIN)

        return self.create_user(email, password, **extra_fields)

    def drivers(self):
        return self.filter(role=User.ROLE_DRIVER)


class User(AbstractBaseUser, PermissionsMixin):
    ROLE_USER = 'user'
    ROLE_ADMIN = 'admin'
    ROLE_SUPERADMIN = 'superadmin'
    ROLE_DRIVER = 'driver'

    ROLE_CHOICES = (
        (ROLE_USER, 'User'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_SUPERADMIN, 'Super Admin'),
        (ROLE_DRIVER, 'Driver'),
    )
    ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPERADMIN)

    STATUS_CHOICES = (
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('suspended', 'Suspended'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=255, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')

    avatar = CloudinaryField(
        'avatar',
        folder='shophub/users/avatars/',
        null=True,
        blank=True,
    )

    # Driver facet
    is_available = models.BooleanField(
        default=True,
        help_text='Drivers only: whether the driver can take new deliveries'
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)

    date_joined = models.DateTimeField(default=timezone.now)
    last_login = models.DateTimeField(blank=True, null=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.email} ({self.role})"

    @property
    def is_driver(self):
        return self.role == self.ROLE_DRIVER

    @property
    def is_admin_role(self):
        return self.role in self.ADMIN_ROLES

    @property
    def assigned_deliveries(self):
        """Orders currently assigned to this driver, derived from the order side."""
        return self.deliveries.all()

    @property
    def order_history(self):
        return self.orders.all()
