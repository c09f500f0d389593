from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator
from django.utils.text import slugify
from cloudinary.models import CloudinaryField
import uuid

from .media import delete_media


class Category(models.Model):
    """Product categories"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0, help_text="Display order in listings")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'categories'
        ordering = ['sort_order', 'name']
        verbose_name_plural = 'Categories'

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)


class Product(models.Model):
    """Catalog product. ``price`` is the live price; orders capture their own copy."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Current selling price; products without a price cannot be ordered"
    )
    image = CloudinaryField(
        'product_image',
        folder='shophub/products/',
        null=True,
        blank=True,
        transformation=[
            {'width': 800, 'height': 800, 'crop': 'limit'},
            {'quality': 'auto:good'},
        ]
    )
    stock = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def is_orderable(self):
        return self.is_active and self.price is not None

    def get_image_url(self):
        return getattr(self.image, 'url', None) if self.image else None

    def save(self, *args, **kwargs):
        previous_image = None
        if not self._state.adding:
            previous_image = _public_id(
                Product.objects.filter(pk=self.pk).values_list('image', flat=True).first()
            )
        super().save(*args, **kwargs)

        if previous_image and previous_image != _public_id(self.image):
            delete_media(previous_image)

    def delete(self, *args, **kwargs):
        image = _public_id(self.image)
        result = super().delete(*args, **kwargs)
        if image:
            delete_media(image)
        return result


def _public_id(value):
    if not value:
        return None
    return getattr(value, 'public_id', None) or str(value)
