from django.apps import AppConfig


class ProductsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'products'
    verbose_name = 'Catalog'

    def ready(self):
        from .media import configure_cloudinary
        configure_cloudinary()
