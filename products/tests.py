from decimal import Decimal
from unittest.mock import patch

from cloudinary.exceptions import Error as CloudinaryError
from django.test import TestCase, override_settings

from .media import configure_cloudinary, delete_media
from .models import Category, Product


class CatalogModelTestCase(TestCase):

    def test_category_slug_is_generated(self):
        category = Category.objects.create(name='Hot Drinks')
        self.assertEqual(category.slug, 'hot-drinks')

    def test_orderable_requires_price_and_active(self):
        product = Product.objects.create(name='Mystery box')
        self.assertFalse(product.is_orderable)

        product.price = Decimal('4.00')
        self.assertTrue(product.is_orderable)

        product.is_active = False
        self.assertFalse(product.is_orderable)

    @patch('products.models.delete_media')
    def test_replaced_image_is_removed_from_storage(self, delete):
        product = Product.objects.create(name='Coffee', price=Decimal('10.00'), image='shophub/products/old')
        delete.assert_not_called()

        product = Product.objects.get(pk=product.pk)
        product.image = 'shophub/products/new'
        product.save()
        delete.assert_called_once_with('shophub/products/old')

    @patch('products.models.delete_media')
    def test_unchanged_image_is_kept(self, delete):
        product = Product.objects.create(name='Coffee', price=Decimal('10.00'), image='shophub/products/same')
        product = Product.objects.get(pk=product.pk)
        product.stock = 5
        product.save()
        delete.assert_not_called()

    @patch('products.models.delete_media')
    def test_deleting_product_removes_image(self, delete):
        product = Product.objects.create(name='Coffee', price=Decimal('10.00'), image='shophub/products/img')
        Product.objects.get(pk=product.pk).delete()
        delete.assert_called_once_with('shophub/products/img')


class MediaHelpersTestCase(TestCase):

    @patch('products.media.cloudinary.uploader.destroy')
    def test_delete_media(self, destroy):
        destroy.return_value = {'result': 'ok'}
        self.assertTrue(delete_media('shophub/products/img'))
        destroy.assert_called_once_with('shophub/products/img', invalidate=True)

    @patch('products.media.cloudinary.uploader.destroy')
    def test_delete_media_failure_is_not_raised(self, destroy):
        destroy.side_effect = CloudinaryError('unreachable')
        self.assertFalse(delete_media('shophub/products/img'))

        destroy.side_effect = None
        destroy.return_value = {'result': 'not found'}
        self.assertFalse(delete_media('shophub/products/img'))

    def test_delete_media_without_id(self):
        self.assertFalse(delete_media(None))

    @override_settings(CLOUDINARY_STORAGE={'CLOUD_NAME': '', 'API_KEY': '', 'API_SECRET': ''})
    def test_configure_without_credentials(self):
        self.assertFalse(configure_cloudinary())

    @override_settings(CLOUDINARY_STORAGE={'CLOUD_NAME': 'demo', 'API_KEY': 'key', 'API_SECRET': 'secret'})
    @patch('products.media.cloudinary.config')
    def test_configure_with_credentials(self, config):
        self.assertTrue(configure_cloudinary())
        config.assert_called_once_with(cloud_name='demo', api_key='key', api_secret='secret', secure=True)
