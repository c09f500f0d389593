"""
Cart utilities: the per-customer cart aggregate and the checkout snapshot
"""
from dataclasses import dataclass
from decimal import Decimal
import logging

from django.db.models import F

from ShopHub.exceptions import NotFoundError, ValidationError
from order.models import Cart, CartItem

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 10000


@dataclass(frozen=True)
class CartLine:
    """A cart line frozen at checkout time"""
    product: object
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(Decimal('0.01'))


class CartCalculations:
    """Helper class for cart calculations"""

    @staticmethod
    def validate_quantity(quantity) -> int:
        """Coerce ``quantity`` to a positive int or raise ValidationError"""
        if isinstance(quantity, bool):
            raise ValidationError('Quantity must be a positive integer')
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError('Quantity must be a positive integer')
        if quantity < 1:
            raise ValidationError('Quantity must be at least 1')
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f'Quantity cannot exceed {MAX_LINE_QUANTITY}')
        return quantity

    @staticmethod
    def get_cart_subtotal(cart) -> Decimal:
        return Decimal(cart.subtotal).quantize(Decimal('0.01'))


class CartItemHelper:
    """Helper methods for cart item serialization"""

    @staticmethod
    def get_item_details(cart_item: CartItem) -> dict:
        product = cart_item.product
        return {
            'id': str(cart_item.id),
            'product_id': str(product.id),
            'product_name': product.name,
            'image_url': product.get_image_url(),
            'quantity': cart_item.quantity,
            'unit_price': str(product.price) if product.price is not None else None,
            'total_price': (
                str((product.price * cart_item.quantity).quantize(Decimal('0.01')))
                if product.price is not None else None
            ),
            'is_available': product.is_orderable,
        }


class CartService:
    """High-level cart operations service"""

    @staticmethod
    def get_cart(user) -> Cart:
        """The customer's cart, created on first access"""
        cart, created = Cart.objects.get_or_create(customer=user)
        if created:
            logger.info(f'[Cart] Created cart for user {user.pk}')
        return cart

    @staticmethod
    def add_to_cart(user, product, quantity=1) -> CartItem:
        """
        Add ``quantity`` of ``product``; if the product is already in the cart
        its quantity is incremented rather than a second line created.
        """
        quantity = CartCalculations.validate_quantity(quantity)
        if not product.is_active:
            raise ValidationError('Product is not available')

        cart = CartService.get_cart(user)
        cart_item, created = CartItem.objects.get_or_create(
            cart=cart,
            product=product,
            defaults={'quantity': quantity},
        )
        if not created:
            merged = CartItem.objects.filter(
                pk=cart_item.pk, quantity__lte=MAX_LINE_QUANTITY - quantity
            ).update(quantity=F('quantity') + quantity)
            if not merged:
                raise ValidationError(f'Quantity cannot exceed {MAX_LINE_QUANTITY} per product')
            cart_item.refresh_from_db()

        logger.info(
            f'[Cart] User {user.pk} added {quantity} x {product.pk} '
            f'(line quantity now {cart_item.quantity})'
        )
        return cart_item

    @staticmethod
    def remove_from_cart(user, product_id):
        """Remove the line holding ``product_id``"""
        cart = CartService.get_cart(user)
        deleted, _ = CartItem.objects.filter(cart=cart, product_id=product_id).delete()
        if not deleted:
            raise NotFoundError('Product is not in the cart')
        return True

    @staticmethod
    def clear_cart(user) -> int:
        """Empty the cart. Safe to call repeatedly; returns the number of lines removed."""
        cart = CartService.get_cart(user)
        deleted, _ = cart.items.all().delete()
        if deleted:
            logger.info(f'[Cart] Cleared {deleted} line(s) from cart of user {user.pk}')
        return deleted

    @staticmethod
    def snapshot_cart(cart) -> list:
        """
        Freeze every line at its current catalog price.

        Raises ValidationError when the cart is empty or any line refers to a
        product that is inactive or has no price.
        """
        items = list(cart.items.select_related('product'))
        if not items:
            raise ValidationError('Cart is empty')

        lines = []
        for item in items:
            product = item.product
            if not product.is_active:
                raise ValidationError(f'Product "{product.name}" is no longer available')
            if product.price is None:
                raise ValidationError(f'Product "{product.name}" has no price')
            lines.append(CartLine(product=product, quantity=item.quantity, unit_price=product.price))
        return lines

    @staticmethod
    def get_cart_summary(cart) -> dict:
        items = cart.items.select_related('product')
        return {
            'id': str(cart.id),
            'items_count': cart.items_count,
            'subtotal': str(CartCalculations.get_cart_subtotal(cart)),
            'items': [CartItemHelper.get_item_details(item) for item in items],
        }
