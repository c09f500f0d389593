"""
Transactional e-mail for the order lifecycle.
Uses Django's email backend with HTML + plain text templates; sending is
best-effort and never interrupts the operation that triggered it.
"""

from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


class OrderEmailService:
    """Notifications sent when an order is paid or handed to a driver"""

    APP_NAME = 'ShopHub'

    @staticmethod
    def _send(subject, template, context, recipient):
        """
        Render ``emails/<template>.{html,txt}`` and send it to ``recipient``.

        Returns:
            bool: True if sent successfully, False otherwise
        """
        if not recipient:
            logger.info(f"[Email] Skipping '{template}' email: no recipient address")
            return False

        try:
            context = {
                **context,
                'app_name': OrderEmailService.APP_NAME,
                'support_email': settings.DEFAULT_FROM_EMAIL,
            }
            html_message = render_to_string(f'emails/{template}.html', context)
            plain_message = render_to_string(f'emails/{template}.txt', context)

            email_obj = EmailMultiAlternatives(
                subject=subject,
                body=plain_message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[recipient]
            )
            email_obj.attach_alternative(html_message, "text/html")
            email_obj.send(fail_silently=False)
            logger.info(f"[Email] '{template}' email sent to {recipient}")
            return True

        except Exception as e:
            logger.error(f"[Email] Failed to send '{template}' email to {recipient}: {e}")
            return False

    @staticmethod
    def send_payment_confirmation(order):
        return OrderEmailService._send(
            subject=f'Order {order.order_number} confirmed',
            template='order_confirmed',
            context={'order': order, 'customer': order.customer, 'items': list(order.items.all())},
            recipient=order.customer.email,
        )

    @staticmethod
    def send_driver_assignment(order, driver):
        return OrderEmailService._send(
            subject=f'New delivery assigned: {order.order_number}',
            template='driver_assigned',
            context={'order': order, 'driver': driver, 'address': order.delivery_address},
            recipient=driver.email,
        )
