# users/tasks.py
import logging

from celery import shared_task
from django.core.mail import send_mail
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task
def send_password_reset_email(user_id, temp_password):
    """
    Sends the temporary password to the user's email asynchronously.
    """
    from django.contrib.auth import get_user_model
    User = get_user_model()

    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        logger.warning("Password reset email skipped: user %s no longer exists", user_id)
        return

    subject = "Merchant Back-office - Password Reset"
    message = (
        f"Hello {user.first_name or user.email},\n\n"
        f"Your temporary password is: {temp_password}\n\n"
        "Use this password to log in, then you will be prompted to set a new password.\n\n"
        f"Log in at {settings.FRONTEND_BASE_URL}{settings.ACCESS_LOGIN_URL}\n\n"
        "If you did not request this, please contact your admin immediately.\n"
    )
    send_mail(
        subject,
        message,
        settings.DEFAULT_FROM_EMAIL,
        [user.email],
        fail_silently=False,
    )
    logger.info("Temporary password emailed to user %s", user_id)
