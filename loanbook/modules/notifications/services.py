from typing import Optional
import logging

from loanbook.core.config import Settings, settings as default_settings
from loanbook.core.security import mask_email, mask_phone
from loanbook.modules.auth.models import Otp, OtpMethod

logger = logging.getLogger(__name__)


class OtpDispatcher:
    """
    Delivers OTP codes to the user.
    Phone codes go out by SMS via Twilio, email codes via SendGrid.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    async def dispatch(self, otp: Otp) -> bool:
        """Send the code over the OTP's channel; returns False when nothing was sent"""
        try:
            if otp.method == OtpMethod.PHONE:
                return self._send_sms(otp)
            return self._send_email(otp)
        except Exception as e:
            logger.error(f"OTP {otp.id} delivery over {otp.method.value} failed: {str(e)}")
            return False

    def _send_sms(self, otp: Otp) -> bool:
        """Send SMS via Twilio"""
        if not self.settings.TWILIO_ACCOUNT_SID or not self.settings.TWILIO_AUTH_TOKEN:
            logger.warning("Twilio not configured, skipping SMS")
            return False

        from twilio.rest import Client
        client = Client(self.settings.TWILIO_ACCOUNT_SID, self.settings.TWILIO_AUTH_TOKEN)
        message = client.messages.create(
            body=self._body(otp),
            from_=self.settings.TWILIO_PHONE_NUMBER,
            to=otp.identifier
        )
        logger.info(f"OTP {otp.id} sent by SMS to {mask_phone(otp.identifier)}: {message.sid}")
        return True

    def _send_email(self, otp: Otp) -> bool:
        """Send Email via SendGrid"""
        if not self.settings.SENDGRID_API_KEY:
            logger.warning("SendGrid not configured, skipping email")
            return False

        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=self.settings.SENDGRID_FROM_EMAIL,
            to_emails=otp.identifier,
            subject=f"Your {self.settings.APP_NAME} verification code",
            html_content=f"<p>{self._body(otp)}</p>"
        )
        sg = SendGridAPIClient(self.settings.SENDGRID_API_KEY)
        sg.send(message)
        logger.info(f"OTP {otp.id} sent by email to {mask_email(otp.identifier)}")
        return True

    def _body(self, otp: Otp) -> str:
        return (
            f"Your {self.settings.APP_NAME} verification code is {otp.code}. "
            f"It expires in {self.settings.OTP_EXPIRY_MINUTES} minutes."
        )
