"""
SMS delivery through Africa's Talking.
Following SRP: only responsible for sending text messages to donors.
"""

import logging

import africastalking
from django.conf import settings

logger = logging.getLogger(__name__)


class SMSService:
    """
    SMS Service using Africa's Talking.
    Singleton Pattern: the SDK is initialized once per process.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self.username = getattr(settings, 'AFRICASTALKING_USERNAME', None)
        self.api_key = getattr(settings, 'AFRICASTALKING_API_KEY', None)
        self.sender_id = getattr(settings, 'AFRICASTALKING_SENDER_ID', None)

        if not self.api_key:
            logger.warning("AfricasTalking API key not configured; SMS disabled.")
            self.sms = None
            return

        try:
            africastalking.initialize(self.username, self.api_key)
            self.sms = africastalking.SMS
            logger.info("AfricasTalking initialized successfully.")
        except Exception as e:
            logger.error(f"Failed to initialize AfricasTalking: {e}")
            self.sms = None

    def send_sms(self, phone_number: str, message: str) -> dict:
        """
        Send an SMS.

        Args:
            phone_number: Phone number in format +91XXXXXXXXXX or 91XXXXXXXXXX
            message: Message to send

        Returns:
            dict with 'success' and 'message'
        """
        if self.sms is None:
            if settings.DEBUG:
                logger.info(f"DEBUG mode: SMS to {phone_number}. Message: {message}")
                return {'success': True, 'message': 'SMS sent (development mode)'}
            return {'success': False, 'message': 'SMS service not configured'}

        if not phone_number.startswith('+'):
            phone_number = f'+{phone_number}'

        sms_params = {
            'message': message,
            'recipients': [phone_number]
        }
        if self.sender_id:
            sms_params['sender_id'] = self.sender_id

        try:
            response = self.sms.send(**sms_params)
        except Exception as e:
            logger.error(f"Error sending SMS to {phone_number}: {e}")
            return {'success': False, 'message': f'Error sending SMS: {e}'}

        logger.info(f"SMS Response: {response}")

        recipients = response.get('SMSMessageData', {}).get('Recipients', [])
        if not recipients:
            return {'success': False, 'message': 'No recipients in response'}

        recipient = recipients[0]
        if recipient.get('statusCode') == 101:
            return {'success': True, 'message': 'SMS sent successfully'}

        logger.error(f"SMS failed: {recipient.get('status')}")
        return {'success': False, 'message': f"SMS failed: {recipient.get('status')}"}
