"""
Engine settings — resolved once at startup and passed down explicitly.

Executors never look at the environment: provider clients and defaults arrive
through EngineSettings, which lets tests swap in fakes without patching.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from leadflow import config

logger = logging.getLogger('workflow.settings')


@dataclass
class EngineSettings:
    email_sender: Optional[Any] = None    # anything with send_email(...)
    sms_sender: Optional[Any] = None      # anything with send_sms(to, body)
    max_leads_per_run: int = config.MAX_LEADS_PER_RUN
    default_from_name: str = config.DEFAULT_FROM_NAME
    default_from_email: str = config.DEFAULT_FROM_EMAIL
    default_opt_out_message: str = config.DEFAULT_OPT_OUT_MESSAGE


def build_engine_settings():
    """Build settings from leadflow.config, wiring whichever providers have credentials."""
    from leadflow.services.email_sender import ResendEmailSender
    from leadflow.services.sms_sender import TwilioSmsSender

    email_sender = None
    if config.RESEND_API_KEY:
        email_sender = ResendEmailSender(config.RESEND_API_KEY, api_url=config.RESEND_API_URL)
    else:
        logger.info("RESEND_API_KEY not set, live email steps will fail")

    sms_sender = None
    if config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_PHONE_NUMBER:
        sms_sender = TwilioSmsSender(
            config.TWILIO_ACCOUNT_SID,
            config.TWILIO_AUTH_TOKEN,
            config.TWILIO_PHONE_NUMBER,
            api_url=config.TWILIO_API_URL,
        )
    else:
        logger.info("Twilio credentials not set, live SMS steps will fail")

    return EngineSettings(
        email_sender=email_sender,
        sms_sender=sms_sender,
        max_leads_per_run=config.MAX_LEADS_PER_RUN,
    )
