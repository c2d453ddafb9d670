"""
Centralized configuration — all env vars and engine constants.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Resend (email) ────────────────────────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_API_URL = os.getenv('RESEND_API_URL', 'https://api.resend.com')

# ── Twilio (SMS) ──────────────────────────────────────────────────────────────
TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')
TWILIO_API_URL = 'https://api.twilio.com/2010-04-01'

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Auth ─────────────────────────────────────────────────────────────────────
API_TOKEN = os.getenv('API_TOKEN')

# ── Engine ────────────────────────────────────────────────────────────────────
MAX_LEADS_PER_RUN = int(os.getenv('MAX_LEADS_PER_RUN', '1000'))
RUN_LOCK_TIMEOUT = int(os.getenv('RUN_LOCK_TIMEOUT', '900'))        # seconds a run lock lives
RUN_LOCK_WAIT = float(os.getenv('RUN_LOCK_WAIT', '5'))              # seconds to wait for a held lock
SCHEDULER_BATCH_SIZE = int(os.getenv('SCHEDULER_BATCH_SIZE', '500'))
SCHEDULER_INTERVAL = int(os.getenv('SCHEDULER_INTERVAL', '60'))
SCHEDULER_RETRY_DELAY = int(os.getenv('SCHEDULER_RETRY_DELAY', '3600'))  # seconds before a failed step is retried

DEFAULT_FROM_NAME = 'Notifications'
DEFAULT_FROM_EMAIL = 'onboarding@resend.dev'
DEFAULT_OPT_OUT_MESSAGE = 'Reply STOP to unsubscribe'

# ── Step types ────────────────────────────────────────────────────────────────
STEP_TYPES = [
    'trigger',
    'email',
    'sms',
    'wait',
    'condition',
    'update-lead',
    'create-task',
    'assign-advisor',
    'internal-notification',
    'end-workflow',
]

# ── Enrollment status values ──────────────────────────────────────────────────
ENROLLMENT_STATUSES = [
    'active',
    'completed',
]
