"""
Resend API client — transactional email for workflow email steps.
"""
import logging
import requests

from leadflow.exceptions import ProviderError
from leadflow.services.circuit_breaker import get_breaker, CircuitOpenError

logger = logging.getLogger('services.email_sender')


def _post(url, **kwargs):
    """POST that raises on 5xx so the breaker counts provider outages."""
    response = requests.post(url, timeout=10, **kwargs)
    if response.status_code >= 500:
        raise ProviderError('resend', f"HTTP {response.status_code}: {response.text[:200]}",
                            status_code=response.status_code)
    return response


class ResendEmailSender:
    """
    Usage:
        sender = ResendEmailSender(RESEND_API_KEY)
        sender.send_email('Admissions', 'admissions@example.edu', 'ada@example.com', 'Hi', '<p>…</p>')
    """

    def __init__(self, api_key, api_url='https://api.resend.com'):
        self.api_key = api_key
        self.api_url = api_url.rstrip('/')

    def send_email(self, from_name, from_email, to, subject, html, reply_to=None):
        payload = {
            'from': f'{from_name} <{from_email}>',
            'to': [to],
            'subject': subject,
            'html': html,
        }
        if reply_to:
            payload['reply_to'] = reply_to

        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

        try:
            response = get_breaker('resend').call(
                _post, f'{self.api_url}/emails', json=payload, headers=headers,
            )
        except CircuitOpenError as e:
            raise ProviderError('resend', str(e))
        except requests.exceptions.RequestException as e:
            logger.error("Resend request failed: %s", e)
            raise ProviderError('resend', str(e))

        if not response.ok:
            logger.error("Resend rejected email to %s: %d %s", to, response.status_code, response.text[:200])
            raise ProviderError('resend', f"HTTP {response.status_code}: {response.text[:200]}",
                                status_code=response.status_code)

        data = response.json()
        logger.info("Email sent to %s (id=%s)", to, data.get('id'))
        return data
