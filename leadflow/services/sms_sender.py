"""
Twilio Messages API client — outbound SMS for workflow sms steps.
"""
import logging
import requests

from leadflow.exceptions import ProviderError
from leadflow.services.circuit_breaker import get_breaker, CircuitOpenError

logger = logging.getLogger('services.sms_sender')


def _post(url, **kwargs):
    response = requests.post(url, timeout=10, **kwargs)
    if response.status_code >= 500:
        raise ProviderError('twilio', f"HTTP {response.status_code}: {response.text[:200]}",
                            status_code=response.status_code)
    return response


class TwilioSmsSender:
    """Sends from the configured Twilio number using Basic auth (sid:token)."""

    def __init__(self, account_sid, auth_token, from_number, api_url='https://api.twilio.com/2010-04-01'):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_url = api_url.rstrip('/')

    @property
    def messages_url(self):
        return f'{self.api_url}/Accounts/{self.account_sid}/Messages.json'

    def send_sms(self, to, body):
        # requests form-encodes `data`
        form = {'To': to, 'From': self.from_number, 'Body': body}
        try:
            response = get_breaker('twilio').call(
                _post, self.messages_url, data=form, auth=(self.account_sid, self.auth_token),
            )
        except CircuitOpenError as e:
            raise ProviderError('twilio', str(e))
        except requests.exceptions.RequestException as e:
            logger.error("Twilio request failed: %s", e)
            raise ProviderError('twilio', str(e))

        if not response.ok:
            try:
                message = response.json().get('message') or response.text[:200]
            except ValueError:
                message = response.text[:200]
            logger.error("Twilio rejected SMS to %s: %d %s", to, response.status_code, message)
            raise ProviderError('twilio', f"HTTP {response.status_code}: {message}",
                                status_code=response.status_code)

        data = response.json()
        logger.info("SMS sent to %s (sid=%s)", to, data.get('sid'))
        return data
