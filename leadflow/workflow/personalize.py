"""
Merge-field substitution for outbound content.

Templates use {{token}} placeholders. Recognized tokens are replaced with lead
fields (missing fields render as ''); anything else is left exactly as written
so authors can spot typos in previews.
"""
import re

_TOKEN_RE = re.compile(r'\{\{(\w+)\}\}')


def _field(lead, name):
    if isinstance(lead, dict):
        value = lead.get(name)
    else:
        value = getattr(lead, name, None)
    return '' if value is None else str(value)


def _lead_name(lead):
    return f"{_field(lead, 'first_name')} {_field(lead, 'last_name')}".strip()


# token → resolver(lead)
TOKENS = {
    'firstName':   lambda lead: _field(lead, 'first_name'),
    'lastName':    lambda lead: _field(lead, 'last_name'),
    'email':       lambda lead: _field(lead, 'email'),
    'phone':       lambda lead: _field(lead, 'phone'),
    'leadName':    _lead_name,
    'programName': lambda lead: _field(lead, 'program_interest'),
    'city':        lambda lead: _field(lead, 'city'),
    'country':     lambda lead: _field(lead, 'country'),
    'leadId':      lambda lead: _field(lead, 'id'),
}


def personalize(template, lead):
    """Render a template against a lead (ORM object or dict)."""
    if not template:
        return ''

    def _sub(match):
        resolver = TOKENS.get(match.group(1))
        if resolver is None:
            return match.group(0)
        return resolver(lead)

    return _TOKEN_RE.sub(_sub, str(template))
