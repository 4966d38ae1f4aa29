# clubvote/security/input_validator.py

import re

import bleach

from clubvote.errors import ValidationError

# Input validation and sanitization for user-submitted election data.


class InputValidator:
    def __init__(self):
        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9-]+(\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}$'),
            'voter_code': re.compile(r'^[A-Z0-9]{8}$'),
            'election_code': re.compile(r'^[A-HJ-NP-Z]{2}[0-9]{4}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE),
            'url': re.compile(r'^https?://\S+$', re.IGNORECASE),
        }

    def sanitize_string(self, input_str, max_length=255):
        if not isinstance(input_str, str):
            raise ValidationError("Input must be a string")
        if len(input_str) > max_length:
            input_str = input_str[:max_length]

        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        # Names and titles are stored as plain text
        sanitized = bleach.clean(sanitized, tags=set(), attributes={}, strip=True)
        return sanitized.strip()

    def require_text(self, value, field, max_length=255):
        if value is None:
            raise ValidationError(f"{field} is required")
        cleaned = self.sanitize_string(value, max_length=max_length)
        if not cleaned:
            raise ValidationError(f"{field} is required")
        return cleaned

    def optional_text(self, value, max_length=2000):
        if value is None:
            return None
        return self.sanitize_string(value, max_length=max_length) or None

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email.strip()))

    def validate_voter_code(self, code):
        return isinstance(code, str) and bool(self.patterns['voter_code'].match(code))

    def validate_election_code(self, code):
        return isinstance(code, str) and bool(self.patterns['election_code'].match(code))

    def validate_photo_url(self, url):
        if url is None:
            return None
        if not isinstance(url, str) or not self.patterns['url'].match(url.strip()):
            raise ValidationError("Invalid photo URL")
        return url.strip()

    def normalize_email(self, email):
        if not self.validate_email(email):
            raise ValidationError("Invalid email address")
        return email.strip().lower()

    def validate_candidates(self, candidates, minimum=2):
        """Clean a list of candidate dicts (``name``, optional ``description``/``photoUrl``)."""
        if not isinstance(candidates, (list, tuple)):
            raise ValidationError("Candidates must be a list")
        if len(candidates) < minimum:
            raise ValidationError(f"An election needs at least {minimum} candidates")

        cleaned = []
        for candidate in candidates:
            if isinstance(candidate, str):
                candidate = {'name': candidate}
            if not isinstance(candidate, dict):
                raise ValidationError("Invalid candidate entry")
            cleaned.append({
                'name': self.require_text(candidate.get('name'), 'Candidate name', max_length=100),
                'description': self.optional_text(candidate.get('description')),
                'photo_url': self.validate_photo_url(candidate.get('photoUrl', candidate.get('photo_url'))),
            })
        return cleaned


validator = InputValidator()
