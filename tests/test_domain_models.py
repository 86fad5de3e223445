"""
Tests for domain models (data structures).
"""

import dataclasses
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.models import (
    Address,
    Attachment,
    ContentEntry,
    DeliveryResult,
    DkimInfo,
    OutboundRequest,
    Personalization,
    TrackingSettings,
)


@pytest.fixture
def dkim_info():
    return DkimInfo(domain='example.com', private_key='AAAABBBB', selector='mcdkim')


class TestAddress:
    """Test Address rendering."""

    def test_with_name(self):
        assert Address(email='a@example.com', name='A').to_dict() == {'name': 'A', 'email': 'a@example.com'}

    def test_without_name(self):
        assert Address(email='a@example.com').to_dict() == {'email': 'a@example.com'}

    def test_immutable(self):
        address = Address(email='a@example.com')

        with pytest.raises(dataclasses.FrozenInstanceError):
            address.email = 'b@example.com'


class TestDkimInfo:
    """Test DkimInfo rendering."""

    def test_flattened_keys(self, dkim_info):
        assert dkim_info.to_dict() == {
            'dkim_domain': 'example.com',
            'dkim_private_key': 'AAAABBBB',
            'dkim_selector': 'mcdkim',
        }

    def test_repr_hides_key(self, dkim_info):
        assert 'AAAABBBB' not in repr(dkim_info)


class TestContentEntry:
    """Test ContentEntry rendering."""

    def test_template_type_omitted(self):
        entry = ContentEntry(content_type='text/html', value='<p>x</p>')

        assert entry.to_dict() == {'type': 'text/html', 'value': '<p>x</p>'}

    def test_template_type_present(self):
        entry = ContentEntry(content_type='text/html', value='x', template_type='mustache')

        assert entry.to_dict()['template_type'] == 'mustache'


class TestAttachment:
    """Test Attachment rendering."""

    def test_base64_content(self):
        attachment = Attachment(filename='invoice.pdf', content=b'%PDF-1.4\n')

        assert attachment.to_dict() == {
            'content': 'JVBERi0xLjQK',
            'filename': 'invoice.pdf',
            'type': 'text/plain',
        }
        assert attachment.size == 9


class TestTrackingSettings:
    """Test TrackingSettings rendering."""

    def test_unset(self):
        assert TrackingSettings().is_set is False

    def test_partial(self):
        settings = TrackingSettings(click_tracking=False)

        assert settings.is_set is True
        assert settings.to_dict() == {'click_tracking': {'enable': False}}


class TestPersonalization:
    """Test Personalization rendering."""

    def test_only_to(self):
        personalization = Personalization(to=[Address(email='b@example.org')])

        assert personalization.to_dict() == {'to': [{'email': 'b@example.org'}]}

    def test_cc_and_bcc(self):
        personalization = Personalization(
            to=[Address(email='b@example.org')],
            cc=[Address(email='c@example.org')],
            bcc=[],
        )

        assert list(personalization.to_dict()) == ['bcc', 'cc', 'to']
        assert personalization.to_dict()['bcc'] == []


class TestOutboundRequest:
    """Test OutboundRequest rendering."""

    def _request(self, dkim_info, **overrides):
        fields = dict(
            from_address=Address(email='alice@example.com', name='Alice'),
            subject='Hello',
            dkim=dkim_info,
            content=[ContentEntry(content_type='text/plain', value='Hi')],
            personalizations=[Personalization(to=[Address(email='bob@example.org')])],
        )
        fields.update(overrides)
        return OutboundRequest(**fields)

    def test_minimal_request(self, dkim_info):
        """Test unset optional fields are omitted and transactional is null."""
        result = self._request(dkim_info).to_dict()

        assert list(result) == [
            'content', 'dkim_domain', 'dkim_private_key', 'dkim_selector',
            'from', 'personalizations', 'subject', 'transactional',
        ]
        assert result['transactional'] is None

    def test_full_request_key_order(self, dkim_info):
        result = self._request(
            dkim_info,
            attachments=[Attachment(filename='a.txt', content=b'a')],
            headers={'X-Tag': 'v'},
            reply_to=Address(email='help@example.com'),
            tracking_settings=TrackingSettings(open_tracking=True),
            transactional=True,
        ).to_dict()

        assert list(result) == [
            'attachments', 'content', 'dkim_domain', 'dkim_private_key', 'dkim_selector',
            'from', 'headers', 'personalizations', 'reply_to', 'subject',
            'tracking_settings', 'transactional',
        ]
        assert result['reply_to'] == {'email': 'help@example.com'}
        assert result['transactional'] is True

    def test_unset_tracking_settings_omitted(self, dkim_info):
        result = self._request(dkim_info, tracking_settings=TrackingSettings()).to_dict()

        assert 'tracking_settings' not in result

    def test_recipients(self, dkim_info):
        request = self._request(dkim_info)

        assert request.recipients == [Address(email='bob@example.org')]


class TestDeliveryResult:
    """Test DeliveryResult."""

    def test_sandbox(self):
        result = DeliveryResult(status_code=200)

        assert result.is_sandbox is True
        assert "sandbox" in repr(result)

    def test_queued(self):
        result = DeliveryResult(status_code=202)

        assert result.is_queued is True
        assert "queued" in repr(result)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
