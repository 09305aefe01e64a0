# pytest libs/tests/test_twilio_client.py -q

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from libs.config import Config
from libs.twilio_client import TwilioClient

pytestmark = pytest.mark.unit


@pytest.fixture
def twilio():
    client = TwilioClient(account_sid="AC123", auth_token="token", from_phone="+15550000000")
    client.client = MagicMock()
    return client


def test_missing_configuration_raises(monkeypatch):
    monkeypatch.setattr(Config, "TWILIO_ACCOUNT_SID", None)
    monkeypatch.setattr(Config, "TWILIO_AUTH_TOKEN", None)
    monkeypatch.setattr(Config, "TWILIO_PHONE_NUMBER", None)
    with pytest.raises(ValueError):
        TwilioClient()


def test_send_sms(twilio):
    twilio.client.messages.create.return_value = SimpleNamespace(sid="SM1", to="+353800000222")

    result = twilio.send_sms("+353800000222", "help")

    assert result == {"status": "sent", "sid": "SM1", "to": "+353800000222", "error": None}
    twilio.client.messages.create.assert_called_once_with(
        body="help", from_="+15550000000", to="+353800000222"
    )


def test_send_sms_rejected(twilio):
    twilio.client.messages.create.side_effect = TwilioRestException(400, "/Messages", "Invalid 'To' number")

    result = twilio.send_sms("123", "help")

    assert result["status"] == "failed"
    assert result["sid"] is None
    assert "Invalid 'To' number" in result["error"]
