import smtplib

import pytest

from fitgate.mail import (
    DevPrintProvider,
    OutboundEmail,
    SMTPProvider,
    create_email_provider,
    load_email_config,
)


class _FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout):
        self.connection = (host, port, timeout)
        self.calls = []
        self.messages = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    _FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", _FakeSMTP)
    return _FakeSMTP


def _email():
    return OutboundEmail(
        to="buyer@example.com",
        subject="Order received",
        text_body="Thanks",
        html_body="<p>Thanks</p>",
    )


def test_default_provider_is_dev_print():
    config = load_email_config(env={})
    provider = create_email_provider(config)
    assert isinstance(provider, DevPrintProvider)
    assert provider.from_email == "noreply@fitgate.local"
    assert config.notifications_enabled is True
    assert config.smtp_timeout == 10.0
    assert config.smtp_use_ssl is False


def test_unknown_provider_falls_back_to_dev():
    provider = create_email_provider(load_email_config(env={"EMAIL_PROVIDER": "pigeon"}))
    assert isinstance(provider, DevPrintProvider)


def test_smtp_provider_configuration():
    config = load_email_config(
        env={
            "EMAIL_PROVIDER": "SMTP",
            "SMTP_HOST": "mail.example.com",
            "SMTP_PORT": "2525",
            "SMTP_USER": "mailer",
            "SMTP_PASS": "secret",
            "SMTP_TIMEOUT": "0.2",
            "FROM_EMAIL": "orders@example.com",
            "APP_BASE_URL": "https://gym.example.com/",
        }
    )
    provider = create_email_provider(config)
    assert isinstance(provider, SMTPProvider)
    assert provider.host == "mail.example.com"
    assert provider.port == 2525
    assert provider.username == "mailer"
    assert provider.from_email == "orders@example.com"
    assert provider.timeout == 1.0
    assert config.app_base_url == "https://gym.example.com"


def test_port_465_defaults_to_implicit_tls():
    assert load_email_config(env={"SMTP_PORT": "465"}).smtp_use_ssl is True
    assert load_email_config(env={"SMTP_PORT": "465", "SMTP_USE_SSL": "no"}).smtp_use_ssl is False


def test_notifications_can_be_disabled():
    config = load_email_config(env={"ORDER_EMAILS_ENABLED": "off"})
    assert config.notifications_enabled is False


def test_invalid_port_is_rejected():
    with pytest.raises(ValueError):
        load_email_config(env={"SMTP_PORT": "twenty-five"})


def test_smtp_provider_sends_multipart_message(fake_smtp):
    provider = SMTPProvider(
        from_email="orders@example.com",
        host="mail.example.com",
        port=587,
        username="mailer",
        password="secret",
        use_tls=True,
        timeout=5.0,
    )

    provider.deliver(_email())

    (client,) = fake_smtp.instances
    assert client.connection == ("mail.example.com", 587, 5.0)
    assert client.calls == ["starttls", ("login", "mailer", "secret")]
    (message,) = client.messages
    assert message["From"] == "orders@example.com"
    assert message["To"] == "buyer@example.com"
    assert message["Subject"] == "Order received"
    assert [part.get_content_type() for part in message.iter_parts()] == ["text/plain", "text/html"]


def test_smtp_provider_skips_starttls_on_implicit_tls(fake_smtp):
    provider = SMTPProvider(
        from_email="orders@example.com",
        host="mail.example.com",
        port=465,
        use_ssl=True,
    )

    provider.deliver(_email())

    (client,) = fake_smtp.instances
    assert client.calls == []
    assert len(client.messages) == 1


def test_dev_provider_describes_itself():
    provider = DevPrintProvider(from_email="noreply@example.com")
    provider.deliver(_email())
    assert provider.describe() == {"email_provider": "dev", "email_sender": "noreply@example.com"}
