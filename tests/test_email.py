# =============================================================================
# DocVault - Email Tests
# =============================================================================
"""
Tests for the share-link mailer.
Uses a mocked message class so nothing is actually sent.
"""

import pytest
from datetime import datetime
from unittest.mock import patch

from docvault.services.exceptions import UpstreamFailure
from docvault.utils.email import ShareMailer

EXPIRES = datetime(2030, 1, 1, 12, 1, 0)
URL = 'http://localhost/api/v1/documents/1/access?token=abc'


@pytest.fixture
def mailer(app):
    return ShareMailer(sender='vault@test.com', max_retries=3, retry_base_delay=2)


class TestBuildMessage:

    def test_renders_text_and_html(self, mailer, mock_mail):
        mailer.build_message('guest@example.com', URL, EXPIRES, document_title='Budget')

        kwargs = mock_mail.call_args.kwargs
        assert kwargs['to'] == ['guest@example.com']
        assert kwargs['from_email'] == 'vault@test.com'
        assert kwargs['subject'].startswith('[DocVault]')
        assert URL in kwargs['body']
        assert '2030-01-01 12:01:00 UTC' in kwargs['body']

        html, mimetype = mock_mail.return_value.attach_alternative.call_args.args
        assert mimetype == 'text/html'
        assert 'Budget' in html
        assert 'token=abc' in html

    def test_real_message_object(self, mailer):
        msg = mailer.build_message('guest@example.com', URL, EXPIRES)
        assert msg.to == ['guest@example.com']
        assert msg.alternatives[0][1] == 'text/html'


class TestSend:

    def test_send_success(self, mailer, mock_mail):
        email_id = mailer.send('guest@example.com', URL, EXPIRES)
        assert len(email_id) == 8
        mock_mail.return_value.send.assert_called_once()

    @patch('docvault.utils.email.time.sleep')
    def test_retries_with_backoff(self, mock_sleep, mailer, mock_mail):
        mock_mail.return_value.send.side_effect = [Exception('SMTP busy'), Exception('SMTP busy'), 1]

        mailer.send('guest@example.com', URL, EXPIRES)

        assert mock_mail.return_value.send.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2, 4]

    @patch('docvault.utils.email.time.sleep')
    def test_gives_up_with_upstream_failure(self, mock_sleep, mailer, mock_mail):
        mock_mail.return_value.send.side_effect = Exception('SMTP down')

        with pytest.raises(UpstreamFailure):
            mailer.send('guest@example.com', URL, EXPIRES)
        assert mock_mail.return_value.send.call_count == 3

    def test_template_failure_is_upstream_failure(self, mailer):
        with patch('docvault.utils.email.render_template', side_effect=RuntimeError('boom')):
            with pytest.raises(UpstreamFailure):
                mailer.send('guest@example.com', URL, EXPIRES)

    @patch('docvault.utils.email.time.sleep')
    def test_default_backoff_is_short(self, mock_sleep, app, mock_mail):
        mock_mail.return_value.send.side_effect = Exception('SMTP down')

        with pytest.raises(UpstreamFailure):
            ShareMailer().send('guest@example.com', URL, EXPIRES)
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1]

    def test_at_least_one_attempt(self):
        assert ShareMailer(max_retries=0).max_retries == 1


def test_mailer_is_process_scoped(app, services):
    assert services.issuer.mailer is services.mailer
    assert services.mailer.max_retries == app.config['MAIL_MAX_RETRIES']
