import base64
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from app.services.proof_analysis import (
    analyze_proof, build_image_blocks, parse_analysis, try_analyze_proof
)
from app.utils.errors import AdvisoryServiceError

PNG = 'data:image/png;base64,' + base64.b64encode(b'\x89PNG fake').decode()
PDF = 'data:application/pdf;base64,' + base64.b64encode(b'%PDF').decode()


class FakeMessages:

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


@pytest.fixture
def fake_claude(app, monkeypatch):
    app.config['ANTHROPIC_API_KEY'] = 'test-key'
    messages = FakeMessages()

    class FakeClient:
        def __init__(self, **kwargs):
            self.options = kwargs
            self.messages = messages

    monkeypatch.setattr(anthropic, 'Anthropic', FakeClient)
    return messages


def test_only_image_data_urls_become_blocks():
    blocks = build_image_blocks([PNG, PDF, 'not a data url'])

    assert len(blocks) == 1
    assert blocks[0]['source']['media_type'] == 'image/png'


def test_parse_strips_code_fences():
    text = '```json\n{"paidAmount": 5000, "difference": 1000, "notes": "UPI 123"}\n```'

    result = parse_analysis(text, 6000)

    assert result.to_dict() == {'paid_amount': 5000.0, 'difference': 1000.0, 'notes': 'UPI 123'}


def test_parse_derives_missing_difference():
    result = parse_analysis('{"paidAmount": 12500}', 12000)

    assert float(result.difference) == -500.0


def test_analyze_sends_images_and_expected_total(fake_claude):
    fake_claude.text = '{"paidAmount": 14023.82, "difference": 0, "notes": "Found payment"}'

    result = analyze_proof(14023.82, [PNG])

    assert float(result.paid_amount) == 14023.82
    content = fake_claude.calls[0]['messages'][0]['content']
    assert content[0]['type'] == 'image'
    assert '14023.82' in content[-1]['text']


def test_api_failure_raises_advisory_error(fake_claude):
    request = httpx.Request('POST', 'https://api.anthropic.com/v1/messages')
    fake_claude.error = anthropic.APIConnectionError(request=request)

    with pytest.raises(AdvisoryServiceError):
        analyze_proof(1000, [PNG])


def test_unparseable_reply_raises_advisory_error(fake_claude):
    fake_claude.text = 'I could not read the screenshot'

    with pytest.raises(AdvisoryServiceError):
        analyze_proof(1000, [PNG])


def test_missing_api_key(app):
    app.config['ANTHROPIC_API_KEY'] = ''

    with pytest.raises(AdvisoryServiceError):
        analyze_proof(1000, [PNG])


def test_no_usable_image(fake_claude):
    with pytest.raises(AdvisoryServiceError):
        analyze_proof(1000, [PDF])

    assert fake_claude.calls == []


def test_try_analyze_returns_none_when_unavailable(app):
    app.config['ANTHROPIC_API_KEY'] = ''

    assert try_analyze_proof(1000, [PNG]) is None
