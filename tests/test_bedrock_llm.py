from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from wired.utils.bedrock_llm import BedrockLLM, BedrockLLMError
from wired.utils.config import BedrockLLMConfig


def _config(retry_attempts=3):
    return BedrockLLMConfig(region='us-east-1',
                            model_id='test-model',
                            max_tokens=64,
                            temperature=0.7,
                            retry_attempts=retry_attempts,
                            retry_delay=0.0)


def _response(*texts):
    return {'output': {'message': {'role': 'assistant', 'content': [{'text': t} for t in texts]}}}


def _throttle():
    return ClientError({'Error': {'Code': 'ThrottlingException', 'Message': 'slow down'}}, 'Converse')


def test_generate_text_joins_content_blocks():
    client = MagicMock()
    client.converse.return_value = _response('similar', '_to')

    text = BedrockLLM(_config(), client=client).generate_text('system', 'user', temperature=0.0)

    assert text == 'similar_to'
    kwargs = client.converse.call_args.kwargs
    assert kwargs['modelId'] == 'test-model'
    assert kwargs['system'] == [{'text': 'system'}]
    assert kwargs['messages'] == [{'role': 'user', 'content': [{'text': 'user'}]}]
    assert kwargs['inferenceConfig']['temperature'] == 0.0
    assert kwargs['inferenceConfig']['maxTokens'] == 64


@patch('wired.utils.bedrock_llm.time.sleep')
def test_generate_text_retries_client_errors(sleep):
    client = MagicMock()
    client.converse.side_effect = [_throttle(), _response('ok')]

    assert BedrockLLM(_config(), client=client).generate_text('system', 'user') == 'ok'
    assert client.converse.call_count == 2
    assert sleep.call_count == 1


@patch('wired.utils.bedrock_llm.time.sleep')
def test_generate_text_gives_up_after_retry_budget(sleep):
    client = MagicMock()
    client.converse.side_effect = _throttle()

    with pytest.raises(BedrockLLMError):
        BedrockLLM(_config(retry_attempts=2), client=client).generate_text('system', 'user')
    assert client.converse.call_count == 2


def test_unexpected_errors_are_not_retried():
    client = MagicMock()
    client.converse.side_effect = RuntimeError('boom')

    with pytest.raises(BedrockLLMError):
        BedrockLLM(_config(), client=client).generate_text('system', 'user')
    assert client.converse.call_count == 1
