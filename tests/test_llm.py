"""Tests for the generation service."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from aw_analyzer.errors import ConfigurationError, InvalidInputError
from aw_analyzer.services.llm import (
    CALENDAR_OBJECT_SCHEMA,
    CalendarObject,
    ModelHandle,
    _parse_json_text,
    generate_structured,
    generate_text,
    get_bedrock_token,
    select_model,
)

OBJ = {'title': 'Refactor', 'summary': 'Reworked the parser.', 'bullets': ['a', 'b']}


class TestSelectModel:
    """Tests for select_model function."""

    def test_openai(self):
        """Test the OpenAI key is picked up."""
        with patch.dict('os.environ', {'OPENAI_API_KEY': 'sk-test'}):
            model = select_model('openai')
        assert model.provider == 'openai'
        assert model.api_key == 'sk-test'

    def test_openai_missing_key(self):
        """Test a missing key is a configuration error."""
        with patch.dict('os.environ', {}, clear=True):
            with pytest.raises(ConfigurationError) as exc:
                select_model('openai')
        assert exc.value.status == 500
        assert 'OPENAI_API_KEY' in str(exc.value)

    def test_gemini_alternate_key(self):
        """Test GEMINI_API_KEY is accepted."""
        with patch.dict('os.environ', {'GEMINI_API_KEY': 'g-key'}, clear=True):
            assert select_model('gemini').api_key == 'g-key'

    def test_bedrock_token(self):
        """Test the bedrock token comes from the token file."""
        with patch('aw_analyzer.services.llm.get_bedrock_token', return_value='jwt'):
            model = select_model('bedrock')
        assert model.provider == 'bedrock'
        assert model.api_key == 'jwt'

    def test_bedrock_missing_token(self):
        """Test a missing token file is a configuration error."""
        with patch('aw_analyzer.services.llm.get_bedrock_token', return_value=None):
            with pytest.raises(ConfigurationError):
                select_model('bedrock')

    def test_invalid_provider(self):
        """Test unknown providers are invalid input."""
        with pytest.raises(InvalidInputError) as exc:
            select_model('claude')
        assert exc.value.status == 400
        assert "'openai', 'gemini', 'bedrock'" in str(exc.value)

    def test_get_bedrock_token(self, tmp_path):
        """Test reading the access token from the token file."""
        token_file = tmp_path / 'token'
        token_file.write_text(json.dumps({'access_token': 'jwt'}))
        with patch('aw_analyzer.services.llm.BEDROCK_TOKEN_FILE', token_file):
            assert get_bedrock_token() == 'jwt'
        with patch('aw_analyzer.services.llm.BEDROCK_TOKEN_FILE', tmp_path / 'missing'):
            assert get_bedrock_token() is None


class TestParseJsonText:
    """Tests for _parse_json_text function."""

    def test_plain(self):
        """Test plain JSON."""
        assert _parse_json_text(json.dumps(OBJ)) == OBJ

    def test_code_fence(self):
        """Test fenced JSON."""
        assert _parse_json_text(f"```json\n{json.dumps(OBJ)}\n```") == OBJ

    def test_surrounding_prose(self):
        """Test an object embedded in prose."""
        assert _parse_json_text(f"Here you go: {json.dumps(OBJ)} Thanks!") == OBJ

    def test_no_json(self):
        """Test text without an object fails."""
        with pytest.raises(json.JSONDecodeError):
            _parse_json_text('no object here')


class TestGenerateText:
    """Tests for generate_text function."""

    @pytest.mark.asyncio
    async def test_openai(self):
        """Test the chat completions request and response."""
        model = ModelHandle('openai', 'gpt-test', 'sk', 'https://api.example/v1')
        response = {'choices': [{'message': {'content': '  summary  '}}]}
        with patch('aw_analyzer.services.llm._post_json', new=AsyncMock(return_value=response)) as mock_post:
            text = await generate_text(model, 'prompt')

        assert text == 'summary'
        url = mock_post.call_args.args[0]
        payload = mock_post.call_args.kwargs['payload']
        assert url == 'https://api.example/v1/chat/completions'
        assert payload['temperature'] == 0.7
        assert payload['messages'] == [{'role': 'user', 'content': 'prompt'}]
        assert 'response_format' not in payload
        assert mock_post.call_args.kwargs['headers']['Authorization'] == 'Bearer sk'

    @pytest.mark.asyncio
    async def test_gemini(self):
        """Test the generateContent request and response."""
        model = ModelHandle('gemini', 'gemini-test', 'g', 'https://gl.example/v1beta')
        response = {'candidates': [{'content': {'parts': [{'text': 'a'}, {'text': 'b'}]}}]}
        with patch('aw_analyzer.services.llm._post_json', new=AsyncMock(return_value=response)) as mock_post:
            text = await generate_text(model, 'prompt')

        assert text == 'ab'
        assert mock_post.call_args.args[0] == 'https://gl.example/v1beta/models/gemini-test:generateContent'
        assert mock_post.call_args.kwargs['headers']['x-goog-api-key'] == 'g'

    @pytest.mark.asyncio
    async def test_bedrock(self):
        """Test the invoke request and response."""
        model = ModelHandle('bedrock', 'claude-x', 'jwt', 'https://proxy.example')
        response = {'content': [{'type': 'text', 'text': 'hello'}]}
        with patch('aw_analyzer.services.llm._post_json', new=AsyncMock(return_value=response)) as mock_post:
            text = await generate_text(model, 'prompt')

        assert text == 'hello'
        assert mock_post.call_args.args[0] == 'https://proxy.example/model/claude-x/invoke'

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        """Test provider failures are not swallowed."""
        import httpx

        model = ModelHandle('openai', 'gpt-test', 'sk', 'https://api.example/v1')
        with patch('aw_analyzer.services.llm._post_json',
                   new=AsyncMock(side_effect=httpx.ConnectError('down'))):
            with pytest.raises(httpx.ConnectError):
                await generate_text(model, 'prompt')


class TestGenerateStructured:
    """Tests for generate_structured function."""

    @pytest.mark.asyncio
    async def test_openai_schema(self):
        """Test the JSON schema response format is requested."""
        model = ModelHandle('openai', 'gpt-test', 'sk', 'https://api.example/v1')
        response = {'choices': [{'message': {'content': json.dumps(OBJ)}}]}
        with patch('aw_analyzer.services.llm._post_json', new=AsyncMock(return_value=response)) as mock_post:
            obj = await generate_structured(model, 'prompt')

        assert obj == CalendarObject(**OBJ)
        payload = mock_post.call_args.kwargs['payload']
        assert payload['temperature'] == 0.3
        assert payload['response_format']['json_schema']['schema'] == CALENDAR_OBJECT_SCHEMA

    @pytest.mark.asyncio
    async def test_bedrock_fenced_output(self):
        """Test fenced JSON from bedrock is parsed."""
        model = ModelHandle('bedrock', 'claude-x', 'jwt', 'https://proxy.example')
        response = {'content': [{'type': 'text', 'text': f"```json\n{json.dumps(OBJ)}\n```"}]}
        with patch('aw_analyzer.services.llm._post_json', new=AsyncMock(return_value=response)):
            obj = await generate_structured(model, 'prompt')
        assert obj.bullets == ['a', 'b']

    @pytest.mark.asyncio
    async def test_missing_field_fails_validation(self):
        """Test objects without bullets are rejected."""
        model = ModelHandle('gemini', 'gemini-test', 'g', 'https://gl.example/v1beta')
        bad = json.dumps({'title': 't', 'summary': 's'})
        response = {'candidates': [{'content': {'parts': [{'text': bad}]}}]}
        with patch('aw_analyzer.services.llm._post_json', new=AsyncMock(return_value=response)):
            with pytest.raises(ValidationError):
                await generate_structured(model, 'prompt')
