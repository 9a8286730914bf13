"""Tests for range analysis routes."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from aw_analyzer.analysis.orchestrator import Counts, RangeAnalysisResult, RangeInfo
from aw_analyzer.errors import ConfigurationError, InvalidInputError, NotFoundError
from aw_analyzer.server import app
from aw_analyzer.services.llm import CalendarObject

from conftest import T0

URL = '/api/analyze-activity/by-range'


@pytest.fixture
def client():
    """Create test client."""
    app.state.db = None
    return TestClient(app)


@pytest.fixture
def result():
    return RangeAnalysisResult(
        range=RangeInfo(start='2024-01-05T00:00:00.000Z', end='2024-01-05T00:30:00.000Z', label='30分'),
        provider='openai',
        counts=Counts(activity_events=3, git_commits=1),
        human_summary='総アクティブ 17m',
        prompt='prompt',
        result='Focused coding.',
        calendar_object=CalendarObject(title='t', summary='s', bullets=['b']),
        calendar_result=None,
    )


class TestHealthEndpoint:
    """Tests for GET /api/health endpoint."""

    def test_health_without_database(self, client):
        """Test health reports a missing database."""
        response = client.get('/api/health')
        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ok'
        assert data['database'] is False

    def test_health_with_database(self, client):
        """Test health reports an open database."""
        app.state.db = MagicMock(is_open=True)
        assert client.get('/api/health').json()['database'] is True


class TestAnalyzeByRangeEndpoint:
    """Tests for POST /api/analyze-activity/by-range endpoint."""

    @patch('aw_analyzer.routes.analysis.run_range_analysis', new_callable=AsyncMock)
    def test_success(self, mock_run, client, result):
        """Test a successful analysis returns the camelCase result."""
        mock_run.return_value = result

        response = client.post(URL, params={'start': '1704412800', 'end': '1704414600'})

        assert response.status_code == 200
        data = response.json()
        assert data['ok'] is True
        assert data['humanSummary'] == '総アクティブ 17m'
        assert data['counts'] == {'activityEvents': 3, 'gitCommits': 1}
        assert data['calendarObject'] == {'title': 't', 'summary': 's', 'bullets': ['b']}
        assert data['xmlPath'] is None

        args = mock_run.call_args
        assert args.args[0] == T0
        assert args.args[2] == 'openai'
        assert args.kwargs['create_calendar'] is False

    @patch('aw_analyzer.routes.analysis.run_range_analysis', new_callable=AsyncMock)
    def test_provider_and_create_flag(self, mock_run, client, result):
        """Test provider is lower-cased and create accepts yes/true/1."""
        mock_run.return_value = result

        client.post(URL, params={
            'start': '2024-01-05T00:00:00Z',
            'end': '2024-01-05T00:30:00Z',
            'provider': 'Gemini',
            'create': 'YES',
        })

        assert mock_run.call_args.args[2] == 'gemini'
        assert mock_run.call_args.kwargs['create_calendar'] is True

    @patch('aw_analyzer.routes.analysis.run_range_analysis', new_callable=AsyncMock)
    def test_create_other_values_false(self, mock_run, client, result):
        """Test unrecognized create values leave the calendar off."""
        mock_run.return_value = result
        client.post(URL, params={'start': '1704412800', 'end': '1704414600', 'create': 'on'})
        assert mock_run.call_args.kwargs['create_calendar'] is False

    @pytest.mark.parametrize('params', [
        {},
        {'start': '1704412800'},
        {'start': 'yesterday', 'end': '1704414600'},
    ])
    @patch('aw_analyzer.routes.analysis.run_range_analysis', new_callable=AsyncMock)
    def test_missing_or_invalid_dates(self, mock_run, params, client):
        """Test bad dates are rejected before analysis."""
        response = client.post(URL, params=params)

        assert response.status_code == 400
        assert "Missing or invalid 'start'/'end'" in response.json()['detail']
        mock_run.assert_not_called()

    @pytest.mark.parametrize('error,status', [
        (InvalidInputError("'end' must be after 'start'"), 400),
        (InvalidInputError("Invalid provider. Use one of 'openai', 'gemini', 'bedrock'"), 400),
        (NotFoundError('No activity or commit data found for the given range'), 404),
        (ConfigurationError('Missing OPENAI_API_KEY for OpenAI provider'), 500),
    ])
    @patch('aw_analyzer.routes.analysis.run_range_analysis', new_callable=AsyncMock)
    def test_analysis_errors_mapped(self, mock_run, error, status, client):
        """Test analysis errors keep their status and message."""
        mock_run.side_effect = error

        response = client.post(URL, params={'start': '1704414600', 'end': '1704412800'})

        assert response.status_code == status
        assert response.json()['detail'] == str(error)

    @patch('aw_analyzer.routes.analysis.run_range_analysis', new_callable=AsyncMock)
    def test_unexpected_error(self, mock_run, client):
        """Test unexpected errors become a generic 500."""
        mock_run.side_effect = RuntimeError('socket closed')

        response = client.post(URL, params={'start': '1704412800', 'end': '1704414600'})

        assert response.status_code == 500
        assert response.json()['detail'] == 'Failed to analyze activity data for the given range'
