"""Tests for the human summary and prompt builders."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from aw_analyzer.analysis.prompt import (
    build_calendar_object_prompt,
    build_human_summary,
    build_prompt,
)
from aw_analyzer.analysis.stats import compute_stats

from conftest import T0, make_event


@pytest.fixture
def stats():
    with patch.dict('os.environ', {'LOCAL_DEV_PROJECT_PATTERN': 'shop'}):
        return compute_stats([
            make_event('currentwindow', {'app': 'Cursor', 'title': 'a.py — shop'}, duration=600, event_id=1),
            make_event('web.tab.current', {'url': 'https://github.com/x', 'title': 'PR'},
                       offset=600, duration=120, event_id=2),
            make_event('currentwindow', {'app': 'Slack', 'title': 'x'}, offset=720, duration=60, event_id=3),
        ], 1_800_000)


@pytest.fixture(autouse=True)
def tokyo_reports():
    with patch.dict('os.environ', {'REPORT_TIMEZONE': 'Asia/Tokyo'}):
        yield


class TestHumanSummary:
    """Tests for build_human_summary function."""

    def test_japanese(self, stats):
        """Test the Japanese digest lines."""
        lines = build_human_summary(stats, 'ja').split('\n')
        assert lines[0] == '総アクティブ 13m（上位カテゴリ: coding 10m, browsing 2m, communication 1m）'
        assert lines[1] == '上位アプリ: Cursor 10m, unknown 2m, Slack 1m'
        assert lines[2] == 'プロジェクト: shop 10m'
        assert lines[3] == 'ドメイン: github.com 2m'
        assert lines[4] == '最長フォーカス: coding 10m'
        assert lines[5] == '切替: カテゴリ 2回 / アプリ 2回 (10分あたり 0.7)'
        assert lines[6] == 'ローカル開発: 10m'

    def test_english(self, stats):
        """Test the English digest lines."""
        text = build_human_summary(stats, 'en')
        assert text.startswith('Total active 13m (top categories: coding 10m')
        assert 'Longest focus: coding 10m' in text
        assert 'Switches: 2 category / 2 app (0.7 per 10 min)' in text
        assert 'Local development: 10m' in text

    def test_empty_stats(self):
        """Test a digest for an empty range."""
        text = build_human_summary(compute_stats([], 1_800_000), 'ja')
        assert '最長フォーカス: -' in text
        assert 'ローカル開発' not in text


class TestPrompts:
    """Tests for build_prompt and build_calendar_object_prompt."""

    def test_prompt_contains_inputs(self):
        """Test the analysis prompt embeds the range, digest and document."""
        prompt = build_prompt(T0, T0 + timedelta(minutes=30), '30分', 'DIGEST', '<stats/>', 'ja')
        assert '2024/01/05 09:00:00 ～ 2024/01/05 09:30:00 (Asia/Tokyo)' in prompt
        assert '時間範囲: 30分' in prompt
        assert 'DIGEST' in prompt
        assert '<stats/>' in prompt
        assert '300文字程度' in prompt

    def test_english_prompt(self):
        """Test the English analysis prompt."""
        prompt = build_prompt(T0, T0 + timedelta(minutes=30), '30m', 'DIGEST', '<stats/>', 'en')
        assert 'about 300 characters' in prompt
        assert 'Range: 30m' in prompt

    def test_deterministic(self):
        """Test identical inputs give identical prompts."""
        args = (T0, T0 + timedelta(hours=1), '1時間', 'd', '<x/>', 'ja')
        assert build_prompt(*args) == build_prompt(*args)
        assert build_calendar_object_prompt(*args) == build_calendar_object_prompt(*args)

    def test_calendar_object_prompt_fields(self):
        """Test the calendar prompt asks for title, summary and bullets."""
        for language in ('ja', 'en'):
            prompt = build_calendar_object_prompt(T0, T0 + timedelta(minutes=30), '30m', 'd', '<x/>', language)
            assert '- title:' in prompt
            assert '- summary:' in prompt
            assert '- bullets:' in prompt
            assert '<x/>' in prompt

    def test_language_from_env(self):
        """Test REPORT_LANGUAGE selects the template."""
        with patch.dict('os.environ', {'REPORT_LANGUAGE': 'en'}):
            prompt = build_prompt(T0, T0 + timedelta(minutes=30), '30m', 'd', '<x/>')
        assert prompt.startswith('You are a productivity advisor')
