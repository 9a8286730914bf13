"""Prompt construction for the two generation calls.

Both prompts are pure functions of their inputs. Templates exist for
Japanese (default) and English, selected by REPORT_LANGUAGE.
"""

from datetime import datetime

from ..config import get_report_language, get_report_timezone
from .format import format_datetime_for_prompt, format_duration
from .stats import Stats, format_kv_list, top_n

# Number of entries per dimension in the human summary
SUMMARY_TOP_N = 3


def build_human_summary(stats: Stats, language: str | None = None) -> str:
    """Short multi-line digest of the statistics."""
    language = language or get_report_language()
    top_cats = format_kv_list(top_n(stats.by_category, SUMMARY_TOP_N))
    top_apps = format_kv_list(top_n(stats.by_app, SUMMARY_TOP_N))
    top_projects = format_kv_list(top_n(stats.by_project, SUMMARY_TOP_N))
    top_domains = format_kv_list(top_n(stats.by_domain, SUMMARY_TOP_N))
    focus = stats.longest_focus.category
    focus_text = f"{focus.label} {format_duration(focus.seconds)}" if focus else '-'
    density = f"{stats.switch_density_per_10m:.1f}"
    total = format_duration(stats.total_seconds)

    if language == 'en':
        lines = [
            f"Total active {total} (top categories: {top_cats})",
            f"Top apps: {top_apps}",
            f"Projects: {top_projects}",
            f"Domains: {top_domains}",
            f"Longest focus: {focus_text}",
            f"Switches: {stats.switches.category} category / {stats.switches.app} app "
            f"({density} per 10 min)",
        ]
        if stats.local_dev_seconds > 0:
            lines.append(f"Local development: {format_duration(stats.local_dev_seconds)}")
    else:
        lines = [
            f"総アクティブ {total}（上位カテゴリ: {top_cats}）",
            f"上位アプリ: {top_apps}",
            f"プロジェクト: {top_projects}",
            f"ドメイン: {top_domains}",
            f"最長フォーカス: {focus_text}",
            f"切替: カテゴリ {stats.switches.category}回 / アプリ {stats.switches.app}回 "
            f"(10分あたり {density})",
        ]
        if stats.local_dev_seconds > 0:
            lines.append(f"ローカル開発: {format_duration(stats.local_dev_seconds)}")

    return '\n'.join(lines)


def _period(start: datetime, end: datetime) -> str:
    tz = get_report_timezone()
    return f"{format_datetime_for_prompt(start, tz)} ～ {format_datetime_for_prompt(end, tz)} ({tz})"


def build_prompt(
    start: datetime,
    end: datetime,
    time_range_label: str,
    human_summary: str,
    activity_xml: str,
    language: str | None = None,
) -> str:
    """Prompt for the free-text analysis (about 300 characters)."""
    language = language or get_report_language()
    period = _period(start, end)

    if language == 'en':
        return f"""You are a productivity advisor. Analyze the activity data (XML) and statistics summary below and reply in English with a concise summary and advice.

Period: {period}
Range: {time_range_label}

Statistics summary:
{human_summary}

Activity data (XML):
{activity_xml}

In about 300 characters, cover:
1. The activity pattern over these {time_range_label} (how the work flowed over time)
2. Productivity insights (focus, efficiency)
3. One concrete, actionable suggestion

Times are already shown in {get_report_timezone()} and durations are human readable (e.g. 10m12s).
Keep the tone friendly and constructive."""

    return f"""あなたは生産性アドバイザーです。以下のXML形式のアクティビティデータと統計サマリを分析して、日本語で簡潔な要約とアドバイスを提供してください。

データ期間: {period}
時間範囲: {time_range_label}

統計サマリ:
{human_summary}

アクティビティデータ（XML形式）:
{activity_xml}

以下の観点から300文字程度で分析してください:
1. この{time_range_label}の活動パターンの特徴（時系列での作業の流れ）
2. 生産性に関する気づき（集中度、効率性など）
3. 改善提案（具体的で実行可能なもの）

時間は既に{get_report_timezone()}で表示されており、durationは人間が読みやすい形式（例：10m12s）で表示されています。
親しみやすく、建設的なトーンでお願いします。"""


def build_calendar_object_prompt(
    start: datetime,
    end: datetime,
    time_range_label: str,
    human_summary: str,
    activity_xml: str,
    language: str | None = None,
) -> str:
    """Prompt for the calendar entry object {title, summary, bullets}."""
    language = language or get_report_language()
    period = _period(start, end)

    if language == 'en':
        return f"""Summarize the work done in the period below as a calendar entry.

Period: {period}
Range: {time_range_label}

Statistics summary:
{human_summary}

Activity data (XML):
{activity_xml}

Return an object with exactly these fields:
- title: what was worked on, at most 30 characters
- summary: one or two sentences describing the work
- bullets: 3 to 5 short bullet points of concrete work items

Use English and do not add any other fields."""

    return f"""以下の期間の作業内容をカレンダーの予定として要約してください。

データ期間: {period}
時間範囲: {time_range_label}

統計サマリ:
{human_summary}

アクティビティデータ（XML形式）:
{activity_xml}

次のフィールドだけを持つオブジェクトを返してください:
- title: 作業内容を表す30文字以内のタイトル
- summary: 作業内容を1〜2文で説明した要約
- bullets: 具体的な作業項目の短い箇条書き（3〜5個）

日本語で記述し、他のフィールドは追加しないでください。"""
