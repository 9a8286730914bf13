"""Range analysis pipeline.

This package contains modules for:
- Duration, time and path formatting (format.py)
- Range bound parsing and labels (range.py)
- Statistics aggregation (stats.py)
- The structured XML document (xml.py)
- Document persistence (files.py)
- Prompt construction (prompt.py)
- The end-to-end range analysis (orchestrator.py)

Import functions from here for a clean API:
    from aw_analyzer.analysis import run_range_analysis, compute_stats
"""

# Formatting
from .format import (
    escape_xml,
    format_duration,
    format_timestamp,
)

# Range parsing
from .range import (
    format_range_label,
    parse_date_input,
)

# Statistics
from .stats import (
    Stats,
    aggregate,
    compute_stats,
    format_kv_list,
    top_n,
)

# Structured document
from .xml import (
    build_activity_xml,
    build_stats_summary_xml,
    format_activity_data_as_xml,
    format_file_snapshots_as_xml,
)

# Persistence
from .files import persist_xml

# Prompts
from .prompt import (
    build_calendar_object_prompt,
    build_human_summary,
    build_prompt,
)

# Orchestration
from .orchestrator import (
    RangeAnalysisResult,
    run_range_analysis,
)

__all__ = [
    # Formatting
    'escape_xml',
    'format_duration',
    'format_timestamp',
    # Range parsing
    'format_range_label',
    'parse_date_input',
    # Statistics
    'Stats',
    'aggregate',
    'compute_stats',
    'format_kv_list',
    'top_n',
    # Structured document
    'build_activity_xml',
    'build_stats_summary_xml',
    'format_activity_data_as_xml',
    'format_file_snapshots_as_xml',
    # Persistence
    'persist_xml',
    # Prompts
    'build_calendar_object_prompt',
    'build_human_summary',
    'build_prompt',
    # Orchestration
    'RangeAnalysisResult',
    'run_range_analysis',
]
