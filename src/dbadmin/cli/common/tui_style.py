"""Questionary / prompt_toolkit theme for DBADMIN.

Questionary uses prompt_toolkit under the hood. Destructive confirmations
share one style so they stand out from ordinary output.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

QUESTIONARY_STYLE_CONFIRM = Style.from_dict(
    {
        "question": "bold ansibrightred",
        "answer": "bold ansibrightred",
        "pointer": "bold ansibrightred",
        "highlighted": "bold ansibrightred",
        "selected": "bold ansibrightred",
        "separator": "ansibrightblack",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
        "disabled": "ansibrightblack",
    }
)
