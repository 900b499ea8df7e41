"""Structured prompt builders for model-backed survey analysis.

One builder serves the four analysis tasks: the comprehensive
KPI/theme/sentiment analysis, KPI detection over survey columns, sentiment
of a single response, and thematic grouping of verbatims.
"""

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

_OUTPUT_FORMAT = """\
{
  "kpis": [
    {"name": "metric_name", "importance": 0.0-1.0, "correlation": -1.0-1.0}
  ],
  "themes": [
    {"theme": "theme_name", "responses": ["response1", "response2"], "sentiment": -1.0-1.0}
  ],
  "overallSentiment": {
    "score": -1.0-1.0,
    "distribution": {"positive": 0-100, "neutral": 0-100, "negative": 0-100},
    "commentCount": <COMMENT_COUNT>,
    "categorizedComments": {
      "positive": ["comment1"],
      "neutral": ["comment2"],
      "negative": ["comment3"]
    }
  },
  "nps": {"score": number, "promoters": 0-100, "passives": 0-100, "detractors": 0-100}
}"""

_KPI_OUTPUT_FORMAT = """\
{
  "kpis": ["column1", "column2", "column3"],
  "explanation": "Brief explanation of why these are important KPIs"
}"""

_SENTIMENT_OUTPUT_FORMAT = """\
{
  "sentimentScore": 0.7,
  "sentimentLabel": "Positive",
  "reason": "Brief explanation of the sentiment analysis"
}"""

_THEME_OUTPUT_FORMAT = """\
{
  "themes": [
    {"theme": "Clear Theme Name", "responses": ["relevant response 1", "relevant response 2"]},
    {"theme": "Another Theme", "responses": ["relevant response 3"]}
  ]
}"""

_RETURN_ONLY = "RETURN ONLY THIS JSON FORMAT WITHOUT ANY OTHER TEXT OR FORMATTING"

_SYSTEM_INSTRUCTIONS = """\
You are an expert data analyst specializing in survey analysis. Perform a
comprehensive analysis of the provided survey data covering three aspects:
KPIs, Themes, and Sentiment.
"""

_ANALYSIS_INSTRUCTIONS = """\
1. KPI ANALYSIS:
- Identify 3-5 most impactful numerical metrics from the survey data
- Focus on metrics that correlate with overall satisfaction or performance
- Exclude demographic data unless directly relevant to performance
- Give importance scores (0-1) and correlation coefficients (-1 to 1)

2. THEMATIC ANALYSIS:
- Identify 3-5 main themes from verbatim responses
- Group similar responses under each theme
- Ensure themes are distinct and meaningful

3. SENTIMENT ANALYSIS:
- Score each theme's sentiment (-1 to 1)
- Give the overall sentiment distribution as percentages
- Categorize each comment as positive, neutral, or negative
- Consider explicit sentiment words, tone and numerical ratings if present

4. NPS CALCULATION (if applicable):
- Only when the data contains 0-10 likelihood-to-recommend ratings
- Promoters score 9-10, passives 7-8, detractors 0-6
- Omit the "nps" key when no such rating exists
"""

_KPI_INSTRUCTIONS = """\
Identify 3-5 most important numerical metrics that would be considered KPIs.
Do NOT include demographic data like 'age' unless it's truly a performance indicator.
Prefer columns with ratings, scores, or metrics that measure performance or satisfaction.
"""

_SENTIMENT_INSTRUCTIONS = """\
Look for indicators of positive, negative, or neutral sentiment.
Consider:
- Numerical ratings (higher numbers typically indicate positive sentiment)
- Words expressing satisfaction or dissatisfaction
- Overall tone of the response

If there are numerical ratings (1-5 scale), use them to inform your analysis:
- Ratings 4-5 suggest positive sentiment
- Ratings 3 suggest neutral sentiment
- Ratings 1-2 suggest negative sentiment

Use a sentimentScore from -1.0 (very negative) to 1.0 (very positive) and a
sentimentLabel of "Positive", "Negative", or "Neutral".
"""

_THEME_INSTRUCTIONS = """\
Instructions:
1. Identify 2-4 distinct themes based on the responses
2. Group responses by these themes
3. Focus on feedback about user experience, features, or satisfaction
4. Give each theme a descriptive name that captures the key insight
5. Include the most relevant responses for each theme
"""

_LANGUAGE_NOTE = "Note: The survey data is in {language} language. "

_LANGUAGE_FOCUS: Dict[str, str] = {
    "kpi": (
        "Please consider language-specific nuances when identifying KPIs. "
        "Column names and values may be in {language}."
    ),
    "sentiment": (
        "Please analyze sentiment considering {language} language patterns and "
        "expressions. Cultural context may affect how sentiment is expressed."
    ),
    "theme": (
        "Please identify themes considering {language} language patterns and "
        "cultural context. Group similar concepts that may be expressed "
        "differently than in English."
    ),
}

KPI_SAMPLE_ROWS = 5

_NUMERIC_TEXT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


class SurveyAnalysisPromptBuilder:
    """Builds the prompts used for survey analysis.

    Only a leading sample of rows and verbatims is embedded; the prompts
    state the full counts so the model can report them.
    """

    def __init__(self, max_rows: int = 20, max_verbatims: int = 100) -> None:
        self._max_rows = max(1, max_rows)
        self._max_verbatims = max(1, max_verbatims)

    def build_prompt(
        self,
        survey_data: Sequence[Mapping[str, Any]],
        verbatim_responses: Sequence[str],
        language: str = "en",
    ) -> str:
        """Build the comprehensive analysis prompt.

        Args:
            survey_data: Parsed survey rows.
            verbatim_responses: Free-text comments to analyse.
            language: ISO language code of the survey content.

        Returns:
            A fully formatted prompt string ready for LLM consumption.
        """
        row_sample = [dict(row) for row in survey_data[: self._max_rows]]
        verbatim_sample = list(verbatim_responses[: self._max_verbatims])

        sections: List[str] = [
            _SYSTEM_INSTRUCTIONS,
            (
                f"SURVEY DATA ({len(survey_data)} total rows, "
                f"showing first {len(row_sample)} as sample):\n"
                f"{_dump(row_sample)}\n"
            ),
            (
                f"VERBATIM RESPONSES ({len(verbatim_responses)} total comments, "
                f"showing {len(verbatim_sample)} as sample):\n"
                f"{self._format_verbatims(verbatim_sample)}\n"
            ),
        ]

        language_instructions = language_instruction(language, "theme")
        if language_instructions:
            sections.append(language_instructions + "\n")

        sections.extend(
            [
                f"ANALYSIS INSTRUCTIONS:\n\n{_ANALYSIS_INSTRUCTIONS}",
                "OUTPUT FORMAT:\n"
                + _OUTPUT_FORMAT.replace("<COMMENT_COUNT>", str(len(verbatim_responses)))
                + "\n",
                _RETURN_ONLY + ".",
            ]
        )
        return "\n".join(sections)

    def build_kpi_prompt(
        self,
        survey_data: Sequence[Mapping[str, Any]],
        language: str = "en",
    ) -> str:
        """Build the KPI detection prompt.

        Lists every column and the numeric ones, followed by a small row
        sample.
        """
        row_sample = [dict(row) for row in survey_data[: min(KPI_SAMPLE_ROWS, self._max_rows)]]
        sections: List[str] = [
            "Analyze this survey data and identify the key performance indicators (KPIs).\n\n"
            "A KPI is a numerical metric that strongly influences overall satisfaction or performance.\n"
            "Focus on numerical columns that show patterns or correlations with other metrics.\n",
            f"Survey columns: {', '.join(column_names(survey_data))}",
            f"Numerical columns: {', '.join(numeric_columns(survey_data))}\n",
            f"Survey Data Sample ({len(survey_data)} total rows):\n{_dump(row_sample)}\n",
        ]
        _append_language(sections, language, "kpi")
        sections.extend([_KPI_INSTRUCTIONS, f"{_RETURN_ONLY}:\n{_KPI_OUTPUT_FORMAT}"])
        return "\n".join(sections)

    def build_sentiment_prompt(
        self,
        response: str,
        language: str = "en",
        context: Optional[str] = None,
    ) -> str:
        """Build the sentiment prompt for one survey response.

        A response holding a JSON object is rendered as ``key: value`` lines.
        """
        sections: List[str] = [
            "Perform sentiment analysis on this survey response:\n",
            flatten_response(response),
        ]
        if context:
            sections.append(f"\nAdditional context: {context}")
        sections.append("")
        _append_language(sections, language, "sentiment")
        sections.extend([_SENTIMENT_INSTRUCTIONS, f"{_RETURN_ONLY}:\n{_SENTIMENT_OUTPUT_FORMAT}"])
        return "\n".join(sections)

    def build_theme_prompt(
        self,
        verbatim_responses: Sequence[str],
        language: str = "en",
    ) -> str:
        """Build the thematic analysis prompt.

        Each response is numbered; JSON object responses are rendered as
        indented ``key: value`` lines.
        """
        sample = list(verbatim_responses[: self._max_verbatims])
        formatted = "\n\n".join(
            _format_numbered_response(index, response) for index, response in enumerate(sample, start=1)
        )
        sections: List[str] = [
            "Analyze these survey responses and identify common themes or patterns "
            f"({len(verbatim_responses)} total responses, showing {len(sample)}):\n",
            formatted or "(no responses provided)",
            "",
        ]
        _append_language(sections, language, "theme")
        sections.extend(
            [
                _THEME_INSTRUCTIONS,
                'For example, themes might include "User Interface Experience", '
                '"Feature Requests", "Performance Issues", etc.\n',
                f"{_RETURN_ONLY}:\n{_THEME_OUTPUT_FORMAT}",
            ]
        )
        return "\n".join(sections)

    @staticmethod
    def _format_verbatims(verbatims: Sequence[str]) -> str:
        if not verbatims:
            return "(no comments provided)"
        return "\n".join(f"- {response}" for response in verbatims)


def language_instruction(language: str, analysis: str = "theme") -> str:
    """Return the extra instruction for non-English surveys ("" for English).

    Args:
        language: ISO language code.
        analysis: "kpi", "sentiment" or "theme"; selects the focus sentence.
    """
    code = (language or "en").strip()
    if not code or code.lower() == "en":
        return ""
    focus = _LANGUAGE_FOCUS.get(analysis, _LANGUAGE_FOCUS["theme"])
    return (_LANGUAGE_NOTE + focus).format(language=code)


def column_names(survey_data: Sequence[Mapping[str, Any]]) -> List[str]:
    """Column names across all rows, in first-seen order."""
    names: List[str] = []
    for row in survey_data:
        for key in row:
            if key not in names:
                names.append(str(key))
    return names


def numeric_columns(survey_data: Sequence[Mapping[str, Any]]) -> List[str]:
    """Columns where at least one row holds a number or numeric text."""
    return [
        name
        for name in column_names(survey_data)
        if any(_is_numeric(row.get(name)) for row in survey_data)
    ]


def flatten_response(response: str) -> str:
    """Render a JSON-object response as ``key: value`` lines; other text as is."""
    parsed = _json_object(response)
    if parsed is None:
        return str(response)
    return "\n".join(f"{key}: {value}" for key, value in parsed.items())


def prompt_metadata(prompt: str) -> Dict[str, int]:
    """Small summary of a prompt for log events."""
    return {"prompt_chars": len(prompt), "prompt_lines": prompt.count("\n") + 1}


def _append_language(sections: List[str], language: str, analysis: str) -> None:
    instruction = language_instruction(language, analysis)
    if instruction:
        sections.append(instruction + "\n")


def _format_numbered_response(index: int, response: str) -> str:
    parsed = _json_object(response)
    if parsed is None:
        return f"Response {index}: {response}"
    fields = "\n".join(f"  {key}: {value}" for key, value in parsed.items())
    return f"Response {index}:\n{fields}"


def _json_object(text: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(text, str):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(_NUMERIC_TEXT.match(value.strip()))


def _dump(rows: Sequence[Mapping[str, Any]]) -> str:
    return json.dumps(list(rows), indent=2, default=str, ensure_ascii=False)
