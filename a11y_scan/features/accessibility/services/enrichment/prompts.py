from typing import List

from a11y_scan.features.accessibility.schemas.accessibility import RawFinding

MAX_SNIPPETS = 3
MAX_SNIPPET_LENGTH = 300


def build_explanation_prompt(finding: RawFinding) -> str:
    snippets = "\n".join(
        f"          {node.html[:MAX_SNIPPET_LENGTH]}" for node in finding.nodes[:MAX_SNIPPETS]
    ) or "          (none captured)"
    impact = finding.impact.value if finding.impact else "unknown"

    return f"""
        Explain the following WCAG accessibility violation in simple, non-technical language.
        Then give short, ordered steps a developer can follow to fix it.
        Focus on practical, direct advice.

        The violation details are:
        - Issue: {finding.help}
        - Description: {finding.description}
        - Impact: {impact}
        - Elements affected (first {MAX_SNIPPETS} for context):
{snippets}
        - More info: {finding.help_url}

        Respond with ONLY a JSON object with these fields:
        {{
          "explanation": "what is wrong, in plain words",
          "priority": "low|medium|high|critical",
          "steps": ["first fix step", "second fix step"],
          "impact": "who is affected and how"
        }}
        Do not include any text before or after the JSON.
    """


def build_summary_prompt(url: str, total_violations: int, findings: List[RawFinding]) -> str:
    top = "\n".join(
        f"        - [{f.impact.value if f.impact else 'unknown'}] {f.help} ({len(f.nodes)} elements)"
        for f in findings[:10]
    )
    return f"""
        Write a short plain-language summary (at most 3 sentences) of the accessibility
        state of {url} for a non-technical site owner. It has {total_violations} distinct
        WCAG rule violations. The most relevant ones are:
{top}
        Mention the most important thing to fix first. Respond with plain text, no JSON,
        no markdown.
    """
