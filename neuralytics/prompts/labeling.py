"""Prompts for cluster labelling."""

CLUSTER_LABEL_SYSTEM = (
    "You are a concise labeler. "
    "Reply with ONLY the label and nothing else. "
    "Never exceed 6 words. Never start with 'The cluster' or 'This cluster'."
)

CLUSTER_LABEL_PROMPT = """\
Write a label (MAX 6 words) naming what these items have in common.
Rules:
- 6 words or fewer.
- Name the topic directly, e.g. "Payment service dependencies".
- Do NOT mention clusters, algorithms, or similarity scores.

Item types: {type_summary}
Members ({size} total, first {shown} shown):
{members_text}

Label:
"""
