"""Prompt templates for the summarization collaborator."""

SNAPSHOT_PROMPT = """Summarize the following email for a quick inbox snapshot.

Rules:
- Write 2 to 4 short bullet points, each starting with "* "
- Cover who wants what, any deadline, and any action the reader must take
- Do not copy long passages, links, signatures or legal footers
- If the email is purely promotional, say so in one bullet

Email:
---
{body}
---"""
