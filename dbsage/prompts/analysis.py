"""
Prompts used by analysis routines and the insight augmenter.
"""

INSIGHT_SYSTEM = "You are a senior database administrator."

INSIGHT_USER = """You are an expert in {database_label} databases. Analyse the following analysis results and provide insights, recommendations and possible problems.

Analysis type: {analysis_kind}
Result:
{report}

Provide:
1. Executive summary
2. Main problems identified
3. Recommended actions
4. Suggested next steps

Format the answer in markdown."""

BACKUP_REVIEW_USER = """You are an experienced DBA. Analyse the following backup information and provide:

1. Assessment of the backup status
2. Estimated recovery time (RTO) based on the available backups
3. Improvement recommendations
4. Alerts about potential problems

{backup_summary}

Hours since the last backup: {hours_since_backup}

Be clear and objective."""

DYNAMIC_QUERY_SYSTEM = (
    "You are a SQL expert for {database_label}. "
    "Generate precise and efficient SQL queries."
)

DYNAMIC_QUERY_USER = """You are a SQL expert for {database_label}.

Available schema:
{schema}

The user asked: "{request}"

Write one SQL query that answers the request.

IMPORTANT:
- Return ONLY the SQL query, no explanations
- Use correct {database_label} syntax
- Cap the rows using {limit_hint}
- If the exact structure is unknown, use common generic names
- Read-only: never modify data or schema

SQL query:"""

DYNAMIC_INTERPRETATION_SYSTEM = (
    "You are a data analyst who interprets SQL query results clearly and usefully."
)

DYNAMIC_INTERPRETATION_USER = """The user asked: "{request}"

The following query was executed:
```sql
{query}
```

Results:
```
{result}
```

Interpret the results clearly. Explain what the data means and identify patterns, anomalies or relevant insights."""
