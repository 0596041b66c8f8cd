"""Prompt construction for change requests."""

from __future__ import annotations

from typing import Union

from issuefix.models import CodeContext

RESPONSE_FORMAT = """{
    "changes": [
        {
            "file": "path/to/file",
            "changes": [
                {
                    "type": "replace|insert|delete",
                    "start_line": number (integer),
                    "end_line": number (integer),
                    "content": "new content to insert/replace"
                }
            ]
        }
    ],
    "commit_message": "A clear, concise commit message describing the changes",
    "pr_description": "A detailed description of the changes made and how they resolve the issue"
}"""

RULES = """Rules for changes:
1. For 'replace' type: specify start_line and end_line of the text to replace
2. For 'insert' type: specify start_line where to insert (end_line should be same as start_line); the content is placed before that line, use the file's line count + 1 to append, and start_line 1 to create a new file
3. For 'delete' type: specify start_line and end_line of the text to delete
4. Line numbers are 1-indexed, refer to the ORIGINAL file as shown above, and must ONLY contain whole integers (absolutely no words or placeholder values)
5. The 'content' field is only required for 'replace' and 'insert' types
6. Multiple changes can be specified for each file, but they must not touch the same lines
7. File paths are relative to the repository root, exactly as listed after "FILE:\""""


def build_change_prompt(context: Union[CodeContext, str], issue_title: str, issue_body: str) -> str:
    """Return the single user prompt for a change request."""
    code = context.render() if isinstance(context, CodeContext) else context
    return f"""You are an AI coding assistant tasked with helping resolve GitHub issues. You will be provided with:
1. The codebase context
2. The issue title and description

Your task is to analyze the issue and respond with a full list of code changes needed to resolve the issue in its entirety. You must respond in the following JSON format:

{RESPONSE_FORMAT}

{RULES}

Here is the codebase context:

{code}

Here is the issue to resolve:

Title: {issue_title}

Description:
{issue_body}

Please analyze the issue and provide your response in the specified JSON format.

NOTE: Do not include any additional text besides the JSON specified. Do not include notes above or below the JSON specified. Return ONLY the JSON.
"""
