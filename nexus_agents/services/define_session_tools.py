"""Session Tool Schemas — Anthropic Tool Use format for conversation analytics.

Invariants:
    - All tools are read-only over the message store
    - session_id optional everywhere: defaults to the caller's session
"""

TOOLS_SESSION = [
    {
        "name": "get_session_messages",
        "description": (
            "Returns the most recent chat messages of a session, oldest first. "
            "Use when the user asks what was said earlier."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "session_id": {"type": "string"},
                "limit": {"type": "integer", "default": 20},
            },
            "required": [],
        },
    },
    {
        "name": "search_session_messages",
        "description": (
            "Searches chat messages by text. Returns matching messages with "
            "their session. Use when the user wants to find a conversation "
            "or topic."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search text"},
                "session_id": {
                    "type": "string",
                    "description": "Optional: limit search to one session",
                },
                "limit": {"type": "integer", "default": 10},
            },
            "required": ["query"],
        },
    },
    {
        "name": "analyze_token_usage",
        "description": (
            "Summarizes token usage and estimated cost recorded on a "
            "session's assistant messages, with a per-model breakdown. "
            "Use when the user asks about tokens, costs, or API usage."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "session_id": {"type": "string"},
                "limit": {"type": "integer", "default": 200},
            },
            "required": [],
        },
    },
]
