"""
Database table names and query limits.
"""


class Tables:
    """Supabase table names used by the learning pipeline."""

    CORRECTIONS: str = 'agent_corrections'
    RULES: str = 'agent_rules'
    DECISIONS: str = 'agent_decisions'
    MESSAGES: str = 'agent_messages'
    PREFERENCES: str = 'agent_preferences'
    GRADUATION_TRACKING: str = 'autonomy_graduation_tracking'
    AUTONOMY_SETTINGS: str = 'agent_autonomy_settings'
    TOOL_GENOME: str = 'tool_genome'


class QueryLimits:
    """Default limits for database queries."""

    DEFAULT_RULE_LIMIT: int = 500
    ORIGINAL_ACTION_INPUT_CHARS: int = 200  # decision input_data shown in a correction
