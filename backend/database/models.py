"""
Database models for the learning pipeline.
Provides CRUD operations for Supabase tables.

Rows are passed around as plain dicts. Tables that are mutated by
read-modify-write (agent_rules, autonomy_graduation_tracking) carry an
integer `version` column; updates to them go through compare_and_swap so a
concurrent writer can never be silently overwritten.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .supabase_client import get_supabase
from config.database import Tables
from learning.errors import StorageError


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (timestamptz friendly)."""
    return datetime.now(timezone.utc).isoformat()


def _first(response) -> Optional[Dict[str, Any]]:
    return response.data[0] if response.data else None


def _compare_and_swap(table: str, row_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Apply `changes` only if the row still has `expected_version`.

    Returns the updated row, or None if another writer bumped the version
    first (the caller re-reads and recomputes).
    """
    supabase = get_supabase()
    payload = {**changes, "version": expected_version + 1}
    response = (
        supabase.table(table)
        .update(payload)
        .eq("id", row_id)
        .eq("version", expected_version)
        .execute()
    )
    return _first(response)


class Correction:
    """Human corrections of agent actions (agent_corrections)."""

    @staticmethod
    def create(
        user_id: str,
        original_action: str,
        correction: str,
        context_snapshot: Dict[str, Any],
        decision_id: Optional[str] = None,
        embedding: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Insert a new, unmatched correction.

        Args:
            user_id: Owning user's UUID
            original_action: What the agent did
            correction: What the human wanted instead
            context_snapshot: Free-form context captured at correction time
            decision_id: Originating decision (optional)
            embedding: pgvector literal (optional, omitted when unavailable)

        Returns:
            Dict containing the created correction

        Raises:
            StorageError: If the insert returned no row
        """
        supabase = get_supabase()

        data = {
            "user_id": user_id,
            "decision_id": decision_id,
            "original_action": original_action,
            "correction": correction,
            "context_snapshot": context_snapshot,
            "pattern_matched": False,
        }
        if embedding is not None:
            data["embedding"] = embedding

        response = supabase.table(Tables.CORRECTIONS).insert(data).execute()
        row = _first(response)
        if not row:
            raise StorageError("Failed to store correction")
        return row

    @staticmethod
    def get_unmatched(user_id: str, limit: int) -> List[Dict[str, Any]]:
        """Newest-first corrections not yet consumed by a pattern."""
        supabase = get_supabase()
        response = (
            supabase.table(Tables.CORRECTIONS)
            .select("*")
            .eq("user_id", user_id)
            .eq("pattern_matched", False)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    @staticmethod
    def mark_pattern_matched(correction_ids: List[str]) -> None:
        """Flag corrections as consumed so they never seed another rule."""
        if not correction_ids:
            return
        supabase = get_supabase()
        supabase.table(Tables.CORRECTIONS).update({
            "pattern_matched": True
        }).in_("id", correction_ids).execute()


class Rule:
    """Learned behavioral rules (agent_rules)."""

    @staticmethod
    def create(
        user_id: str,
        rule_text: str,
        category: str,
        confidence: float,
        source: str,
        correction_ids: Optional[List[str]] = None,
        embedding: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Insert a new active rule with zeroed counters.

        Raises:
            StorageError: If the insert returned no row
        """
        supabase = get_supabase()

        data = {
            "user_id": user_id,
            "rule_text": rule_text,
            "category": category,
            "confidence": confidence,
            "source": source,
            "correction_ids": correction_ids or [],
            "active": True,
            "applications_count": 0,
            "rejections_count": 0,
            "version": 0,
        }
        if embedding is not None:
            data["embedding"] = embedding

        response = supabase.table(Tables.RULES).insert(data).execute()
        row = _first(response)
        if not row:
            raise StorageError("Failed to store rule")
        return row

    @staticmethod
    def get_by_id(rule_id: str) -> Optional[Dict[str, Any]]:
        supabase = get_supabase()
        response = supabase.table(Tables.RULES).select("*").eq("id", rule_id).execute()
        return _first(response)

    @staticmethod
    def get_active(user_id: str) -> List[Dict[str, Any]]:
        """All active rules for a user, embeddings included."""
        from config.database import QueryLimits

        supabase = get_supabase()
        response = (
            supabase.table(Tables.RULES)
            .select("*")
            .eq("user_id", user_id)
            .eq("active", True)
            .limit(QueryLimits.DEFAULT_RULE_LIMIT)
            .execute()
        )
        return response.data or []

    @staticmethod
    def compare_and_swap(rule_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return _compare_and_swap(Tables.RULES, rule_id, expected_version, changes)


class Decision:
    """Agent decisions awaiting or holding owner feedback (agent_decisions)."""

    @staticmethod
    def record_feedback(decision_id: str, feedback: str, correction: Optional[str] = None) -> None:
        """
        Write owner feedback onto a decision.

        Errors from the store propagate: feedback that cannot be recorded
        must fail the request.
        """
        supabase = get_supabase()
        supabase.table(Tables.DECISIONS).update({
            "owner_feedback": feedback,
            "owner_correction": correction,
        }).eq("id", decision_id).execute()

    @staticmethod
    def get_by_id(decision_id: str) -> Optional[Dict[str, Any]]:
        supabase = get_supabase()
        response = supabase.table(Tables.DECISIONS).select("*").eq("id", decision_id).execute()
        return _first(response)


class Message:
    """Assistant chat messages (agent_messages). Read-only here."""

    @staticmethod
    def get_by_id(message_id: str) -> Optional[Dict[str, Any]]:
        supabase = get_supabase()
        response = (
            supabase.table(Tables.MESSAGES)
            .select("id, conversation_id, content, tool_calls, tool_results")
            .eq("id", message_id)
            .execute()
        )
        return _first(response)


class GraduationTracking:
    """Per (user, category) autonomy graduation state (autonomy_graduation_tracking)."""

    @staticmethod
    def get(user_id: str, category: str) -> Optional[Dict[str, Any]]:
        supabase = get_supabase()
        response = (
            supabase.table(Tables.GRADUATION_TRACKING)
            .select("*")
            .eq("user_id", user_id)
            .eq("category", category)
            .limit(1)
            .execute()
        )
        return _first(response)

    @staticmethod
    def get_or_create(user_id: str, category: str, initial: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fetch the tracking row, creating it with `initial` values if missing.

        Two requests creating the same row concurrently both land on the
        unique (user_id, category) constraint; the loser's insert is ignored
        and both read back the single surviving row.

        Raises:
            StorageError: If the row still cannot be read after creation
        """
        tracking = GraduationTracking.get(user_id, category)
        if tracking:
            return tracking

        supabase = get_supabase()
        supabase.table(Tables.GRADUATION_TRACKING).upsert(
            {"user_id": user_id, "category": category, "version": 0, **initial},
            on_conflict="user_id,category",
            ignore_duplicates=True,
        ).execute()

        tracking = GraduationTracking.get(user_id, category)
        if not tracking:
            raise StorageError(f"Failed to create graduation tracking for {category}")
        return tracking

    @staticmethod
    def compare_and_swap(tracking_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return _compare_and_swap(Tables.GRADUATION_TRACKING, tracking_id, expected_version, changes)


class AutonomySettings:
    """Per-user autonomy level overrides (agent_autonomy_settings)."""

    @staticmethod
    def get(user_id: str) -> Optional[Dict[str, Any]]:
        supabase = get_supabase()
        response = (
            supabase.table(Tables.AUTONOMY_SETTINGS)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return _first(response)

    @staticmethod
    def update_category_overrides(user_id: str, overrides: Dict[str, str]) -> None:
        supabase = get_supabase()
        supabase.table(Tables.AUTONOMY_SETTINGS).update({
            "category_overrides": overrides
        }).eq("user_id", user_id).execute()


class AgentPreference:
    """Keyed learned preferences (agent_preferences)."""

    @staticmethod
    def upsert(
        user_id: str,
        category: str,
        preference_key: str,
        preference_value: str,
        embedding: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Write a learned preference, replacing any previous value for the
        same (user, category, key).
        """
        supabase = get_supabase()

        data = {
            "user_id": user_id,
            "category": category,
            "preference_key": preference_key,
            "preference_value": preference_value,
            "source": "learned",
            "updated_at": utc_now(),
        }
        if embedding is not None:
            data["embedding"] = embedding

        response = supabase.table(Tables.PREFERENCES).upsert(
            data,
            on_conflict="user_id,property_id,category,preference_key",
        ).execute()
        return _first(response)


class ToolGenome:
    """Per (user, tool) failure accumulator (tool_genome)."""

    @staticmethod
    def get(user_id: str, tool_name: str) -> Optional[Dict[str, Any]]:
        supabase = get_supabase()
        response = (
            supabase.table(Tables.TOOL_GENOME)
            .select("parameter_insights, failure_patterns")
            .eq("user_id", user_id)
            .eq("tool_name", tool_name)
            .limit(1)
            .execute()
        )
        return _first(response)

    @staticmethod
    def upsert(user_id: str, tool_name: str, fields: Dict[str, Any]) -> None:
        supabase = get_supabase()
        supabase.table(Tables.TOOL_GENOME).upsert(
            {"user_id": user_id, "tool_name": tool_name, **fields},
            on_conflict="user_id,tool_name",
        ).execute()
