"""Tests for audit diff serialization."""

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from src.models import ProjectStatus
from src.services.audit_service import serialize_diffs
from src.services.change_set import FieldDiff


class Unencodable:
    def __str__(self) -> str:
        return "unencodable-value"


class TestSerializeDiffs:
    def test_known_types_use_stable_string_forms(self):
        project_id = uuid.UUID("12345678-1234-5678-1234-567812345678")
        diffs = {
            "amount": FieldDiff(old=Decimal("0.00"), new=Decimal("400.00")),
            "status": FieldDiff(old=ProjectStatus.DRAFT, new=ProjectStatus.ACTIVE),
            "project_id": FieldDiff(new=project_id),
            "donated_at": FieldDiff(new=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)),
        }

        payload = json.loads(serialize_diffs("Donation", diffs))

        assert payload["amount"] == {"old": "0.00", "new": "400.00"}
        assert payload["status"] == {"old": "draft", "new": "active"}
        assert payload["project_id"] == {"new": str(project_id)}
        assert payload["donated_at"] == {"new": "2026-03-01T12:00:00+00:00"}

    def test_deleted_diff_only_has_old(self):
        payload = json.loads(serialize_diffs("Donation", {"amount": FieldDiff(old=Decimal("400.00"))}))
        assert payload == {"amount": {"old": "400.00"}}

    def test_unencodable_value_falls_back_to_str(self, caplog):
        result = serialize_diffs("Thing", {"blob": FieldDiff(new=Unencodable())})

        assert json.loads(result) == {"blob": {"new": "unencodable-value"}}
        assert "not JSON-serializable" in caplog.text

    def test_output_is_key_sorted(self):
        result = serialize_diffs("Project", {"b": FieldDiff(new=1), "a": FieldDiff(new=2)})
        assert result.index('"a"') < result.index('"b"')
