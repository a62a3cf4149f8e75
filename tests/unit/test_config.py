"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from tenant_escalation.config import Settings
from tenant_escalation.escalation.policy import EscalationPolicy


class TestSettings:
    """Test configuration defaults and validators."""

    def test_policy_defaults(self):
        """Default ladder is three reminders three days apart."""
        policy = EscalationPolicy.from_settings(Settings())

        assert policy.reminder_interval_days == 3
        assert policy.max_reminders == 3

    @pytest.mark.parametrize("field", [
        "ESCALATION_REMINDER_INTERVAL_DAYS",
        "ESCALATION_MAX_CONCURRENCY",
        "ESCALATION_FETCH_ATTEMPTS",
    ])
    def test_limits_must_be_positive(self, field):
        """Zero is rejected for limits that drive loops."""
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_zero_reminders_allowed(self):
        """Owner can be notified without any reminders."""
        assert Settings(ESCALATION_MAX_REMINDERS=0).ESCALATION_MAX_REMINDERS == 0

        with pytest.raises(ValidationError):
            Settings(ESCALATION_MAX_REMINDERS=-1)

    def test_timeout_must_be_positive(self):
        """Cycle deadline must be positive."""
        with pytest.raises(ValidationError):
            Settings(ESCALATION_CYCLE_TIMEOUT_SECONDS=0)

    def test_log_level_is_normalised(self):
        """Log level names are upper-cased."""
        assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"
