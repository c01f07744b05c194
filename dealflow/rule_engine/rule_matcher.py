"""Rule matcher for deal status transitions."""

from collections.abc import Iterable

from dealflow.rule_engine.models import TransitionEvent, WorkflowRule


class RuleMatcher:
    """Selects the rules a transition event fires.

    Matching is a pure function of the event and the given rules: every
    active rule whose trigger targets the event's new status, and whose
    origin is either the wildcard or the event's previous status, fires.
    Matches are independent, so all of them are returned.
    """

    def matches(self, rule: WorkflowRule, event: TransitionEvent) -> bool:
        """Check a single rule against an event.

        Args:
            rule: Rule to check
            event: The status transition

        Returns:
            True if the rule fires for the event
        """
        if not rule.is_active:
            return False
        if rule.trigger.to_status.value != _value(event.to_status):
            return False
        if rule.trigger.is_wildcard:
            return True
        return _value(rule.trigger.from_status) == _value(event.from_status)

    def match(
        self, event: TransitionEvent, rules: Iterable[WorkflowRule]
    ) -> list[WorkflowRule]:
        """Return the rules that fire for an event.

        Args:
            event: The status transition
            rules: Candidate rules, in any order

        Returns:
            Matching rules in creation order, ties broken by rule id
        """
        matched = [rule for rule in rules if self.matches(rule, event)]
        matched.sort(key=lambda r: (r.created_at, r.id))
        return matched


def _value(status) -> str | None:
    return getattr(status, "value", status)
