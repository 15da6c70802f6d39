"""
Posting rule registry.

Manages registration and lookup of posting rules by event kind, with
versioning.  ``build_default_registry()`` wires every rule the engine
ships with.
"""

from typing import Any

from bullion_kernel.domain.plan import PostingContext, PostingPlan
from bullion_kernel.exceptions import PostingRuleNotFoundError
from bullion_kernel.posting_rules.base import PostingRule


class PostingRuleRegistry:
    """
    Registry for posting rules.

    Allows registration and lookup of rules by event kind.
    Supports versioning for backward compatibility.
    """

    def __init__(self):
        # Map of kind -> version -> rule
        self._rules: dict[str, dict[int, PostingRule]] = {}
        self._default_versions: dict[str, int] = {}

    def register(self, rule: PostingRule, set_default: bool = True) -> None:
        """
        Register a posting rule.

        Args:
            rule: The posting rule to register.
            set_default: If True, set this as the default version.
        """
        self._rules.setdefault(rule.kind, {})[rule.version] = rule
        if set_default:
            self._default_versions[rule.kind] = rule.version

    def get_rule(self, kind: str, version: int | None = None) -> PostingRule | None:
        if kind not in self._rules:
            return None

        if version is None:
            version = self._default_versions.get(kind)
            if version is None:
                version = max(self._rules[kind].keys())

        return self._rules[kind].get(version)

    def require_rule(self, kind: str, version: int | None = None) -> PostingRule:
        """
        Raises:
            PostingRuleNotFoundError: If no rule is registered for ``kind``.
        """
        rule = self.get_rule(kind, version)
        if rule is None:
            raise PostingRuleNotFoundError(kind)
        return rule

    def compute_plan(
        self,
        event: Any,
        context: PostingContext,
        version: int | None = None,
    ) -> PostingPlan:
        """Look up the rule for ``event.kind`` and compute its plan."""
        return self.require_rule(event.kind, version).compute_plan(event, context)

    def list_kinds(self) -> list[str]:
        return sorted(self._rules)

    def list_versions(self, kind: str) -> list[int]:
        if kind not in self._rules:
            return []
        return sorted(self._rules[kind].keys())


def build_default_registry() -> PostingRuleRegistry:
    """Registry holding one rule per supported event kind."""
    from bullion_kernel.domain.events import EntryType, FixingType, MetalTransactionType
    from bullion_kernel.posting_rules.entry import CashEntryRule, MetalEntryRule
    from bullion_kernel.posting_rules.fixing import TransactionFixingRule
    from bullion_kernel.posting_rules.fund_transfer import OpeningBalanceRule, TransferRule
    from bullion_kernel.posting_rules.metal_transaction import MetalTransactionRule

    registry = PostingRuleRegistry()
    for transaction_type in MetalTransactionType:
        registry.register(MetalTransactionRule(transaction_type))
    for entry_type in EntryType:
        if entry_type.is_metal:
            registry.register(MetalEntryRule(entry_type))
        else:
            registry.register(CashEntryRule(entry_type))
    for fixing_type in FixingType:
        registry.register(TransactionFixingRule(fixing_type))
    registry.register(TransferRule())
    registry.register(OpeningBalanceRule())
    return registry
