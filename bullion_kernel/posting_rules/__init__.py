"""Posting rules for transforming business events into posting plans."""

from bullion_kernel.posting_rules.base import BasePostingRule, PostingRule
from bullion_kernel.posting_rules.registry import PostingRuleRegistry, build_default_registry

__all__ = [
    "BasePostingRule",
    "PostingRule",
    "PostingRuleRegistry",
    "build_default_registry",
]
