"""
Merchant categorisation rules.

A rule matches a merchant name by exact value, prefix or substring, all on
the trimmed lower-cased forms. When several rules match, the highest
priority wins and ties go to the oldest rule.
"""

from typing import Iterable, Optional

from finance_engine.models.records import RuleMatchType, TransactionRule


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def rule_matches(rule: TransactionRule, merchant: str) -> bool:
    pattern = _normalize(rule.merchant_pattern)
    if not pattern:
        return False
    name = _normalize(merchant)

    if rule.match_type == RuleMatchType.EXACT:
        return name == pattern
    if rule.match_type == RuleMatchType.STARTS_WITH:
        return name.startswith(pattern)
    return pattern in name


def pick_matching_rule(rules: Iterable[TransactionRule], merchant: str) -> Optional[TransactionRule]:
    """The winning active rule for a merchant, or None."""
    matching = [rule for rule in rules if rule.active and rule_matches(rule, merchant)]
    if not matching:
        return None
    matching.sort(key=lambda rule: (-rule.priority, rule.created_at))
    return matching[0]


def categorize(rules: Iterable[TransactionRule], merchant: str, fallback: str = "") -> str:
    rule = pick_matching_rule(rules, merchant)
    return rule.category if rule is not None else fallback
