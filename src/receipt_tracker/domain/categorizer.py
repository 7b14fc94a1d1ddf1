from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple, Union

from ..logging import get_logger
from .models import DEFAULT_CATEGORY, KeywordRule

LOG = get_logger("categorizer")

BUILT_IN_RULES_VERSION = 1


def _group(category: str, *keywords: str) -> Tuple[KeywordRule, ...]:
    return tuple(KeywordRule(k, category) for k in keywords)


# First match wins, so declaration order is part of the contract.
# "water" sits with the drinks but has always resolved to utilities.
BUILT_IN_RULES: Tuple[KeywordRule, ...] = (
    _group(
        "Groceries",
        "bread", "milk", "eggs", "cheese", "butter", "yogurt", "vegetables",
        "fruit", "meat", "chicken", "fish", "rice", "pasta", "cereal",
    )
    + _group(
        "Food & Drink",
        "coffee", "latte", "cappuccino", "espresso", "tea", "juice", "soda",
    )
    + (KeywordRule("water", "Bills & Utilities"),)
    + _group(
        "Food & Drink",
        "beer", "wine", "cocktail", "burger", "pizza", "sandwich", "salad",
        "cafe", "restaurant",
    )
    + _group(
        "Transport",
        "uber", "lyft", "taxi", "grab", "fare", "ride", "bus", "train", "metro",
        "parking", "toll", "gas", "fuel",
    )
    + _group(
        "Health",
        "pharmacy", "medicine", "drug", "clinic", "hospital", "doctor",
        "prescription", "vitamin", "supplement",
    )
    + _group(
        "Bills & Utilities",
        "electric", "internet", "phone", "bill", "utility",
    )
    + _group(
        "Shopping",
        "clothing", "shoes", "shirt", "pants", "dress", "electronics", "book", "toy",
    )
)

RuleSnapshot = Tuple[KeywordRule, ...]
RulesLike = Union[Mapping[str, str], Iterable[Any]]
RuleSource = Union[Callable[[], RulesLike], Any]


def coerce_rules(rules: Optional[RulesLike]) -> RuleSnapshot:
    """Return an ordered, immutable rule tuple.

    Accepts a mapping of keyword -> category (insertion order kept), or an
    iterable of KeywordRule / (keyword, category) pairs. Keywords are
    lower-cased; blank keywords are dropped since they would match anything.
    """
    if not rules:
        return ()
    pairs = rules.items() if isinstance(rules, Mapping) else rules
    out = []
    for entry in pairs:
        if isinstance(entry, KeywordRule):
            keyword, category = entry.keyword, entry.category
        else:
            keyword, category = entry
        keyword = str(keyword).strip().lower()
        if not keyword:
            continue
        out.append(KeywordRule(keyword, str(category)))
    return tuple(out)


def _first_match(lower_name: str, rules: Sequence[KeywordRule]) -> Optional[KeywordRule]:
    for rule in rules:
        if rule.keyword in lower_name:
            return rule
    return None


class Categorizer:
    """Map item names to categories by keyword containment.

    User rules are consulted before the built-in table. The rule source is
    either a zero-argument callable or an object with a ``keyword_rules()``
    method (such as ``SettingsStore``); it is read again on every call that
    does not pass an explicit snapshot, so newly added rules apply at once.
    """

    def __init__(self, rule_source: Optional[RuleSource] = None) -> None:
        self._rule_source = rule_source

    def user_rules_snapshot(self) -> RuleSnapshot:
        if self._rule_source is None:
            return ()
        getter = getattr(self._rule_source, "keyword_rules", self._rule_source)
        return coerce_rules(getter())

    def categorize(self, item_name: str, user_rules: Optional[RulesLike] = None) -> str:
        lower_name = (item_name or "").lower()
        snapshot = self.user_rules_snapshot() if user_rules is None else coerce_rules(user_rules)

        rule = _first_match(lower_name, snapshot)
        if rule is not None:
            LOG.debug(f"User rule matched: '{rule.keyword}' -> {rule.category}")
            return rule.category

        rule = _first_match(lower_name, BUILT_IN_RULES)
        if rule is not None:
            LOG.debug(f"Built-in rule matched: '{rule.keyword}' -> {rule.category}")
            return rule.category

        LOG.debug(f"No match for '{item_name}', using {DEFAULT_CATEGORY}")
        return DEFAULT_CATEGORY
