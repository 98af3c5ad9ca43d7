"""
``/rules``: topic rules.

The listing only carries name, ARN, pattern and status. The SQL
statement and the actions are fetched the first time either is read.
Every action becomes a directory named after its type (``s3``,
``lambda``, ``republish`` ...), numbered ``-2``, ``-3`` ... when a rule
has several of the same type, with one file per action parameter.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from ..catalog.models import TopicRule, TopicRuleSummary
from ..errors import remote_call
from ..tree import InfoNode, Node, NodeKind
from .base import CollectionNode, ResourceNode

logger = logging.getLogger("iotfs.nodes.rules")

MAX_ACTIONS_PER_KIND = 127

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def kebab(name: str) -> str:
    """``roleArn`` -> ``role-arn``."""
    return _CAMEL_BOUNDARY.sub("-", name).lower()


class TopicRulesNode(CollectionNode):
    def __init__(self, parent: Node, refresh_interval: Optional[float] = None) -> None:
        super().__init__(parent, "rules", refresh_interval)

    def fetch_items(self) -> List[TopicRuleSummary]:
        return self.catalog.list_topic_rules()

    def build(self, item: TopicRuleSummary) -> Node:
        return TopicRuleNode(self, item)


class TopicRuleNode(ResourceNode):
    kind = NodeKind.TOPIC_RULE

    def __init__(self, parent: Node, rule: TopicRuleSummary) -> None:
        super().__init__(parent, rule.name)
        self.arn = rule.arn
        self._definition: Optional[TopicRule] = None
        self.info("arn", rule.arn)
        self.info("status", "INACTIVE" if rule.disabled else "ACTIVE")
        self.info("rule-pattern", rule.topic_pattern)
        self.add_child(InfoNode(self, "sql", loader=lambda: self.definition().sql))
        self.add_child(TopicRuleActionsNode(self))

    def definition(self) -> TopicRule:
        """Full rule, fetched once. Catalog errors propagate untranslated."""
        with self._lock:
            if self._definition is None:
                self._definition = self.catalog.get_topic_rule(self.name)
            return self._definition

    def delete_remote(self) -> None:
        self.catalog.delete_topic_rule(self.name)


class TopicRuleActionsNode(Node):
    def __init__(self, parent: TopicRuleNode) -> None:
        super().__init__(parent, "actions", is_dir=True)
        self.rule = parent

    def refresh(self) -> None:
        with remote_call("get topic rule", self.path):
            rule = self.rule.definition()
        seen: Dict[str, int] = {}
        entries = []
        for action in rule.actions:
            for action_type, params in action.items():
                base = kebab(action_type)
                count = seen.get(base, 0) + 1
                seen[base] = count
                if count > MAX_ACTIONS_PER_KIND:
                    logger.warning("%s: too many %s actions", self.path, base)
                    continue
                name = base if count == 1 else f"{base}-{count}"
                entries.append(RuleActionNode(self, name, params or {}))
        self.reconcile_children(entries)


class RuleActionNode(Node):
    """One action of a rule, its parameters as read-only files."""

    def __init__(self, parent: Node, name: str, params: Dict[str, Any]) -> None:
        super().__init__(parent, name, is_dir=True)
        for key, value in params.items():
            text = value if isinstance(value, str) else json.dumps(value, default=str)
            self.add_child(InfoNode(self, kebab(key), text))
