"""Directories and files mirroring the IoT catalog."""

from .base import CollectionNode, ResourceNode
from .certificates import CertificateNode, CertificatePoliciesNode, CertificatesNode
from .policies import PoliciesNode, PolicyDocumentNode, PolicyNode, PolicyVersionNode, PolicyVersionsNode
from .rules import RuleActionNode, TopicRuleActionsNode, TopicRuleNode, TopicRulesNode
from .things import PrincipalsNode, StateNode, ThingNode, ThingsNode
from .topics import MessagesNode, PublishNode, TopicNode, TopicsNode, topic_dir_name

__all__ = [
    "CertificateNode",
    "CertificatePoliciesNode",
    "CertificatesNode",
    "CollectionNode",
    "MessagesNode",
    "PoliciesNode",
    "PolicyDocumentNode",
    "PolicyNode",
    "PolicyVersionNode",
    "PolicyVersionsNode",
    "PrincipalsNode",
    "PublishNode",
    "ResourceNode",
    "RuleActionNode",
    "StateNode",
    "ThingNode",
    "ThingsNode",
    "TopicNode",
    "TopicRuleActionsNode",
    "TopicRuleNode",
    "TopicRulesNode",
    "TopicsNode",
    "topic_dir_name",
]
