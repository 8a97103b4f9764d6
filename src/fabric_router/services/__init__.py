from .intent_classifier import IntentClassifier
from .tool_dispatcher import ToolDispatcher, ToolNameMap
from .router import Router, RuleBasedRouter
from .orchestrator import ConversationOrchestrator

__all__ = [
    "IntentClassifier",
    "ToolDispatcher",
    "ToolNameMap",
    "Router",
    "RuleBasedRouter",
    "ConversationOrchestrator",
]
