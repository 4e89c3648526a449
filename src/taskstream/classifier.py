"""
Heuristic message classifier.

`classify` walks an ordered rule table and returns the category of the first
rule that matches. It is pure and total, so it gives the same answer for a
half-streamed message as for a finalized one with the same content.

The keyword and marker sets are legacy heuristics. A server-supplied
`task_type` always wins over them.
"""

import logging
import re
from typing import Callable, NamedTuple, Optional

from taskstream.models.message import Category, Message

logger = logging.getLogger(__name__)

OPTIMIZATION_LOG_MARKERS = (
    "开始优化",
    "发送参数",
    "优化完成",
    "优化结果详细信息",
    "Start optimization",
    "Sending parameters",
    "Optimization complete",
    "Optimization result details",
)

CHART_ALT_TEXTS = frozenset({
    "收敛曲线",
    "参数分布图",
    "convergence curve",
    "parameter distribution",
})

MODEL_FILE_KEYS = ("cad_file", "code_file", "preview_image")

MODELING_CODE_FENCE = re.compile(r"```\s*(?:python|py|cadquery)\b", re.IGNORECASE)


class Rule(NamedTuple):
    name: str
    category: Category
    matches: Callable[[Message], bool]


def _explicit_category(message: Message) -> Optional[Category]:
    if message.task_type in (Category.GEOMETRY.value, Category.OPTIMIZE.value):
        return Category(message.task_type)
    return None


def _has_optimization_log(message: Message) -> bool:
    content = message.content or ""
    if any(marker in content for marker in OPTIMIZATION_LOG_MARKERS):
        return True
    return any((image.alt_text or "").strip().lower() in CHART_ALT_TEXTS for image in message.images)


def _has_model_output(message: Message) -> bool:
    if any(message.metadata.get(key) for key in MODEL_FILE_KEYS):
        return True
    return bool(MODELING_CODE_FENCE.search(message.content or ""))


RULES: tuple[Rule, ...] = (
    Rule("optimization_log", Category.OPTIMIZE, _has_optimization_log),
    Rule("model_output", Category.GEOMETRY, _has_model_output),
)


def classify(message: Message) -> Category:
    explicit = _explicit_category(message)
    if explicit is not None:
        return explicit
    for rule in RULES:
        try:
            if rule.matches(message):
                return rule.category
        except Exception:
            logger.debug("Classifier rule %s failed on message %s", rule.name, message.id, exc_info=True)
    return Category.GENERAL
