"""
Helpers for optimization task output: queue position, parameter ranges,
and splitting the optimization log into blocks.
"""

import re
from typing import NamedTuple, Optional

from pydantic import BaseModel

QUEUE_POSITION = re.compile(r"Position:\s*(\d+)")

# 获取参数1：Bottom_main_tube_thick：[0.01, 0.02]
PARAMETER_RANGE = re.compile(r"获取参数\d+[:：]\s*(.+?)：\[\s*([\d.]+)\s*,\s*([\d.]+)\s*\]")

# Invisible/control characters the server sometimes leaves in answers.
_NOISE = re.compile(r"[^\x00-\x7F一-龥\n\r\t\s\w\d.\-+=:：\[\],]")

LOG_BLOCK_START = re.compile(r"(?=开始优化|发送参数|优化完成|优化结果详细信息)")
ITERATION_TITLE = re.compile(r"发送参数 \((.+?)\)")
LOG_ERROR_MARKERS = ("仿真执行失败", "仿真评估错误")


class OptimizableParam(BaseModel):
    name: str
    min: float
    max: float
    initial_value: float


class LogBlock(NamedTuple):
    type: str
    content: str
    title: Optional[str] = None


def queue_position(text: str) -> Optional[int]:
    """Queue position announced in a text chunk ("Position: 3"), if any."""
    match = QUEUE_POSITION.search(text or "")
    return int(match.group(1)) if match else None


def extract_parameters(answer: str) -> list[OptimizableParam]:
    cleaned = _NOISE.sub("", answer or "")
    params = []
    for match in PARAMETER_RANGE.finditer(cleaned):
        try:
            low, high = float(match.group(2)), float(match.group(3))
        except ValueError:
            continue
        params.append(OptimizableParam(
            name=match.group(1).strip(),
            min=low,
            max=high,
            initial_value=(low + high) / 2,
        ))
    return params


def parse_log(content: str) -> list[LogBlock]:
    blocks = []
    for block in LOG_BLOCK_START.split(content or ""):
        if not block:
            continue
        if any(marker in block for marker in LOG_ERROR_MARKERS):
            blocks.append(LogBlock("ERROR", block))
        elif block.startswith("开始优化"):
            blocks.append(LogBlock("START", block))
        elif block.startswith("发送参数"):
            title = ITERATION_TITLE.search(block)
            blocks.append(LogBlock("ITERATION", block, title.group(1) if title else None))
        elif block.startswith("优化完成"):
            blocks.append(LogBlock("END", block))
        elif block.startswith("优化结果详细信息"):
            blocks.append(LogBlock("RESULT", block))
        else:
            blocks.append(LogBlock("INFO", block))
    return blocks
