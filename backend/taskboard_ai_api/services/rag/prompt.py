from __future__ import annotations


_PREAMBLE = (
    "你是一个看板任务助手。请根据我提供的 JSON 实时数据，为用户生成一份简短、友好、易于阅读的中文任务总结。\n\n"
    "【重要规则】:\n"
    "1. **不要**复述或打印原始的 JSON 数据。\n"
    "2. **直接**开始你的总结性回答 (例如：'你好！根据你的任务情况...')。\n"
    "3. 使用表情符号 (✅, 🚀) 来组织你的回答。\n"
    "4. 如果数据中有逾期的任务，请明确指出。\n\n"
)


def compose_final_prompt(question: str, context_json: str) -> str:
    return (
        _PREAMBLE
        + f'用户问题: "{question}"\n\n'
        + "实时数据 (JSON 格式):\n"
        + context_json
        + "\n\n你的回答 (请直接开始总结):\n"
    )
