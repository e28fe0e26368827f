"""Prompt builders for question analysis and practice-question generation."""

from typing import Dict, Optional

SUPPORTED_LANGUAGES = ("ja", "en", "zh")
DEFAULT_LANGUAGE = "ja"

_LANGUAGE_NAMES: Dict[str, str] = {"ja": "Japanese", "en": "English", "zh": "Simplified Chinese"}

_SYSTEM_PROMPTS: Dict[str, str] = {
    "ja": (
        "あなたは小中学生の宿題や試験を指導する、丁寧で正確な家庭教師です。"
        "回答はすべて日本語で書いてください。"
    ),
    "en": (
        "You are a patient, precise tutor who helps students understand homework and exam "
        "questions they got wrong. Write every answer in English."
    ),
    "zh": "你是一位耐心、严谨的家庭教师，帮助学生理解他们做错的作业和考试题目。请全部使用简体中文作答。",
}

_ANALYSIS_PROMPTS: Dict[str, str] = {
    "ja": (
        "この宿題や試験の問題の画像を分析してください。日本語で出力してください。\n"
        "1. 問題文を正確に書き起こしてください。\n"
        "2. 問題を徹底的に解いてください。\n"
        "3. 核となる概念を説明してください。\n"
        "4. タグを3〜5個提案してください。\n"
        "5. もし幾何学の問題やグラフを含む問題であれば、説明を助けるためのシンプルで軽量なSVGコードを作成してください。"
    ),
    "en": (
        "Analyze this image of a homework or exam question. Respond in English.\n"
        "1. Transcribe the question text exactly.\n"
        "2. Solve the question thoroughly, step by step.\n"
        "3. Explain the core concepts and why a student might get it wrong.\n"
        "4. Suggest 3-5 short tags.\n"
        "5. If the question involves geometry or a graph, write simple, lightweight SVG code that helps the explanation."
    ),
    "zh": (
        "请分析这张作业或考试题目的图片，并用简体中文输出。\n"
        "1. 准确转写题目文字。\n"
        "2. 详细地逐步解答题目。\n"
        "3. 解释核心概念以及学生可能出错的原因。\n"
        "4. 提供3到5个简短标签。\n"
        "5. 如果是几何或包含图表的题目，请生成简单、轻量的SVG代码辅助说明。"
    ),
}

_HINT_LABELS: Dict[str, str] = {"ja": "ユーザーメモ", "en": "Student note", "zh": "学生备注"}
_CUSTOM_LABELS: Dict[str, str] = {"ja": "追加の指示", "en": "Additional instructions", "zh": "附加说明"}

_SIMILAR_PROMPTS: Dict[str, str] = {
    "ja": (
        "元の質問：「{question}」とその分析：「{analysis}」に基づいて、学生の理解度を確認するための"
        "新しい類似の練習問題を作成してください。数字や文脈を変えても、同じ概念をテストするようにしてください。"
        "幾何学や関数の問題であれば、新しい問題に対応するシンプルで軽量なSVG図形コードも含めてください。"
        "日本語で出力してください。"
    ),
    "en": (
        "Based on the original question: \"{question}\" and its analysis: \"{analysis}\", create a new, "
        "similar practice question that checks the student's understanding. Change the numbers or context "
        "but test the same concept. If it is a geometry or function question, also include simple, "
        "lightweight SVG code for the new question. Respond in English."
    ),
    "zh": (
        "根据原题：“{question}”及其分析：“{analysis}”，编写一道新的类似练习题来检验学生的理解程度。"
        "可以改变数字或情境，但要考查相同的概念。如果是几何或函数题，请同时为新题提供简单、轻量的SVG图形代码。"
        "请用简体中文输出。"
    ),
}


def normalize_language(language: Optional[str]) -> str:
    """Return a supported language code, defaulting to Japanese.

    Raises:
        ValueError: If the language is not one of the supported codes.
    """
    if not language:
        return DEFAULT_LANGUAGE
    code = language.strip().lower()
    if code not in SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported language '{language}'. Supported: {', '.join(SUPPORTED_LANGUAGES)}")
    return code


def language_name(language: str) -> str:
    return _LANGUAGE_NAMES[language]


def build_system_prompt(language: str) -> str:
    return _SYSTEM_PROMPTS[language]


def build_analysis_prompt(language: str, hint: Optional[str] = None, custom_instructions: Optional[str] = None) -> str:
    """Return the analysis instructions, with the student's hint and custom instructions appended."""
    parts = [_ANALYSIS_PROMPTS[language]]
    if custom_instructions and custom_instructions.strip():
        parts.append(f"{_CUSTOM_LABELS[language]}: {custom_instructions.strip()}")
    if hint and hint.strip():
        parts.append(f"{_HINT_LABELS[language]}: {hint.strip()}")
    return "\n".join(parts)


def build_similar_prompt(language: str, question: str, analysis: Optional[str]) -> str:
    return _SIMILAR_PROMPTS[language].format(question=question, analysis=analysis or "")
