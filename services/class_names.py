"""
Class label normalization.

Teachers type class labels in many shapes ("1-2", "2班", "一（2）班",
"1年级2班"). Everything stored goes through :func:`normalize_class_name`
so scope checks compare like with like.
"""
import re
from typing import Tuple

CHINESE_NUMERALS = {
    "一": 1, "二": 2, "三": 3, "四": 4, "五": 5,
    "六": 6, "七": 7, "八": 8, "九": 9, "十": 10,
}
_NUMERAL_CHARS = "".join(CHINESE_NUMERALS)

# (pattern, grade group or None for "first grade", class number group)
_PATTERNS = [
    (re.compile(r"^(\d+)-(\d+)$"), 1, 2),
    (re.compile(r"^\((\d+)\)\s*班$"), None, 1),
    (re.compile(rf"^([{_NUMERAL_CHARS}])（(\d+)）班$"), 1, 2),
    (re.compile(r"^(\d+)（(\d+)）班$"), 1, 2),
    (re.compile(rf"^([{_NUMERAL_CHARS}])年级(\d+)班$"), 1, 2),
    (re.compile(r"^(\d+)年级(\d+)班$"), 1, 2),
    (re.compile(r"^(\d+)班$"), None, 1),
]


def _to_int(token: str) -> int:
    if token in CHINESE_NUMERALS:
        return CHINESE_NUMERALS[token]
    return int(token)


def parse_class_name(label: str) -> Tuple[int, int]:
    """
    Extract (grade, class number) from a free-form label.

    Unrecognised labels fall back to grade 1, class 1.
    """
    if not label:
        return 1, 1

    trimmed = label.strip()
    for pattern, grade_group, number_group in _PATTERNS:
        match = pattern.match(trimmed)
        if not match:
            continue
        grade = _to_int(match.group(grade_group)) if grade_group else 1
        number = int(match.group(number_group))
        return grade or 1, number or 1

    return 1, 1


def grade_label(grade: int) -> str:
    """'一年级' for 1 ... '十年级' for 10, '<n>年级' beyond."""
    numerals = {v: k for k, v in CHINESE_NUMERALS.items()}
    return f"{numerals.get(grade, grade)}年级"


def normalize_class_name(label: str) -> Tuple[str, str]:
    """
    Normalize a class label.

    Returns:
        (canonical label such as "一（2）班", inferred grade such as "一年级")
    """
    if not label:
        return "", ""

    grade, number = parse_class_name(label)
    grade_name = grade_label(grade)
    return f"{grade_name[:-2]}（{number}）班", grade_name
