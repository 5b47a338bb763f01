"""
Questionnaire answers.

The storefront submits a flat map of question id -> selected option id, where
multi-select questions (accessories, functional issues, ...) carry a list.
We resolve each entry once into an explicit `Single` or `Multi` value so the
engine never has to inspect raw JSON shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence, Tuple, Union


@dataclass(frozen=True)
class Single:
    value: str

    @property
    def options(self) -> Tuple[str, ...]:
        return (self.value,)


@dataclass(frozen=True)
class Multi:
    values: Tuple[str, ...]

    @property
    def options(self) -> Tuple[str, ...]:
        return self.values


Answer = Union[Single, Multi]
RawAnswer = Union[str, Sequence[str]]


def _clean(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def parse_answer(raw: Any) -> Answer | None:
    """
    None / empty string / empty list -> None (question not answered).
    Lists keep their order; blank entries are dropped.
    """
    if isinstance(raw, (Single, Multi)):
        return raw

    if isinstance(raw, (list, tuple)):
        values = tuple(s for s in (_clean(x) for x in raw) if s)
        return Multi(values) if values else None

    s = _clean(raw)
    return Single(s) if s else None


def parse_answers(raw: Mapping[str, Any] | None) -> Dict[str, Answer]:
    out: Dict[str, Answer] = {}
    for qid, value in (raw or {}).items():
        key = _clean(qid)
        if not key:
            continue
        ans = parse_answer(value)
        if ans is not None:
            out[key] = ans
    return out


def dump_answers(answers: Mapping[str, Answer]) -> Dict[str, RawAnswer]:
    """Back to the storefront's JSON shape (for persistence)."""
    out: Dict[str, RawAnswer] = {}
    for qid, ans in answers.items():
        out[qid] = ans.value if isinstance(ans, Single) else list(ans.values)
    return out
