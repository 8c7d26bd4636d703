"""RFC 4515 search filter rendering for Sentence/Criterion trees."""

from __future__ import annotations

from typing import Any, Union

from ldap3.utils.conv import escape_filter_chars

from dirbridge.core.exception import CriteriaBuildError
from dirbridge.core.language.vocabulary import attribute_name
from dirbridge.core.query import Conjunction, Criterion, DirectoryType, Operator, Sentence

_VALUE_TEMPLATES = {
    Operator.EQUALS: "({attr}={value})",
    Operator.NOT_EQUALS: "(!({attr}={value}))",
    Operator.STARTS_WITH: "({attr}={value}*)",
    Operator.ENDS_WITH: "({attr}=*{value})",
    Operator.CONTAINS: "({attr}=*{value}*)",
    Operator.GREATER_OR_EQUAL: "({attr}>={value})",
    Operator.LESS_OR_EQUAL: "({attr}<={value})",
}


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return escape_filter_chars(str(value))


def render_criterion(criterion: Criterion, directory_type: DirectoryType) -> str:
    attr = attribute_name(criterion.field, directory_type)
    if criterion.operator is Operator.EXISTS:
        return f"({attr}=*)"
    template = _VALUE_TEMPLATES.get(criterion.operator)
    if template is None:
        raise CriteriaBuildError(f"Unsupported operator: {criterion.operator!r}")
    if criterion.value is None or (isinstance(criterion.value, str) and criterion.value == ""):
        raise CriteriaBuildError(f"Operator {criterion.operator.value} on {attr} requires a value")
    return template.format(attr=attr, value=_literal(criterion.value))


def render_sentence(sentence: Union[Sentence, Criterion], directory_type: DirectoryType) -> str:
    if isinstance(sentence, Criterion):
        return render_criterion(sentence, directory_type)
    if not isinstance(sentence, Sentence):
        raise CriteriaBuildError(f"Unsupported sentence item: {type(sentence).__name__}")
    if not sentence.criteria:
        raise CriteriaBuildError("Search sentence has no criteria")

    parts = [render_sentence(item, directory_type) for item in sentence.criteria]
    if len(parts) == 1:
        return parts[0]
    op = "&" if sentence.conjunction is Conjunction.AND else "|"
    return f"({op}{''.join(parts)})"


def combine_and(*clauses: str | None) -> str | None:
    parts = [c for c in clauses if c]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return "(&" + "".join(parts) + ")"
