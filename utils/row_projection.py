"""
Turns a decrypted submission into the cell sequence appended to the sheet.
"""
from typing import Any, List

from models.base import FormResponse, Submission

ANSWER_SEPARATOR = ", "


def _get(response: Any, key: str) -> Any:
    if isinstance(response, FormResponse):
        return response.answer_array if key == "answerArray" else response.answer
    if isinstance(response, dict):
        return response.get(key)
    return None


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # scalars render the way the sender's JavaScript would: true, 1, 1.5
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        # table answers: one list per table row, cells joined with ","
        return ",".join(_cell(v) for v in value)
    return ""


def project(response: Any) -> str:
    """Render one response as a cell.

    answerArray wins and is joined with ", "; otherwise the plain answer;
    otherwise "". Never raises: shapes we don't understand become "" so the
    row keeps its column alignment.
    """
    try:
        answer_array = _get(response, "answerArray")
        if isinstance(answer_array, list):
            return ANSWER_SEPARATOR.join(_cell(v) for v in answer_array)
        return _cell(_get(response, "answer"))
    except Exception:
        return ""


def build_row(submission: Submission) -> List[Any]:
    return [submission.id, submission.created_at] + [project(r) for r in submission.responses]
