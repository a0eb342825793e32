import pytest

from site_audit.models.snapshot import AuditInput
from site_audit.utils.parsing import MalformedUpstreamData, recover_json


def test_strict_json_passes_through():
    assert recover_json('{"a": [1, 2]}') == {"a": [1, 2]}


def test_fenced_json_with_prose():
    text = 'Here is the analysis:\n```json\n{"identity": {"site_type": "blog"}}\n```\nLet me know if you need more.'
    assert recover_json(text) == {"identity": {"site_type": "blog"}}


def test_unfenced_json_inside_prose():
    assert recover_json('Sure! {"a": 1} hope that helps') == {"a": 1}


def test_truncated_payload_keeps_complete_values():
    assert recover_json('[1, 2, {"x": ') == [1, 2]
    assert recover_json('{"a": 1, "b": {"c": 2}, "d": "unfinished') == {"a": 1, "b": {"c": 2}}


def test_commas_inside_strings_are_not_cut_points():
    assert recover_json('{"a": "x, y", "b": "tru') == {"a": "x, y"}


def test_per_record_extraction_drops_bad_members():
    assert recover_json('{"a": oops, "b": 2}') == {"b": 2}


@pytest.mark.parametrize("text", ["no json here", "{{{", None])
def test_unrecoverable_payload_raises(text):
    with pytest.raises(MalformedUpstreamData):
        recover_json(text)


def _audit(classification):
    return AuditInput.model_validate(
        {"snapshot": {"basic_info": {"url": "https://example.com"}}, "classification": classification}
    )


def test_classification_recovered_from_text():
    audit = _audit('```json\n{"identity": {"site_type": "saas", "site_type_confidence": 90}}\n```')
    assert audit.classification.identity.site_type == "saas"
    assert audit.classification.identity.site_type_confidence == 90


def test_unrecoverable_classification_is_dropped():
    assert _audit("the model refused to answer").classification is None
    assert _audit({"maturity": {"level": "young"}}).classification.maturity.level == "young"


def test_misshapen_classification_is_dropped():
    assert _audit('Here: {"maturity": "veteran"}').classification is None
    assert _audit({"scale": ["small"]}).classification is None
    assert _audit(["not", "a", "record"]).classification is None
