"""Tests for response envelopes."""

from __future__ import annotations

import pytest

from gitlab_to_ado_migrator.exceptions import UnexpectedResponseError
from gitlab_to_ado_migrator.models import (
    ArrayEnvelope,
    CollectionEnvelope,
    EmptyEnvelope,
    ResourceEnvelope,
    UnrecognizedEnvelope,
    decode_envelope,
    items_of,
    resource_of,
)


@pytest.mark.unit
class TestDecodeEnvelope:
    def test_collection(self) -> None:
        envelope = decode_envelope({"count": 2, "value": [{"id": 1}, {"id": 2}]})
        assert envelope == CollectionEnvelope(items=[{"id": 1}, {"id": 2}], count=2)

    def test_collection_without_count(self) -> None:
        envelope = decode_envelope({"value": [1, 2, 3]})
        assert envelope == CollectionEnvelope(items=[1, 2, 3], count=3)

    def test_collection_ignores_extra_keys(self) -> None:
        envelope = decode_envelope({"count": 1, "value": ["a"], "continuationToken": "abc"})
        assert envelope == CollectionEnvelope(items=["a"], count=1)

    def test_bare_array(self) -> None:
        assert decode_envelope([{"name": "main"}]) == ArrayEnvelope(items=[{"name": "main"}])

    def test_resource(self) -> None:
        assert decode_envelope({"id": "p1", "name": "Proj"}) == ResourceEnvelope(resource={"id": "p1", "name": "Proj"})

    def test_resource_with_non_list_value_field(self) -> None:
        # Variable groups and settings carry scalar "value" fields
        assert isinstance(decode_envelope({"name": "x", "value": "y"}), ResourceEnvelope)

    @pytest.mark.parametrize("payload", [None, ""])
    def test_empty(self, payload: object) -> None:
        assert decode_envelope(payload) == EmptyEnvelope()

    def test_unrecognized(self) -> None:
        assert decode_envelope("<html/>") == UnrecognizedEnvelope(raw="<html/>")


@pytest.mark.unit
class TestItemsOf:
    def test_list_envelopes(self) -> None:
        assert items_of(decode_envelope({"value": [1]})) == [1]
        assert items_of(decode_envelope([2])) == [2]

    def test_empty_body_is_empty_list(self) -> None:
        assert items_of(EmptyEnvelope()) == []

    def test_single_resource_is_rejected(self) -> None:
        with pytest.raises(UnexpectedResponseError, match="from _apis/projects"):
            items_of(decode_envelope({"id": 1}), context="_apis/projects")


@pytest.mark.unit
class TestResourceOf:
    def test_resource(self) -> None:
        assert resource_of(decode_envelope({"id": 1})) == {"id": 1}

    def test_list_is_rejected(self) -> None:
        with pytest.raises(UnexpectedResponseError, match="Expected a single resource"):
            resource_of(decode_envelope([{"id": 1}]))
