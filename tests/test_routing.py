"""Tests for document id classification and backend routing."""

import pytest

from isocanvas.exceptions import ValidationError
from isocanvas.repositories.routing import (
    RepositoryRouter,
    is_local_document_id,
    normalize_document_id,
    should_fetch,
)


class TestClassification:
    @pytest.mark.parametrize(
        "document_id",
        [
            "local:abc",
            "https://example.com/image.png",
            "http://example.com",
            "text:draft",
            "sheet:quarterly",
            "img-https://placehold.co/600x400",
        ],
    )
    def test_local_ids(self, document_id):
        assert is_local_document_id(document_id)

    @pytest.mark.parametrize("document_id", ["doc1", "3f2b9c8e-uuid", "image:cat"])
    def test_remote_ids(self, document_id):
        assert not is_local_document_id(document_id)

    def test_normalize_strips_local_prefix_only(self):
        assert normalize_document_id("local:abc") == "abc"
        assert normalize_document_id("text:abc") == "text:abc"

    @pytest.mark.parametrize("document_id,expected", [("init", False), ("", False), ("doc1", True)])
    def test_should_fetch(self, document_id, expected):
        assert should_fetch(document_id) is expected


class TestRepositoryRouter:
    def test_routes_by_id_form(self, router, remote_repo, local_repo):
        assert router.for_document("doc1") is remote_repo
        assert router.for_document("local:doc1") is local_repo

    def test_assignment_is_stable(self, router, remote_repo, local_repo):
        first = router.for_document("doc1")
        router.local, router.remote = remote_repo, local_repo
        assert router.for_document("doc1") is first

    def test_init_id_has_no_backend(self, router):
        with pytest.raises(ValidationError):
            router.for_document("init")
