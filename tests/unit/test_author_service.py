"""Unit tests for author profile storage."""

import json

import pytest

from packages.docshub.dtos.sync import SourceFile
from packages.syncworker.services.author_service import AuthorService

from .fakes import FakeAuthorRepository


@pytest.mark.asyncio()
async def test_creates_then_updates_by_email():
    authors = FakeAuthorRepository()
    service = AuthorService(authors)
    jane = SourceFile(path="authors/jane.json", content=json.dumps({"email": "jane@example.com", "name": "Jane"}))

    first = await service.store_authors([jane])
    renamed = SourceFile(path="authors/jane.json", content=json.dumps({"email": "jane@example.com", "name": "J. Doe"}))
    second = await service.store_authors([renamed])

    assert (first.created, first.updated) == (1, 0)
    assert (second.created, second.updated) == (0, 1)
    assert authors.authors["jane@example.com"].name == "J. Doe"


@pytest.mark.asyncio()
async def test_invalid_profile_is_recorded():
    service = AuthorService(FakeAuthorRepository())
    files = [
        SourceFile(path="authors/bad.json", content=json.dumps({"name": "No Email"})),
        SourceFile(path="authors/ok.json", content=json.dumps({"email": "ok@example.com", "name": "Ok"})),
    ]

    result = await service.store_authors(files)

    assert result.created == 1
    assert len(result.errors) == 1
    assert "authors/bad.json" in result.errors[0]
