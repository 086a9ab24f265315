import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from quizstake.services.theory_storage import TheoryStorage


def upload(name, data, content_type=None):
    headers = Headers({"content-type": content_type}) if content_type else None
    return UploadFile(file=io.BytesIO(data), filename=name, headers=headers)


def test_saves_pdf_under_base_dir(tmp_path):
    storage = TheoryStorage(base_dir=tmp_path, max_bytes=1024)
    name = storage.save(upload("answers.pdf", b"%PDF-1.4"), "user-1")
    assert name.startswith("theory_user-1_")
    assert (tmp_path / name).read_bytes() == b"%PDF-1.4"


def test_accepts_pdf_content_type_without_extension(tmp_path):
    storage = TheoryStorage(base_dir=tmp_path, max_bytes=1024)
    assert storage.save(upload("scan", b"%PDF", "application/pdf"), "u")


def test_rejects_non_pdf(tmp_path):
    storage = TheoryStorage(base_dir=tmp_path, max_bytes=1024)
    with pytest.raises(HTTPException) as exc:
        storage.save(upload("notes.txt", b"hello", "text/plain"), "u")
    assert exc.value.status_code == 400


def test_rejects_oversized_and_cleans_up(tmp_path):
    storage = TheoryStorage(base_dir=tmp_path, max_bytes=10)
    with pytest.raises(HTTPException) as exc:
        storage.save(upload("big.pdf", b"x" * 11), "u")
    assert exc.value.status_code == 413
    assert list(tmp_path.iterdir()) == []


def test_discard(tmp_path):
    storage = TheoryStorage(base_dir=tmp_path, max_bytes=1024)
    name = storage.save(upload("a.pdf", b"%PDF"), "u")
    storage.discard(name)
    storage.discard(name)
    assert not (tmp_path / name).exists()
