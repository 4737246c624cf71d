import logging

import pytest
from fastapi.testclient import TestClient

from app.main import create_app

from conftest import FakeRunner, write_pdf

"""
Two DeprecationWarnings appear during tests because FastAPI's 'on_event' is deprecated.
They do not affect functionality and can be safely ignored.
"""


@pytest.fixture
def populated(library):
    pdf_dir, covers_dir = library
    write_pdf(pdf_dir / "a.pdf", b"%PDF-1.4 root")
    write_pdf(pdf_dir / "physics" / "b.pdf", b"%PDF-1.4 physics")
    write_pdf(pdf_dir / "physics" / "broken.pdf")
    return pdf_dir, covers_dir


@pytest.fixture
def runner():
    return FakeRunner(fail_for=["broken.pdf"])


@pytest.fixture
def client(populated, test_settings, runner):
    """
    TestClient used as a context manager so the startup cover pass runs.
    """
    app = create_app(test_settings, runner=runner)
    with TestClient(app) as c:
        yield c


def test_startup_builds_missing_covers(client, populated, runner):
    _, covers_dir = populated
    summary = client.app.state.covers

    assert (covers_dir / "a.jpg").exists()
    assert (covers_dir / "physics" / "b.jpg").exists()
    assert not (covers_dir / "physics" / "broken.jpg").exists()
    assert (summary.built, summary.failed) == (2, 1)
    # -jpegopt quality + convert -resize from the settings
    assert any("quality=30" in arg for arg in runner.rasterize_calls[0])
    assert any(c[0] == "convert" and "200" in c for c in runner.calls)


def test_startup_skips_existing_covers(populated, test_settings):
    _, covers_dir = populated
    (covers_dir / "physics").mkdir()
    (covers_dir / "physics" / "b.jpg").write_bytes(b"prebuilt")
    runner = FakeRunner()

    with TestClient(create_app(test_settings, runner=runner)):
        pass

    rasterized = [c[-2] for c in runner.rasterize_calls]
    assert not any(p.endswith("b.pdf") for p in rasterized)
    assert (covers_dir / "physics" / "b.jpg").read_bytes() == b"prebuilt"


def test_health_endpoint(client, test_settings):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": test_settings.service_name, "viewers": 0}


def test_api_pdfs_lists_every_pdf(client):
    response = client.get("/api/pdfs")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    items = {i["name"]: i for i in response.json()}
    assert set(items) == {"a.pdf", "b.pdf", "broken.pdf"}
    assert items["a.pdf"] == {
        "name": "a.pdf",
        "category": "general",
        "size": len(b"%PDF-1.4 root"),
        "cover": "/covers/a.jpg",
        "pdf": "/pdfs/a.pdf",
    }
    assert items["b.pdf"]["cover"] == "/covers/physics/b.jpg"
    assert items["b.pdf"]["pdf"] == "/pdfs/physics/b.pdf"
    # Listed even though its cover failed
    assert items["broken.pdf"]["cover"] == "/covers/physics/broken.jpg"


def test_api_pdfs_rescans_on_each_request(client, populated):
    pdf_dir, _ = populated
    before = len(client.get("/api/pdfs").json())

    write_pdf(pdf_dir / "new" / "c.pdf")
    after = client.get("/api/pdfs").json()

    assert len(after) == before + 1
    assert any(i["category"] == "new" for i in after)


def test_static_pdf_and_cover(client):
    pdf = client.get("/pdfs/physics/b.pdf")
    cover = client.get("/covers/physics/b.jpg")

    assert pdf.status_code == 200
    assert pdf.content == b"%PDF-1.4 physics"
    assert cover.status_code == 200
    assert cover.content.startswith(b"\xff\xd8")


def test_missing_cover_is_404(client):
    assert client.get("/covers/physics/broken.jpg").status_code == 404
    assert client.get("/pdfs/nope.pdf").status_code == 404


def test_download_is_logged(client, caplog):
    with caplog.at_level(logging.INFO, logger="shelf"):
        client.get("/pdfs/physics/b.pdf")

    assert "Download: /physics/b.pdf" in caplog.text


def test_index_serves_front_end(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "PDF Shelf" in response.text


def test_scan_error_fails_only_the_request(client, populated, monkeypatch):
    import app.main as main

    def boom(_root):
        raise PermissionError("denied")

    monkeypatch.setattr(main, "build_catalog", boom)

    response = client.get("/api/pdfs")

    assert response.status_code == 500
    assert response.json() == {"detail": "Unable to read PDF library"}
    assert client.get("/health").status_code == 200


def test_socketio_wrapper_passes_http_through(populated, test_settings):
    from app.main import create_asgi

    app = create_app(test_settings, runner=FakeRunner())
    with TestClient(create_asgi(app)) as c:
        response = c.get("/api/pdfs")

    assert response.status_code == 200
    assert len(response.json()) == 3


@pytest.mark.asyncio
async def test_startup_scan_error_is_fatal(tmp_path, test_settings):
    import dataclasses

    from app.main import build_missing_covers

    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")
    cfg = dataclasses.replace(test_settings, pdf_dir=str(not_a_dir))

    with pytest.raises(OSError):
        await build_missing_covers(cfg, runner=FakeRunner())


def test_download_log_decodes_path_once(client, caplog):
    with caplog.at_level(logging.INFO, logger="shelf"):
        client.get("/pdfs/a%2520b.pdf")

    assert "Download: /a%20b.pdf" in caplog.text
    assert "Download: /a b.pdf" not in caplog.text
