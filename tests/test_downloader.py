import http.server
import threading

import pytest

from zupdate.downloader import (
    DownloadError,
    FileDownloader,
    file_name_from_url,
    format_progress_bar,
    print_transfer_info,
)


def test_file_name_from_url():
    assert file_name_from_url("https://example.com/dir/update.xml") == "update.xml"
    assert file_name_from_url("https://example.com/dir/") == ""


def test_file_name_from_url_without_slash():
    with pytest.raises(ValueError):
        file_name_from_url("update.xml")


def test_progress_bar_empty():
    assert format_progress_bar(0, 0) == "\r[>" + " " * 59 + "] 0.00 KiB   "


def test_progress_bar_full_in_mib():
    assert format_progress_bar(100, 2 * 1048576) == "\r[" + "=" * 60 + "] 2.00 MiB   "


def test_progress_bar_half():
    text = format_progress_bar(50, 2048)
    bar = text[2:62]
    assert len(bar) == 60
    assert bar.count("=") == 30
    assert bar[30] == ">"
    assert text.endswith("] 2.00 KiB   ")


def test_print_transfer_info_unknown_total(capsys):
    assert print_transfer_info(0, 1024) == 0
    out = capsys.readouterr().out
    assert out == format_progress_bar(0, 1024)


def test_print_transfer_info_complete(capsys):
    assert print_transfer_info(4096, 4096) == 0
    assert capsys.readouterr().out == format_progress_bar(100, 4096)


def test_download_local_file(tmp_path):
    payload = bytes(range(256)) * 1000
    source = tmp_path / "source.bin"
    source.write_bytes(payload)
    dest = tmp_path / "dest.bin"
    calls = []

    def progress(total, now):
        calls.append((total, now))
        return 0

    written = FileDownloader(source.as_uri(), dest, progress).download()
    assert written == len(payload)
    assert dest.read_bytes() == payload
    assert calls[-1] == (len(payload), len(payload))
    assert [now for _, now in calls] == sorted(now for _, now in calls)


def test_download_missing_source(tmp_path):
    dest = tmp_path / "dest.bin"
    missing = (tmp_path / "missing.bin").as_uri()
    with pytest.raises(DownloadError):
        FileDownloader(missing, dest, lambda total, now: 0).download()


def test_download_unwritable_destination(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(b"data")
    dest = tmp_path / "no_such_dir" / "dest.bin"
    with pytest.raises(DownloadError):
        FileDownloader(source.as_uri(), dest, lambda total, now: 0).download()


def test_progress_callback_can_abort(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(b"x" * 200000)
    dest = tmp_path / "dest.bin"
    with pytest.raises(DownloadError):
        FileDownloader(source.as_uri(), dest, lambda total, now: 1).download()


def test_download_over_http_sends_user_agent(tmp_path):
    seen = {}
    body = b"<zupdater/>"

    class Handler(http.server.BaseHTTPRequestHandler):
        def do_GET(self):
            seen["agent"] = self.headers.get("User-Agent")
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = http.server.HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        url = f"http://127.0.0.1:{server.server_port}/files/update.xml"
        dest = tmp_path / file_name_from_url(url)
        written = FileDownloader(url, dest, lambda total, now: 0).download()
    finally:
        server.shutdown()
        server.server_close()
    assert written == len(body)
    assert dest.read_bytes() == body
    assert seen["agent"] == "ZLauncher/1.0.0"