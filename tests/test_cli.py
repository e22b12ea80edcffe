"""Tests for the command-line front end."""

import functools

import pytest

from conftest import FakeFetcher
from sitelinkcheck import __main__ as cli
from sitelinkcheck.collector import ErrorRecord
from sitelinkcheck.session import CrawlSession, CrawlStatus


@pytest.fixture
def fake_site(monkeypatch):
    fetcher = FakeFetcher(
        pages={
            "http://x.test/": '<img src="/a.png"><a href="/b">b</a>',
            "http://x.test/b": "<p>b</p>",
        },
        resources={"http://x.test/a.png": 404},
    )
    monkeypatch.setattr(cli, "CrawlSession", functools.partial(CrawlSession, fetcher_factory=fetcher))
    return fetcher


class TestParseArgs:

    def test_defaults(self):
        config = cli.parse_args(["--url", "http://x.test/"])
        assert config.start_url == "http://x.test/"
        assert config.page_limit == 10000
        assert config.concurrency == 10
        assert config.timeout == 30
        assert config.output_file == "error_details.csv"
        assert config.verbose is False

    def test_options(self):
        config = cli.parse_args([
            "--url", "https://example.com/",
            "--max-pages", "50",
            "--concurrency", "4",
            "--timeout", "2.5",
            "--output", "out/report.csv",
            "--verbose",
        ])
        assert config.page_limit == 50
        assert config.concurrency == 4
        assert config.timeout == 2.5
        assert config.output_file == "out/report.csv"
        assert config.verbose is True

    def test_url_required(self, capsys):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    @pytest.mark.parametrize("option", ["--max-pages", "--concurrency"])
    def test_non_positive_values_rejected(self, option, capsys):
        with pytest.raises(SystemExit):
            cli.parse_args(["--url", "http://x.test/", option, "0"])
        assert "must be at least 1" in capsys.readouterr().err


class TestMain:

    def test_broken_resources_written_to_report(self, fake_site, tmp_path, capsys):
        report = tmp_path / "errors.csv"
        code = cli.main(["--url", "http://x.test/", "--output", str(report)])

        assert code == 1
        assert report.read_text(encoding="utf-8").splitlines() == [
            "PageURL,ResourceURL,ErrorCode",
            "http://x.test/,http://x.test/a.png,404",
        ]
        out = capsys.readouterr().out
        assert "[BROKEN] HTTP 404: http://x.test/a.png" in out
        assert "Pages visited:     2" in out

    def test_clean_site_exits_zero(self, fake_site, tmp_path, capsys):
        fake_site.resources.clear()
        report = tmp_path / "errors.csv"
        code = cli.main(["--url", "http://x.test/", "--output", str(report)])

        assert code == 0
        assert not report.exists()
        assert "No error pages to save." in capsys.readouterr().out

    def test_invalid_seed(self, fake_site, capsys):
        assert cli.main(["--url", "not a url"]) == 2
        assert "[ERROR]" in capsys.readouterr().out


class TestConsoleListener:

    def test_diagnostics_only_when_verbose(self, capsys):
        cli.ConsoleListener(verbose=False).on_diagnostic("http://x.test/a", "Connection refused")
        assert capsys.readouterr().out == ""

        cli.ConsoleListener(verbose=True).on_diagnostic("http://x.test/a", "Connection refused")
        assert "[WARN] Connection refused: http://x.test/a" in capsys.readouterr().out

    def test_progress_and_finish(self, capsys):
        listener = cli.ConsoleListener()
        listener.on_progress(3, 10, "http://x.test/c")
        listener.on_error(ErrorRecord("http://x.test/c", "http://x.test/c.css", 403))
        listener.on_finished(CrawlStatus.CANCELLED, 3, 1)
        out = capsys.readouterr().out
        assert "[3/10] http://x.test/c" in out
        assert "[BROKEN] HTTP 403: http://x.test/c.css" in out
        assert "[DONE] Crawl cancelled. 3 page(s), 1 broken resource(s)." in out
