from __future__ import annotations

from conftest import FakeDictionary, FakeRasterizer, FakeSpeechEngine, FakeWriter, ok_payload

from vocab_reader import cli
from vocab_reader.export import ExportPipeline
from vocab_reader.session import Session


def fake_session(dictionary, rasterizer=None) -> Session:
    return Session(
        dictionary=dictionary,
        speech_engine=FakeSpeechEngine(),
        exporter=ExportPipeline(rasterizer or FakeRasterizer(), FakeWriter),
    )


def test_prints_annotations_most_recent_first(tmp_path, monkeypatch, capsys, writers) -> None:
    article = tmp_path / "article.txt"
    article.write_text("Hello world. 你好世界。", encoding="utf-8")
    picks = tmp_path / "picks.txt"
    picks.write_text("你好\n\n", encoding="utf-8")

    dictionary = FakeDictionary(
        {
            "world": ok_payload(translation=["世界"], phonetic="wɜːld"),
            "你好": ok_payload(translation=["hello"]),
        }
    )
    monkeypatch.setattr(cli, "build_session", lambda font_path="", scale=2.0: fake_session(dictionary))

    rc = cli.main(["--input", str(article), "--select", "world", "--select-file", str(picks)])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert sorted(lines) == sorted(["world [wɜːld]: 世界", "你好: hello"])
    assert writers == []


def test_exports_pdf(tmp_path, monkeypatch, capsys, writers) -> None:
    article = tmp_path / "article.txt"
    article.write_text("Hello world", encoding="utf-8")
    out = tmp_path / "notes.pdf"
    monkeypatch.setattr(cli, "build_session", lambda font_path="", scale=2.0: fake_session(FakeDictionary()))

    rc = cli.main(["--input", str(article), "--select", "world", "--out", str(out)])

    assert rc == 0
    assert writers[0].saved_to == [out]
    assert "Wrote 2 page(s)" in capsys.readouterr().out


def test_export_failure_exit_code(tmp_path, monkeypatch, capsys, writers) -> None:
    article = tmp_path / "article.txt"
    article.write_text("Hello", encoding="utf-8")
    broken = FakeRasterizer(error=RuntimeError("no canvas"))
    monkeypatch.setattr(
        cli, "build_session", lambda font_path="", scale=2.0: fake_session(FakeDictionary(), broken)
    )

    rc = cli.main(["--input", str(article), "--out", str(tmp_path / "x.pdf")])

    assert rc == 1
    err = capsys.readouterr().err
    assert "no selections given" in err
    assert "ERROR:" in err
