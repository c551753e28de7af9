"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from commitments.cli import main

REFERENCE = "2025-06-02T09:00:00+00:00"


class FakeBackend:
    def __init__(self, tasks=()):
        self.tasks = list(tasks)
        self.calls = 0

    async def generate(self, system_prompt, user_prompt):
        self.calls += 1
        return json.dumps({"tasks": self.tasks})

    async def transcribe_image(self, image, prompt, max_tokens=4096):
        return ""


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend(
        [{"title": "Send the invoice to Dana", "due_date_raw": "next Friday"}]
    )
    monkeypatch.setattr("commitments.cli.get_backend", lambda config: fake)
    return fake


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    monkeypatch.setattr("commitments.config.load_dotenv", lambda: False)
    for key in ("IDENTITY_PATH", "MAX_UPLOAD_BYTES", "STORE_ENDPOINT", "STORE_API_KEY"):
        monkeypatch.delenv(key, raising=False)


def invoke(*args, input=None):
    return CliRunner().invoke(main, list(args), input=input)


class TestTextCommand:

    def test_captures_from_argument(self, backend, tmp_path):
        result = invoke(
            "text",
            "I'll send the invoice to Dana by next Friday.",
            "--source", "meeting",
            "--reference", REFERENCE,
            "--output-dir", str(tmp_path),
        )

        assert result.exit_code == 0, result.output
        assert "Captured 1 commitment(s) from text" in result.output
        assert "Send the invoice to Dana (due 2025-06-13)" in result.output
        assert len(list(tmp_path.glob("*.md"))) == 1
        assert (tmp_path / "capture.log").exists()

    def test_reads_stdin(self, backend, tmp_path):
        result = invoke(
            "text", "--reference", REFERENCE, "--output-dir", str(tmp_path),
            input="I'll send the invoice to Dana by next Friday.\n",
        )

        assert result.exit_code == 0, result.output
        assert backend.calls == 1

    def test_blank_text_fails(self, backend, tmp_path):
        result = invoke("text", "   ", "--output-dir", str(tmp_path))

        assert result.exit_code == 1
        assert "Text extraction failed" in result.output
        assert backend.calls == 0
        assert list(tmp_path.glob("*.md")) == []

    def test_json_output(self, backend, tmp_path):
        result = invoke(
            "text", "I'll send the invoice to Dana by next Friday.",
            "--reference", REFERENCE, "--output-dir", str(tmp_path), "--json",
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["status"] == "completed"
        assert payload["commitments"][0]["due_date"] == "2025-06-13"
        assert payload["commitments"][0]["status"] == "open"

    def test_invalid_source(self, backend, tmp_path):
        result = invoke("text", "hello", "--source", "podcast", "--output-dir", str(tmp_path))
        assert result.exit_code == 2

    def test_invalid_reference(self, backend, tmp_path):
        result = invoke("text", "hello", "--reference", "next tuesday", "--output-dir", str(tmp_path))
        assert result.exit_code == 2

    def test_push(self, backend, tmp_path, monkeypatch):
        pushed = []

        def fake_push(result):
            pushed.append(result)
            return {"status": "complete", "note_id": "n1", "tasks": 1}

        monkeypatch.setattr("commitments.cli.pipe_to_store", fake_push)
        result = invoke(
            "text", "I'll send the invoice.", "--output-dir", str(tmp_path), "--push",
        )

        assert result.exit_code == 0, result.output
        assert "Store: complete" in result.output
        assert len(pushed) == 1


class TestFileCommand:

    def test_markdown_file(self, backend, tmp_path):
        notes = tmp_path / "notes.md"
        notes.write_text("# Standup\nI'll send the invoice to Dana by next Friday.")

        result = invoke(
            "file", str(notes), "--reference", REFERENCE,
            "--output-dir", str(tmp_path / "out"),
        )

        assert result.exit_code == 0, result.output
        assert "from notes.md" in result.output
        log = (tmp_path / "out" / "capture.log").read_text()
        assert "notes.md\tother\tcompleted\t1\t1" in log

    def test_declared_type_overrides_suffix(self, backend, tmp_path):
        notes = tmp_path / "notes.bin"
        notes.write_text("I'll send the invoice to Dana.")

        result = invoke(
            "file", str(notes), "--type", "text/plain", "--output-dir", str(tmp_path / "out"),
        )

        assert result.exit_code == 0, result.output

    def test_unsupported_file(self, backend, tmp_path):
        archive = tmp_path / "bundle.zip"
        archive.write_bytes(b"PK\x03\x04")

        result = invoke("file", str(archive), "--output-dir", str(tmp_path / "out"))

        assert result.exit_code == 1
        assert "Unsupported file type" in result.output
        assert backend.calls == 0
        assert list((tmp_path / "out").glob("*.md")) == []
        log = (tmp_path / "out" / "capture.log").read_text()
        assert "bundle.zip\tother\tdecode_failed\t0\t0" in log

    def test_file_too_large(self, backend, tmp_path, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "10")
        notes = tmp_path / "notes.txt"
        notes.write_text("I'll send the invoice to Dana by next Friday.")

        result = invoke("file", str(notes), "--output-dir", str(tmp_path / "out"))

        assert result.exit_code == 2
        assert "File too large" in result.output
        assert backend.calls == 0

    def test_missing_file(self, backend, tmp_path):
        result = invoke("file", str(tmp_path / "nope.txt"))
        assert result.exit_code == 2
