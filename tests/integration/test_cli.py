"""End-to-end tests for the worker and curriculum CLIs."""

import json
from unittest.mock import patch

import pytest

from curation.cli import check_curriculum, run_worker
from curation.models import DataType, Stage
from curation.storage.memory import InMemoryStore

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch):
    """Keep CLIs from reconfiguring logging, installing signal handlers or calling OpenAI."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with patch("curation.cli.run_worker.configure_logging"), patch(
        "curation.cli.check_curriculum.configure_logging"
    ), patch("curation.cli.run_worker.signal.signal"):
        yield


class TestRunWorkerCli:
    def test_once_generates_orthography(self, tmp_path):
        store_file = tmp_path / "store.json"
        checkpoint_file = tmp_path / "checkpoints.json"

        exit_code = run_worker.main(
            ["--store", str(store_file), "--checkpoint-file", str(checkpoint_file), "--once", "--batch-size", "50"]
        )

        assert exit_code == 0
        store = InMemoryStore.load(store_file)
        assert len(store.items_in_stage(Stage.VALIDATED, DataType.ORTHOGRAPHY)) == 26
        checkpoints = json.loads(checkpoint_file.read_text())
        assert checkpoints["refinement_service"]["last_processed_id"] == "ortho_EN"

    def test_drain_promotes_existing_drafts(self, tmp_path, meaning_payload):
        store_file = tmp_path / "store.json"
        seed = InMemoryStore()
        for word in ["casa", "sol", "mar"]:
            seed.insert_draft(DataType.MEANING, {**meaning_payload, "word": word})
        seed.save(store_file)

        exit_code = run_worker.main(
            [
                "--store",
                str(store_file),
                "--checkpoint-file",
                str(tmp_path / "checkpoints.json"),
                "--drain",
                "--auto-approval",
            ]
        )

        assert exit_code == 0
        assert len(InMemoryStore.load(store_file).items_in_stage(Stage.APPROVED)) == 3


class TestCheckCurriculumCli:
    @pytest.fixture
    def nodes_file(self, tmp_path):
        def _write(nodes):
            path = tmp_path / "nodes.json"
            path.write_text(json.dumps(nodes))
            return str(path)

        return _write

    def test_prints_order(self, nodes_file, capsys):
        path = nodes_file(
            [
                {"concept_id": "greetings", "language": "ES", "level": "A1", "concept_type": "vocabulary",
                 "priority_order": 2, "prerequisites_and": ["alphabet"]},
                {"concept_id": "alphabet", "language": "ES", "level": "A0", "concept_type": "orthography",
                 "priority_order": 1},
            ]
        )

        assert check_curriculum.main(["--file", path]) == 0
        assert "ES (2 concepts): alphabet -> greetings" in capsys.readouterr().out

    def test_cycle_fails(self, nodes_file, capsys):
        path = nodes_file(
            [
                {"concept_id": "a", "language": "EN", "level": "A1", "concept_type": "grammar", "prerequisites_and": ["b"]},
                {"concept_id": "b", "language": "EN", "level": "A1", "concept_type": "grammar", "prerequisites_and": ["a"]},
            ]
        )

        assert check_curriculum.main(["--file", path]) == 1
        assert "Cycle detected" in capsys.readouterr().err

    def test_duplicate_concept_id_fails(self, nodes_file, capsys):
        path = nodes_file(
            [
                {"concept_id": "a", "language": "EN", "level": "A1", "concept_type": "grammar"},
                {"concept_id": "a", "language": "EN", "level": "A2", "concept_type": "grammar", "priority_order": 2},
                {"concept_id": "a", "language": "ES", "level": "A1", "concept_type": "grammar"},
            ]
        )

        assert check_curriculum.main(["--file", path]) == 1
        captured = capsys.readouterr()
        assert "EN: Duplicate concept id a" in captured.err
        assert "ES (1 concepts): a" in captured.out

    def test_self_prerequisite_reported_as_cycle(self, nodes_file, capsys):
        path = nodes_file(
            [{"concept_id": "a", "language": "EN", "level": "A1", "concept_type": "grammar", "prerequisites_or": ["a"]}]
        )

        assert check_curriculum.main(["--file", path]) == 1
        assert "EN: Cycle detected in curriculum graph for EN: a" in capsys.readouterr().err

    def test_malformed_node_fails(self, nodes_file):
        path = nodes_file([{"concept_id": "a", "language": "EN", "level": "Z9", "concept_type": "grammar"}])
        assert check_curriculum.main(["--file", path]) == 1

    def test_import_into_store(self, nodes_file, tmp_path):
        path = nodes_file(
            [{"concept_id": "alphabet", "language": "IT", "level": "A0", "concept_type": "orthography"}]
        )
        store_file = tmp_path / "store.json"

        assert check_curriculum.main(["--file", path, "--import-into", str(store_file)]) == 0
        assert [n.concept_id for n in InMemoryStore.load(store_file).list_nodes("IT")] == ["alphabet"]
