import io
import os
import threading

import numpy as np
import pytest

from conftest import write_sample_file
from dataset_aggregator import read_sample_file
from errors import ConfigurationError, PipelineError, TrainingBusyError
from main import TrainingSession, main, record_stream, replay, run_training


def test_end_to_end_two_rows_is_too_small(tmp_path):
    positive = tmp_path / "positive"
    negative = tmp_path / "negative"
    write_sample_file(str(positive / "p.csv"), 199, amplitude=5.0, frequency=3.0)
    write_sample_file(str(negative / "n.csv"), 199, amplitude=0.5, frequency=0.5)
    output_dir = str(tmp_path / "artifacts")

    with pytest.raises(ConfigurationError, match="need at least 13 rows"):
        run_training(str(positive), str(negative), output_dir, window_size=100)

    lines = open(os.path.join(output_dir, "dataset.csv")).read().splitlines()
    assert len(lines) == 3
    assert [line.split(",")[-1] for line in lines[1:]] == ["1", "0"]
    assert all(len(line.split(",")) == 22 for line in lines)


def test_run_training_writes_all_artifacts(corpus, tmp_path):
    positive, negative = corpus
    output_dir = str(tmp_path / "artifacts")
    result = run_training(positive, negative, output_dir, folds=5, seed=0)

    assert 0.0 <= result.test_accuracy <= 1.0
    for name in ["dataset.csv", "normalization_params.txt", "model.joblib", "model_comparison.txt"]:
        assert os.path.exists(os.path.join(output_dir, name))


def test_session_refuses_a_second_run_on_the_same_output(corpus, tmp_path):
    positive, negative = corpus
    output_dir = str(tmp_path / "artifacts")
    first = TrainingSession(output_dir)
    first._claim()
    try:
        with pytest.raises(TrainingBusyError):
            TrainingSession(output_dir).run(positive_dir=positive, negative_dir=negative, folds=5)
        with pytest.raises(TrainingBusyError):
            TrainingSession(output_dir).start(lambda result, error: None,
                                              positive_dir=positive, negative_dir=negative)
    finally:
        first._release()
    assert not first.running


def test_background_run_calls_back_once(corpus, tmp_path):
    positive, negative = corpus
    done = threading.Event()
    calls = []

    def callback(result, error):
        calls.append((result, error))
        done.set()

    session = TrainingSession(str(tmp_path / "artifacts"))
    session.start(callback, positive_dir=positive, negative_dir=negative, folds=5, seed=0)
    assert done.wait(timeout=120)
    session.thread.join(timeout=5)

    assert len(calls) == 1
    result, error = calls[0]
    assert error is None
    assert result.best_name
    assert not session.running


def test_background_run_reports_errors(tmp_path):
    done = threading.Event()
    calls = []

    def callback(result, error):
        calls.append((result, error))
        done.set()

    session = TrainingSession(str(tmp_path / "artifacts"))
    session.start(callback, positive_dir=str(tmp_path / "none"), negative_dir=str(tmp_path / "none2"))
    assert done.wait(timeout=30)

    result, error = calls[0]
    assert result is None
    assert isinstance(error, ConfigurationError)


def test_cli_train_evaluate_replay(corpus, tmp_path):
    positive, negative = corpus
    output_dir = str(tmp_path / "artifacts")
    common = ["-p", positive, "-n", negative, "-o", output_dir]

    assert main(common + ["-k", "5", "-s", "1", "train"]) == 0
    assert main(common + ["evaluate"]) == 0
    assert os.path.exists(os.path.join(output_dir, "confusion_matrix.png"))
    assert main(common + ["-f", os.path.join(positive, "jump_1.csv"), "replay"]) == 0


def test_replay_emits_one_decision_per_cycle(corpus, tmp_path):
    positive, negative = corpus
    output_dir = str(tmp_path / "artifacts")
    run_training(positive, negative, output_dir, folds=5, seed=0)

    decisions = replay(os.path.join(output_dir, "model.joblib"),
                       os.path.join(output_dir, "normalization_params.txt"),
                       os.path.join(positive, "jump_1.csv"))
    # 1500 samples, capacity 200, decimated to 100 -> decisions at 200, 300, ..., 1500
    assert len(decisions) == 14


def test_cli_errors(tmp_path, capsys):
    assert main(["bogus"]) == 2
    assert main(["-x"]) == 2
    assert main([]) == 2
    assert main(["-o", str(tmp_path), "replay"]) == 2
    assert main(["-o", str(tmp_path / "empty"), "evaluate"]) == 1
    assert "ERROR" in capsys.readouterr().out


def test_lock_file_from_another_process_blocks_training(corpus, tmp_path):
    positive, negative = corpus
    output_dir = tmp_path / "artifacts"
    output_dir.mkdir()
    lock_file = output_dir / ".training.lock"
    lock_file.write_text("12345\n")

    with pytest.raises(TrainingBusyError, match="another process"):
        TrainingSession(str(output_dir)).run(positive_dir=positive, negative_dir=negative, folds=5)
    with pytest.raises(TrainingBusyError):
        TrainingSession(str(output_dir)).aggregate(positive, negative)
    # the foreign lock is left alone
    assert lock_file.read_text() == "12345\n"
    assert not (output_dir / "dataset.csv").exists()


def test_lock_file_is_removed_after_each_run(corpus, tmp_path):
    positive, negative = corpus
    output_dir = str(tmp_path / "artifacts")
    session = TrainingSession(output_dir)

    df = session.aggregate(positive, negative, window_size=100)
    assert len(df) == 60
    assert os.path.exists(os.path.join(output_dir, "dataset.csv"))
    assert not os.path.exists(session.lock_path)

    session.run(positive_dir=positive, negative_dir=negative, folds=5, seed=0)
    assert not os.path.exists(session.lock_path)
    assert not session.running


def test_lock_file_is_removed_when_aggregation_fails(tmp_path):
    positive = tmp_path / "positive"
    positive.mkdir()
    (positive / "bad.csv").write_text("time,seconds_elapsed,z,y,x\n1,0.0,oops,0,0\n")
    session = TrainingSession(str(tmp_path / "artifacts"))

    with pytest.raises(PipelineError):
        session.aggregate(str(positive), str(tmp_path / "none"))
    assert not os.path.exists(session.lock_path)


def test_cli_aggregate_respects_the_training_lock(corpus, tmp_path, capsys):
    positive, negative = corpus
    output_dir = str(tmp_path / "artifacts")
    common = ["-p", positive, "-n", negative, "-o", output_dir]

    busy = TrainingSession(output_dir)
    busy._claim()
    try:
        assert main(common + ["aggregate"]) == 1
        assert "ERROR" in capsys.readouterr().out
        assert not os.path.exists(os.path.join(output_dir, "dataset.csv"))
    finally:
        busy._release()

    assert main(common + ["aggregate"]) == 0
    assert os.path.exists(os.path.join(output_dir, "dataset.csv"))


def test_record_stream_writes_a_corpus_file(tmp_path, capsys):
    lines = ["0.5,-1.25,9.75\n", "\n", "1,2\n", "a,b,c\n", "nan,0,0\n", "2.0,3.0,4.0\n"]
    filename = record_stream(lines, str(tmp_path / "positive"), filename_prefix="jump")

    assert os.path.basename(filename).startswith("jump_")
    np.testing.assert_array_equal(read_sample_file(filename), [[0.5, -1.25, 9.75], [2.0, 3.0, 4.0]])
    out = capsys.readouterr().out
    assert "line 3 skipped" in out
    assert "line 4 skipped" in out
    assert "line 5 skipped" in out


def test_cli_record_reads_stdin(tmp_path, monkeypatch):
    target = tmp_path / "negative"
    rows = "".join(f"{i * 0.1:.1f},{i * 0.2:.1f},{i * 0.3:.1f}\n" for i in range(150))
    monkeypatch.setattr("sys.stdin", io.StringIO(rows))

    assert main(["-d", str(target), "record"]) == 0
    files = os.listdir(target)
    assert len(files) == 1
    assert read_sample_file(str(target / files[0])).shape == (150, 3)


def test_cli_record_needs_a_folder(capsys):
    assert main(["record"]) == 2
    assert "needs a corpus folder" in capsys.readouterr().out
