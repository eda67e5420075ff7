"""handles the training pipeline, background training runs and user commands"""
import getopt
import math
import os
import sys
import threading

from csv_logger import SampleRecorder
from dataset_aggregator import aggregate_positive_negative, load_dataset, read_sample_file
from errors import PipelineError, TrainingBusyError
from evaluate_model import evaluate_dataset, plot_confusion_matrix, print_evaluation
from inference_loop import load_inference_session
from model_config import (CONFUSION_MATRIX_FILE_NAME, CV_FOLDS, DATASET_FILE_NAME, MODEL_FILE_NAME,
                          NEGATIVE_DIR, NORMALIZATION_PARAMS_FILE_NAME, OUTPUT_DIR, POSITIVE_DIR,
                          RANDOM_SEED, REPORT_FILE_NAME, SPLIT_RATIO, TRAINING_LOCK_FILE_NAME,
                          WINDOW_SIZE)
from model_selector import (default_candidates, persist_selection, select_and_evaluate,
                            write_comparison_report)


def artifact_paths(output_dir):
    return {
        'dataset': os.path.join(output_dir, DATASET_FILE_NAME),
        'params': os.path.join(output_dir, NORMALIZATION_PARAMS_FILE_NAME),
        'model': os.path.join(output_dir, MODEL_FILE_NAME),
        'report': os.path.join(output_dir, REPORT_FILE_NAME),
    }


def run_training(positive_dir=POSITIVE_DIR, negative_dir=NEGATIVE_DIR, output_dir=OUTPUT_DIR,
                 window_size=WINDOW_SIZE, folds=CV_FOLDS, split_ratio=SPLIT_RATIO, seed=RANDOM_SEED,
                 candidates=None):
    """Aggregate the corpus, select the best classifier and persist model + normalization params"""
    paths = artifact_paths(output_dir)
    os.makedirs(output_dir, exist_ok=True)

    print("=== Training ===")
    print("1. Aggregating sample corpus...")
    aggregate_positive_negative(positive_dir, negative_dir, paths['dataset'], window_size)
    dataset = load_dataset(paths['dataset'])

    print("\n2. Selecting classifier...")
    if candidates is None:
        candidates = default_candidates(seed)
    result = select_and_evaluate(dataset, candidates, split_ratio=split_ratio, folds=folds, seed=seed)

    print("\n3. Saving artifacts...")
    persist_selection(result, paths['model'], paths['params'], window_size=window_size)
    write_comparison_report(result, paths['report'])
    print(f"Report saved to {paths['report']}")

    print("\n=== Training Complete! ===")
    return result


class TrainingSession:
    """
    One training run at a time per output directory.
    The aggregator truncates the dataset file, so two runs writing the same
    directory would corrupt each other. Threads of one process are excluded by
    a registry; other processes by a lock file created with O_EXCL in the
    output directory (delete it by hand if a run was killed).
    """
    _active_outputs = set()
    _registry_lock = threading.Lock()

    def __init__(self, output_dir=OUTPUT_DIR):
        self.output_dir = os.path.abspath(output_dir)
        self.lock_path = os.path.join(self.output_dir, TRAINING_LOCK_FILE_NAME)
        self.thread = None

    def _claim(self):
        with TrainingSession._registry_lock:
            if self.output_dir in TrainingSession._active_outputs:
                raise TrainingBusyError(f"a training run is already writing to {self.output_dir}")
            os.makedirs(self.output_dir, exist_ok=True)
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError as e:
                raise TrainingBusyError(
                    f"{self.lock_path} exists, another process is writing to {self.output_dir}") from e
            with os.fdopen(fd, 'w') as f:
                f.write(f"{os.getpid()}\n")
            TrainingSession._active_outputs.add(self.output_dir)

    def _release(self):
        with TrainingSession._registry_lock:
            if self.output_dir in TrainingSession._active_outputs:
                TrainingSession._active_outputs.discard(self.output_dir)
                try:
                    os.remove(self.lock_path)
                except FileNotFoundError:
                    pass

    @property
    def running(self):
        with TrainingSession._registry_lock:
            return self.output_dir in TrainingSession._active_outputs

    def run(self, **kwargs):
        """Run synchronously on the calling thread"""
        self._claim()
        try:
            return run_training(output_dir=self.output_dir, **kwargs)
        finally:
            self._release()

    def aggregate(self, positive_dir=POSITIVE_DIR, negative_dir=NEGATIVE_DIR, window_size=WINDOW_SIZE):
        """Rebuild only the dataset file, under the same guard as a training run"""
        self._claim()
        try:
            return aggregate_positive_negative(positive_dir, negative_dir,
                                               artifact_paths(self.output_dir)['dataset'], window_size)
        finally:
            self._release()

    def start(self, callback, **kwargs):
        """
        Run on a background thread; callback(result, error) is called exactly once.
        Raises TrainingBusyError right away if the directory is taken.
        """
        self._claim()

        def worker():
            result, error = None, None
            try:
                result = run_training(output_dir=self.output_dir, **kwargs)
            except Exception as e:
                error = e
                print(f"ERROR: Training failed: {e}")
            finally:
                self._release()
            callback(result, error)

        self.thread = threading.Thread(target=worker, daemon=True)
        self.thread.start()
        return self.thread


def replay(model_path, params_path, sample_file):
    """Stream a recorded sample file through the runtime loop, one decision per buffer cycle"""
    loop = load_inference_session(model_path, params_path)
    decisions = []
    for sample in read_sample_file(sample_file):
        decision = loop.add_sample(sample)
        if decision is not None:
            decisions.append(decision)
            print(f"Decision {len(decisions)}: {'JUMP' if decision else '-'}")
    print(f"{len(decisions)} decisions, {sum(decisions)} jumps")
    return decisions


def record_stream(lines, directory, filename_prefix="sample"):
    """
    Record "z,y,x" lines from an external sensor source (e.g. a pipe on stdin)
    into a new corpus file of directory.
    """
    with SampleRecorder(directory, filename_prefix=filename_prefix) as recorder:
        for line_number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            fields = line.split(",")
            if len(fields) < 3:
                print(f"WARNING: line {line_number} skipped, expected z,y,x: {line!r}")
                continue
            try:
                z, y, x = (float(v) for v in fields[:3])
            except ValueError:
                print(f"WARNING: line {line_number} skipped, non-numeric: {line!r}")
                continue
            if not (math.isfinite(z) and math.isfinite(y) and math.isfinite(x)):
                print(f"WARNING: line {line_number} skipped, non-finite: {line!r}")
                continue
            recorder.log_sample(z, y, x)
    return recorder.filename


def print_usage():
    print("usage: python main.py [options] <aggregate|train|evaluate|replay|record>")
    print("  -p, --positive DIR   positive sample folder (default: %s)" % POSITIVE_DIR)
    print("  -n, --negative DIR   negative sample folder (default: %s)" % NEGATIVE_DIR)
    print("  -o, --output DIR     artifact folder (default: %s)" % OUTPUT_DIR)
    print("  -w, --window N       samples per window (default: %d)" % WINDOW_SIZE)
    print("  -k, --folds N        cross validation folds (default: %d)" % CV_FOLDS)
    print("  -s, --seed N         shuffle seed (default: %d)" % RANDOM_SEED)
    print("  -f, --file PATH      sample file for replay")
    print("  -d, --dir DIR        corpus folder that record writes to (reads z,y,x lines on stdin)")


def main(argv):
    positive_dir = POSITIVE_DIR
    negative_dir = NEGATIVE_DIR
    output_dir = OUTPUT_DIR
    window_size = WINDOW_SIZE
    folds = CV_FOLDS
    seed = RANDOM_SEED
    sample_file = None
    record_dir = None

    # Get options and arguments
    try:
        opts, args = getopt.getopt(argv, 'hp:n:o:w:k:s:f:d:',
                                   ['help', 'positive=', 'negative=', 'output=', 'window=',
                                    'folds=', 'seed=', 'file=', 'dir='])
    except getopt.GetoptError as e:
        print(f"ERROR: {e}")
        print_usage()
        return 2

    for opt, arg in opts:
        if opt in ('-h', '--help'):
            print_usage()
            return 0
        elif opt in ('-p', '--positive'):
            positive_dir = arg
        elif opt in ('-n', '--negative'):
            negative_dir = arg
        elif opt in ('-o', '--output'):
            output_dir = arg
        elif opt in ('-w', '--window'):
            window_size = int(arg)
        elif opt in ('-k', '--folds'):
            folds = int(arg)
        elif opt in ('-s', '--seed'):
            seed = int(arg)
        elif opt in ('-f', '--file'):
            sample_file = arg
        elif opt in ('-d', '--dir'):
            record_dir = arg

    if len(args) != 1:
        print_usage()
        return 2

    paths = artifact_paths(output_dir)
    try:
        match args[0]:
            case "aggregate":
                TrainingSession(output_dir).aggregate(positive_dir, negative_dir, window_size)
            case "train":
                TrainingSession(output_dir).run(positive_dir=positive_dir, negative_dir=negative_dir,
                                                window_size=window_size, folds=folds, seed=seed)
            case "evaluate":
                results = evaluate_dataset(paths['model'], paths['params'], paths['dataset'])
                print_evaluation(results)
                out_file = plot_confusion_matrix(results['confusion_matrix'], results['labels'],
                                                 os.path.join(output_dir, CONFUSION_MATRIX_FILE_NAME),
                                                 title=f"Confusion Matrix (Accuracy: {results['accuracy']:.2%})")
                print(f"\nPlot saved to {out_file}")
            case "replay":
                if sample_file is None:
                    print("ERROR: replay needs a sample file (-f)")
                    return 2
                replay(paths['model'], paths['params'], sample_file)
            case "record":
                if record_dir is None:
                    print("ERROR: record needs a corpus folder (-d)")
                    return 2
                record_stream(sys.stdin, record_dir)
            case _:
                print(f"Invalid command '{args[0]}'! Use: aggregate, train, evaluate, replay, record")
                return 2
    except (PipelineError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    return 0


def console_main():
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    console_main()
