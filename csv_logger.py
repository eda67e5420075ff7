"""
CSV sample recorder with threading support
Writes live (z, y, x) samples in the corpus file layout read by the dataset aggregator
"""
import csv
import os
import queue
import threading
import time
from datetime import datetime

from model_config import RECORDER_QUEUE_SIZE, SAMPLE_HEADER


class SampleRecorder:
    """
    Asynchronous recorder that writes samples in a separate thread
    so the sensor callback never waits on disk.
    """

    def __init__(self, directory, filename_prefix="sample", queue_size=RECORDER_QUEUE_SIZE):
        """
        Args:
            directory: class folder of the corpus (e.g. sampledata/positive)
            filename_prefix: base name for the CSV file (timestamp will be appended)
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self.filename = os.path.join(directory, f"{filename_prefix}_{timestamp}.csv")

        self.data_queue = queue.Queue(maxsize=queue_size)
        self.stop_event = threading.Event()
        self.writer_thread = None

        self.csv_file = None
        self.csv_writer = None
        self.start_time = None
        self.samples_written = 0
        self.samples_dropped = 0

    def start(self):
        """Create the file, write the header and start the writer thread"""
        os.makedirs(os.path.dirname(self.filename) or '.', exist_ok=True)
        self.csv_file = open(self.filename, 'w', newline='', encoding='utf-8')
        self.csv_writer = csv.writer(self.csv_file, lineterminator='\n')
        self.csv_writer.writerow(SAMPLE_HEADER)
        self.csv_file.flush()
        self.start_time = time.time()

        self.writer_thread = threading.Thread(target=self._writer_loop, daemon=True)
        self.writer_thread.start()
        print(f"Recorder: Started writing to {self.filename}")

    def log_sample(self, z, y, x, timestamp=None):
        """
        Queue one sample for writing
        Returns False if the queue was full and the sample was dropped
        """
        if timestamp is None:
            timestamp = time.time()
        try:
            self.data_queue.put((timestamp, float(z), float(y), float(x)), timeout=0.001)
        except queue.Full:
            self.samples_dropped += 1
            print("WARNING: Recorder queue full, dropping sample")
            return False
        return True

    def _write(self, item):
        timestamp, z, y, x = item
        time_ns = int(timestamp * 1e9)
        elapsed = timestamp - self.start_time
        self.csv_writer.writerow([time_ns, f"{elapsed:.6f}", repr(z), repr(y), repr(x)])
        self.samples_written += 1

    def _writer_loop(self):
        while not self.stop_event.is_set():
            try:
                item = self.data_queue.get(timeout=0.1)
            except queue.Empty:
                self.csv_file.flush()
                continue

            self._write(item)
            if self.data_queue.qsize() < 100:
                self.csv_file.flush()

    def stop(self):
        """Stop the writer, drain what is left in the queue and close the file"""
        self.stop_event.set()
        if self.writer_thread:
            self.writer_thread.join(timeout=2.0)

        while True:
            try:
                item = self.data_queue.get_nowait()
            except queue.Empty:
                break
            self._write(item)

        if self.csv_file:
            self.csv_file.flush()
            self.csv_file.close()
            self.csv_file = None

        print(f"Recorder: Closed {self.filename} ({self.samples_written} samples, "
              f"{self.samples_dropped} dropped)")
        return self.filename

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
