# app/ml/classification/invoker.py
import logging
import subprocess

from app.core.errors import ClassifierError

logger = logging.getLogger(__name__)


class Classifier:
    """
    Anything that turns an image path into a label.
    Tests swap in a fake; production uses SubprocessClassifier.
    """

    def classify(self, image_path: str) -> str:
        raise NotImplementedError


class SubprocessClassifier(Classifier):
    """
    Runs `<python> <script> <image_path>` as a child process.

    stdout is read in full and trimmed into the label.
    stderr is forwarded to the log, it never fails the run on its own.
    """

    def __init__(self, python: str, script: str, cwd: str | None = None):
        self.python = python
        self.script = script
        self.cwd = cwd

    def command(self, image_path: str) -> list[str]:
        return [self.python, self.script, str(image_path)]

    def classify(self, image_path: str) -> str:
        cmd = self.command(image_path)
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.error("Could not start classifier %s: %s", cmd, e)
            raise ClassifierError("spawn-failed") from e

        for line in (proc.stderr or "").splitlines():
            if line.strip():
                logger.warning("Classifier stderr: %s", line)

        if proc.returncode != 0:
            logger.error("Classifier exited with code %s for %s", proc.returncode, image_path)
            raise ClassifierError("nonzero-exit", proc.returncode)

        label = (proc.stdout or "").strip()
        if not label:
            logger.error("Classifier produced no output for %s", image_path)
            raise ClassifierError("empty-output")

        return label
