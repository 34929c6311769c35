"""
Output Reporter
Collects the identifiers operators need as each pipeline stage completes.
"""

import json
import threading
from pathlib import Path
from typing import Dict

from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)

SITE = "Site"
CERTIFICATE = "Certificate"
BUCKET = "Bucket"
DISTRIBUTION_ID = "DistributionId"

OUTPUT_KEYS = (SITE, CERTIFICATE, BUCKET, DISTRIBUTION_ID)


class OutputReporter:
    """
    Ordered key/value outputs of a deployment.

    Values are reported the moment they are known, so a run that fails
    half-way still leaves the identifiers of what it created.
    """

    def __init__(self):
        self._outputs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def report(self, key: str, value: str) -> None:
        if key not in OUTPUT_KEYS:
            raise ValueError(f"Unknown output key {key!r}; expected one of {OUTPUT_KEYS}")
        with self._lock:
            self._outputs[key] = value
        logger.info(f"📌 {key}: {value}")

    def get(self, key: str) -> str:
        return self._outputs.get(key, "")

    def as_dict(self) -> Dict[str, str]:
        with self._lock:
            return {key: self._outputs[key] for key in OUTPUT_KEYS if key in self._outputs}

    def write_json(self, path: Path) -> Path:
        """Write the outputs to ``path`` as a JSON object."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.as_dict(), indent=2) + "\n")
        logger.info(f"Outputs written to {path}")
        return path

    def render(self) -> str:
        outputs = self.as_dict()
        if not outputs:
            return "(no outputs)"
        width = max(len(key) for key in outputs)
        return "\n".join(f"{key.ljust(width)} : {value}" for key, value in outputs.items())
