# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Log aggregation and tailing for containers.
"""
import logging
import re
import subprocess
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..MODELS.container import ContainerInfo
from ..MODELS.log_event import LogEvent

logger = logging.getLogger(__name__)

LogListener = Callable[[LogEvent], None]
StreamFactory = Callable[[ContainerInfo, Optional[datetime]], Iterable[str]]

_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


def parse_docker_timestamp(raw: str) -> Optional[datetime]:
    """
    Parses an RFC3339Nano timestamp as printed by `docker logs --timestamps`.
    The fraction is truncated to microseconds.

    :param raw: The timestamp text.
    :return: An aware datetime, or None if `raw` is not a timestamp.
    """
    match = _TIMESTAMP.match(raw)
    if not match:
        return None
    base, fraction, zone = match.groups()
    micros = (fraction or "")[:6].ljust(6, "0")
    zone = "+00:00" if zone == "Z" else zone
    return datetime.fromisoformat(f"{base}.{micros}{zone}")


class LogAggregator:
    """
    Follows the logs of several containers in background threads and fans
    every line out to the registered listeners exactly once.

    A high-water mark is kept per container so that resuming a capture
    (after a restart of the container, or a second start) does not deliver
    old lines again. Captured history is replayed to listeners registered late.
    """
    def __init__(self, stream_factory: Optional[StreamFactory] = None, docker_command: str = "docker"):
        """
        Initializes the log aggregator.

        :param stream_factory: Returns the timestamped log lines of a container
            starting at a floor; defaults to following `docker logs`.
        :param docker_command: Docker executable used by the default stream factory.
        """
        self.docker_command = docker_command
        self._stream_factory = stream_factory or self._docker_log_stream
        self._listeners: List[LogListener] = []
        self._history: List[LogEvent] = []
        self._high_water: Dict[str, Tuple[datetime, Set[str]]] = {}
        self._captures: Dict[str, threading.Thread] = {}
        self._lock = threading.RLock()

    def register_log_listener(self, listener: LogListener, containers: Iterable[Optional[ContainerInfo]]):
        """
        Registers a listener, replays the history captured so far to it and
        makes sure the given containers are being followed. Does not block.

        :param listener: Called with every LogEvent.
        :param containers: Containers of the environment.
        """
        with self._lock:
            self._listeners.append(listener)
            for event in self._history:
                self._notify(listener, event)
        self.ensure_capturing_logs(None, containers)

    def ensure_capturing_logs(self, since: Optional[datetime], containers: Iterable[Optional[ContainerInfo]]):
        """
        Starts following containers that are not followed yet.
        Containers seen before resume from their high-water mark, new ones from `since`.

        :param since: Floor for containers never captured, None for their whole log.
        :param containers: Containers to follow.
        """
        with self._lock:
            for container in containers:
                if container is None:
                    continue
                capture = self._captures.get(container.id)
                if capture is not None and capture.is_alive():
                    continue
                mark = self._high_water.get(container.id)
                floor = mark[0] if mark else since
                thread = threading.Thread(
                    target=self._capture,
                    args=(container, floor),
                    name=f"m2c-logs-{container.service_name}",
                    daemon=True,
                )
                self._captures[container.id] = thread
                thread.start()

    def get_history(self) -> List[LogEvent]:
        """Get every event delivered so far."""
        with self._lock:
            return list(self._history)

    def is_capturing(self) -> bool:
        """True while at least one container is being followed."""
        with self._lock:
            return any(t.is_alive() for t in self._captures.values())

    def join(self, timeout: Optional[float] = None):
        """
        Waits for the current captures to end, which happens when their containers stop.

        :param timeout: Seconds to wait per capture.
        """
        with self._lock:
            threads = list(self._captures.values())
        for thread in threads:
            thread.join(timeout)

    def _capture(self, container: ContainerInfo, floor: Optional[datetime]):
        try:
            for line in self._stream_factory(container, floor):
                self._accept(container, line)
        except Exception as e:
            logger.warning("Log capture of %s stopped: %s", container.service_name, e)

    def _accept(self, container: ContainerInfo, line: str):
        line = line.rstrip("\r\n")
        if not line:
            return
        raw_timestamp, _, message = line.partition(" ")
        timestamp = parse_docker_timestamp(raw_timestamp)
        if timestamp is None:
            timestamp, message = None, line

        with self._lock:
            if timestamp is not None:
                mark = self._high_water.get(container.id)
                if mark is not None and timestamp < mark[0]:
                    return
                if mark is not None and timestamp == mark[0]:
                    if message in mark[1]:
                        return
                    mark[1].add(message)
                else:
                    self._high_water[container.id] = (timestamp, {message})

            event = LogEvent(
                service=container.service_name,
                container_id=container.id,
                message=message,
                timestamp=timestamp,
            )
            self._history.append(event)
            for listener in self._listeners:
                self._notify(listener, event)

    def _notify(self, listener: LogListener, event: LogEvent):
        try:
            listener(event)
        except Exception:
            logger.exception("Log listener failed on event from %s", event.service)

    def _docker_log_stream(self, container: ContainerInfo, since: Optional[datetime]) -> Iterator[str]:
        command = [self.docker_command, "logs", "--follow", "--timestamps"]
        if since is not None:
            command += ["--since", f"{since.timestamp():.6f}"]
        command.append(container.id)

        process = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            shell=False,
        )
        try:
            for line in process.stdout:
                yield line
        finally:
            if process.poll() is None:
                process.terminate()
            process.stdout.close()
            process.wait()
