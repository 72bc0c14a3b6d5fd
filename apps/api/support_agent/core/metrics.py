from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Iterable

_lock = Lock()

_HTTP_LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _labels(**labels: str) -> str:
    if not labels:
        return ""
    ordered = [f'{k}="{_escape_label(v)}"' for k, v in sorted(labels.items())]
    return "{" + ",".join(ordered) + "}"


class _Counter:
    def __init__(self, name: str, help_text: str, label_names: tuple[str, ...] = ()):
        self.name = name
        self.help_text = help_text
        self.label_names = label_names
        self.values: dict[tuple[str, ...], float] = defaultdict(float)

    def inc(self, amount: float = 1, **labels: str) -> None:
        self.values[tuple(labels[name] for name in self.label_names)] += amount

    def clear(self) -> None:
        self.values.clear()

    def render(self) -> Iterable[str]:
        yield f"# HELP {self.name} {self.help_text}"
        yield f"# TYPE {self.name} counter"
        if not self.label_names and not self.values:
            yield f"{self.name} 0"
        for key, value in sorted(self.values.items()):
            labels = _labels(**dict(zip(self.label_names, key)))
            yield f"{self.name}{labels} {int(value) if float(value).is_integer() else value}"


class _Histogram:
    def __init__(self, name: str, help_text: str, buckets: tuple[float, ...]):
        self.name = name
        self.help_text = help_text
        self.buckets = buckets
        self.bucket_counts: dict[tuple[str, str, str], int] = defaultdict(int)
        self.sums: dict[tuple[str, str], float] = defaultdict(float)
        self.counts: dict[tuple[str, str], int] = defaultdict(int)

    def observe(self, value: float, *, route: str, method: str) -> None:
        key = (route, method)
        self.sums[key] += value
        self.counts[key] += 1
        for upper_bound in self.buckets:
            if value <= upper_bound:
                self.bucket_counts[(route, method, str(upper_bound))] += 1
        self.bucket_counts[(route, method, "+Inf")] += 1

    def clear(self) -> None:
        self.bucket_counts.clear()
        self.sums.clear()
        self.counts.clear()

    def render(self) -> Iterable[str]:
        yield f"# HELP {self.name} {self.help_text}"
        yield f"# TYPE {self.name} histogram"
        for (route, method, le), value in sorted(self.bucket_counts.items()):
            yield f"{self.name}_bucket{_labels(route=route, method=method, le=le)} {value}"
        for (route, method), value in sorted(self.counts.items()):
            yield f"{self.name}_count{_labels(route=route, method=method)} {value}"
        for (route, method), value in sorted(self.sums.items()):
            yield f"{self.name}_sum{_labels(route=route, method=method)} {value:.6f}"


_http_requests = _Counter(
    "support_http_requests_total",
    "HTTP request count by route, method, and status.",
    ("route", "method", "status"),
)
_http_latency = _Histogram(
    "support_http_request_latency_seconds", "HTTP request latency.", _HTTP_LATENCY_BUCKETS
)
_provider_failures = _Counter(
    "support_provider_failures_total",
    "Provider failures by dependency and normalized code.",
    ("dependency", "error_code"),
)
_chat_answers = _Counter(
    "support_chat_answers_total",
    "Chat answers by channel and retrieval confidence.",
    ("channel", "confident"),
)
_documents_deleted = _Counter(
    "support_documents_deleted_total", "Document delete requests by outcome.", ("outcome",)
)
_ingestion_files = _Counter("support_ingestion_files_total", "Number of ingested files.")
_ingestion_chunks = _Counter("support_ingestion_chunks_total", "Number of ingested chunks.")

_SERIES = (
    _http_requests,
    _http_latency,
    _provider_failures,
    _chat_answers,
    _documents_deleted,
    _ingestion_files,
    _ingestion_chunks,
)


def observe_http_request(
    *,
    route: str,
    method: str,
    status_code: int,
    latency_ms: int,
) -> None:
    method_u = method.upper()
    with _lock:
        _http_requests.inc(route=route, method=method_u, status=str(status_code))
        _http_latency.observe(max(latency_ms, 0) / 1000.0, route=route, method=method_u)


def inc_provider_failure(*, dependency: str, error_code: str) -> None:
    with _lock:
        _provider_failures.inc(dependency=dependency, error_code=error_code)


def inc_chat_answer(*, channel: str, confident: bool) -> None:
    with _lock:
        _chat_answers.inc(channel=channel, confident="true" if confident else "false")


def inc_document_delete(*, outcome: str) -> None:
    with _lock:
        _documents_deleted.inc(outcome=outcome)


def observe_ingestion_throughput(*, files: int, chunks: int) -> None:
    with _lock:
        _ingestion_files.inc(files)
        _ingestion_chunks.inc(chunks)


def reset_metrics() -> None:
    with _lock:
        for series in _SERIES:
            series.clear()


def render_prometheus_text() -> str:
    with _lock:
        lines = [line for series in _SERIES for line in series.render()]
    lines.append("")
    return "\n".join(lines)
