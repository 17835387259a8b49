"""Prometheus metric inventory for the timeline jobs.

Every metric the service exports is defined here; the schedulers import
and increment them at the point of action.  The worker and the API both
record into the process-global registry; ``GET /metrics`` exposes it.

  COUNTER  : job runs, demotions, warnings, per-timeline errors
  HISTOGRAM: job run duration

A run's ``outcome`` label is:
  ok      : every eligible timeline was processed
  partial : at least one timeline failed and was skipped
  failed  : the eligible timelines could not even be listed
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

JOB_RUNS = Counter(
    "timeline_job_runs_total",
    "Scheduler job runs by job and outcome",
    ["job", "outcome"],  # job: timeline_enforcement|timeline_warnings
)

JOB_DURATION = Histogram(
    "timeline_job_duration_seconds",
    "Wall-clock duration of a scheduler job run",
    ["job"],
    # Runs walk every eligible timeline and its department roster; seconds
    # are normal, minutes mean a slow persistence layer.
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

DEMOTIONS = Counter(
    "timeline_demotions_total",
    "Students moved back a module for missing a timeline deadline",
)

WARNINGS_SENT = Counter(
    "timeline_warnings_sent_total",
    "Deadline reminders recorded on progress records",
    ["warning_type"],  # 7_DAYS|3_DAYS|1_DAY|{h}_HOURS
)

PROCESSING_ERRORS = Counter(
    "timeline_processing_errors_total",
    "Timelines skipped within a run because processing raised",
    ["job"],
)
